"""
TTL cache for GitHub directory listings.

Only listings pinned to a full commit SHA are cached: the content behind an
immutable revision never changes, while branch names move with every push.
"""

import logging
import re
from typing import Any

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

_FULL_SHA = re.compile(r"^[0-9a-f]{40}$")

entries_cache: TTLCache[tuple[str, str, str], Any] = TTLCache(maxsize=500, ttl=3600)  # 1 hour


def is_immutable_revision(revision: str | None) -> bool:
    return bool(revision and _FULL_SHA.match(revision))


def clear_all_caches() -> None:
    """Clear all GitHub caches. Useful for testing or forced refresh."""
    entries_cache.clear()
    logger.info("Cleared all GitHub caches")


def get_cache_stats() -> dict[str, dict[str, int]]:
    """Get current cache statistics for monitoring."""
    return {"entries": {"size": len(entries_cache), "maxsize": int(entries_cache.maxsize)}}
