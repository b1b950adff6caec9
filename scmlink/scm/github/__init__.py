"""
GitHub backend.

Modules:
- adapter: GitHubAdapter (registered as "github")
- helpers: URL parsing, rate limit info and error mapping
- http_client: shared httpx client
- cache: TTL cache for directory listings at immutable revisions
"""

from scmlink.scm.github.adapter import GitHubAdapter
from scmlink.scm.github.cache import clear_all_caches, get_cache_stats
from scmlink.scm.github.helpers import (
    GitHubRepoRenamed,
    RateLimitInfo,
    filter_diff,
    handle_error_response,
    parse_repo_url,
)
from scmlink.scm.github.http_client import close_github_client, get_github_client

__all__ = [
    "GitHubAdapter",
    "GitHubRepoRenamed",
    "RateLimitInfo",
    "filter_diff",
    "handle_error_response",
    "parse_repo_url",
    "get_github_client",
    "close_github_client",
    "clear_all_caches",
    "get_cache_stats",
]
