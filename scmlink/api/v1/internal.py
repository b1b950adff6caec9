"""Internal API endpoints, protected by shared secret rather than user auth.

These endpoints are called by cron jobs / external schedulers, not by
human users. They validate a shared secret via the X-Cron-Secret header.
"""

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Header, HTTPException, status

from scmlink.config.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


def _verify_cron_secret(x_cron_secret: str = Header(...)) -> None:
    """Validate the X-Cron-Secret header against the configured secret."""
    if not settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured",
        )
    if x_cron_secret != settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid cron secret",
        )


@router.post("/fetch-changesets")
async def trigger_fetch_changesets(
    x_cron_secret: str = Header(...),
) -> dict[str, Any]:
    """
    Synchronize every eligible repository.

    Protected by X-Cron-Secret header. Runs the same batch as the
    scheduler; each repository uses its own session.
    """
    _verify_cron_secret(x_cron_secret)

    from scmlink.services.sync.batch import fetch_changesets

    report = await fetch_changesets()
    logger.info(f"Cron fetch-changesets: {report.succeeded}/{report.repositories} succeeded")

    return asdict(report)
