"""Internal task scheduler using APScheduler.

Runs the changeset synchronization batch within the FastAPI process.
Uses a PostgreSQL advisory lock so that only one instance runs the batch
when several are deployed.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-untyped]
from sqlalchemy import text

from scmlink.config import settings
from scmlink.core.database import direct_session_maker

logger = logging.getLogger(__name__)

# Advisory lock ID (arbitrary unique integer, one per job)
FETCH_CHANGESETS_LOCK_ID = 731904


@asynccontextmanager
async def advisory_lock(lock_id: int) -> AsyncIterator[bool]:
    """
    Acquire a PostgreSQL advisory lock for the duration of the context.

    Advisory locks are session-level and automatically released when the
    session ends. pg_try_advisory_lock() returns immediately: if another
    process holds the lock, we skip.
    """
    async with direct_session_maker() as session:
        if session.bind.dialect.name != "postgresql":
            yield True
            return

        result = await session.execute(
            text("SELECT pg_try_advisory_lock(:lock_id)"),
            {"lock_id": lock_id},
        )
        acquired = result.scalar()

        if not acquired:
            yield False
            return

        try:
            yield True
        finally:
            await session.execute(
                text("SELECT pg_advisory_unlock(:lock_id)"),
                {"lock_id": lock_id},
            )
            await session.commit()


async def run_fetch_changesets() -> dict[str, Any] | None:
    """
    Execute the synchronization batch with advisory lock protection.

    Returns the report dict if executed, None if skipped (lock held by another instance).
    """
    async with advisory_lock(FETCH_CHANGESETS_LOCK_ID) as acquired:
        if not acquired:
            logger.info("[scheduler] Fetch-changesets: skipped (another instance is running)")
            return None

        logger.info("[scheduler] Fetch-changesets: starting")

        try:
            from scmlink.services.sync.batch import fetch_changesets

            report = await fetch_changesets()

            logger.info(
                f"[scheduler] Fetch-changesets: completed "
                f"({report.succeeded}/{report.repositories} repositories, "
                f"{report.changesets_ingested} changesets, "
                f"{report.duration_seconds}s)"
            )
            return asdict(report)

        except Exception as e:
            logger.exception(f"[scheduler] Fetch-changesets: failed with error: {e}")
            return None


class Scheduler:
    """Manages the APScheduler instance and job registration."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the scheduler and register jobs."""
        if not settings.scheduler_enabled:
            logger.info("[scheduler] Disabled via SCHEDULER_ENABLED=false")
            return

        self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            run_fetch_changesets,
            trigger=IntervalTrigger(minutes=settings.fetch_changesets_interval_minutes),
            id="fetch_changesets",
            name="Fetch Repository Changesets",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self._scheduler.start()
        logger.info(
            f"[scheduler] Started with fetch-changesets every "
            f"{settings.fetch_changesets_interval_minutes} minutes"
        )

    def stop(self) -> None:
        """Gracefully shut down the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("[scheduler] Stopped")

    async def trigger_now(self, job_id: str) -> dict[str, Any] | None:
        """
        Manually trigger a job immediately (for testing/debugging).

        Returns the job result or None if job not found.
        """
        if job_id == "fetch_changesets":
            return await run_fetch_changesets()
        return None


scheduler = Scheduler()
