"""
Batch synchronization over every eligible repository.

Repositories of active projects with the repository module enabled are
synchronized with bounded concurrency. Each repository gets its own
session; one repository failing never aborts the others.
"""

import asyncio
import logging
import time
import uuid as uuid_pkg
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from scmlink.config import settings
from scmlink.domain.project_operations import project_ops
from scmlink.domain.repository_operations import repository_ops
from scmlink.services.sync.engine import RepositorySynchronizer, SyncResult, SyncState

logger = logging.getLogger(__name__)


@dataclass
class BatchSyncReport:
    """Summary of a fetch_changesets() run."""

    repositories: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    changesets_ingested: int = 0
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0


async def _eligible_repository_ids(db: AsyncSession) -> list[uuid_pkg.UUID]:
    ids: list[uuid_pkg.UUID] = []
    for project in await project_ops.get_active_with_repository_module(db):
        ids.extend(r.id for r in await repository_ops.get_by_project(db, project.id))
    return ids


async def fetch_changesets(
    session_maker: sessionmaker | None = None,  # type: ignore[type-arg]
    max_concurrency: int | None = None,
) -> BatchSyncReport:
    """
    Synchronize all eligible repositories.

    Safe to call repeatedly: already stored revisions are skipped and
    repositories locked by another run are reported as skipped.
    """
    if session_maker is None:
        from scmlink.core.database import direct_session_maker

        session_maker = direct_session_maker

    report = BatchSyncReport()
    started = time.monotonic()

    async with session_maker() as db:
        repository_ids = await _eligible_repository_ids(db)
    report.repositories = len(repository_ids)
    logger.info(f"[sync] Batch: {len(repository_ids)} repositories to synchronize")

    semaphore = asyncio.Semaphore(max_concurrency or settings.sync_max_concurrency)

    async def sync_one(repository_id: uuid_pkg.UUID) -> SyncResult | None:
        async with semaphore:
            try:
                async with session_maker() as db:
                    repository = await repository_ops.get(db, repository_id)
                    if repository is None:
                        # Deleted since the batch started
                        return None
                    return await RepositorySynchronizer(db, repository).run()
            except Exception as e:
                logger.exception(f"[sync] Batch: repository {repository_id} crashed: {e}")
                report.errors.append(f"{repository_id}: {e}")
                report.failed += 1
                return None

    results = await asyncio.gather(*(sync_one(id) for id in repository_ids))

    for result in results:
        if result is None:
            continue
        report.changesets_ingested += result.ingested
        if result.skipped:
            report.skipped += 1
        elif result.state == SyncState.FAILED:
            report.failed += 1
            report.errors.append(f"{result.repository_id}: {result.error}")
        else:
            report.succeeded += 1

    report.duration_seconds = round(time.monotonic() - started, 2)
    logger.info(
        f"[sync] Batch: completed ({report.succeeded} succeeded, {report.failed} failed, "
        f"{report.skipped} skipped, {report.changesets_ingested} changesets, "
        f"{report.duration_seconds}s)"
    )
    return report
