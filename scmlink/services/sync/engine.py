"""
Synchronization of one repository's history into the changeset store.

    Idle → Fetching → Ingesting → ScanningReferences → Done
                 ↘         ↘
                  Failed (BackendUnavailable / BackendError)

Each ingested commit is committed as its own transaction, so an interrupted
run keeps everything ingested before the interruption and the next run
resumes from the last stored revision.
"""

import logging
import time
import uuid as uuid_pkg
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.core.exceptions import NotFoundError
from scmlink.domain.changeset_operations import changeset_ops
from scmlink.domain.repository_operations import repository_ops
from scmlink.models.repository import Repository
from scmlink.scm.base import ScmAdapter
from scmlink.scm.exceptions import ScmAdapterError
from scmlink.scm.types import CommitRecord
from scmlink.services.sync.identity import CommitterResolver
from scmlink.services.sync.lock import repository_lock
from scmlink.services.sync.references import ReferenceScanner

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    INGESTING = "ingesting"
    SCANNING_REFERENCES = "scanning_references"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Outcome of one repository synchronization."""

    repository_id: uuid_pkg.UUID
    state: SyncState = SyncState.IDLE
    marker: str | None = None  # last stored revision before the run
    ingested: int = 0
    duplicates: int = 0
    references: int = 0
    skipped: bool = False  # another run held the repository
    error: str | None = None
    duration_seconds: float = 0.0


class RepositorySynchronizer:
    """
    Ingests new revisions of one repository.

    The adapter defaults to the one built from the repository's
    configuration; tests and callers holding an adapter may pass their own
    (it is then not closed here).
    """

    def __init__(
        self,
        db: AsyncSession,
        repository: Repository,
        adapter: ScmAdapter | None = None,
        resolver: CommitterResolver | None = None,
        scanner: ReferenceScanner | None = None,
    ):
        self.db = db
        self.repository = repository
        # Plain values survive the session expiring the instance on rollback
        self.repository_id = repository.id
        self.project_id = repository.project_id
        self.label = repository.name
        self._adapter = adapter
        self.resolver = resolver or CommitterResolver(db, repository.id)
        self.scanner = scanner or ReferenceScanner()
        self.state = SyncState.IDLE

    async def run(self) -> SyncResult:
        result = SyncResult(repository_id=self.repository_id)
        started = time.monotonic()

        async with repository_lock(self.db, self.repository_id) as acquired:
            if not acquired:
                logger.info(f"[sync] {self.label}: skipped (already being synchronized)")
                result.skipped = True
                return result
            await self._run_locked(result)

        result.state = self.state
        result.duration_seconds = round(time.monotonic() - started, 2)
        return result

    async def _run_locked(self, result: SyncResult) -> None:
        adapter = self._adapter
        new_ids: list[int] = []
        try:
            self.state = SyncState.FETCHING
            if adapter is None:
                adapter = repository_ops.get_adapter(self.repository)

            await repository_ops.backfill_root_url(self.db, self.repository, adapter)
            await self.db.commit()

            result.marker = await changeset_ops.get_marker(self.db, self.repository_id)
            logger.info(f"[sync] {self.label}: fetching revisions after {result.marker}")

            self.state = SyncState.INGESTING
            records = adapter.new_revisions_since(result.marker)
            async with aclosing(records):  # type: ignore[type-var]
                async for record in records:
                    changeset_id = await self._ingest(record, result)
                    if changeset_id is not None:
                        new_ids.append(changeset_id)

            self.state = SyncState.SCANNING_REFERENCES
            result.references = await self._scan(new_ids)

            await self._record_outcome(None)
            self.state = SyncState.DONE
            logger.info(
                f"[sync] {self.label}: done ({result.ingested} ingested, "
                f"{result.duplicates} already present, {result.references} references)"
            )
        except (ScmAdapterError, NotFoundError) as e:
            await self.db.rollback()
            self.state = SyncState.FAILED
            result.error = e.message
            logger.warning(
                f"[sync] {self.label}: failed after {result.ingested} changesets: {e.message}"
            )
            # Changesets stored before the failure are older than the next marker
            result.references = await self._scan(new_ids)
            await self._record_outcome(e.message)
        finally:
            if adapter is not None and self._adapter is None:
                await adapter.aclose()

    async def _ingest(self, record: CommitRecord, result: SyncResult) -> int | None:
        """Store one record in its own transaction; None if it was already present."""
        if await changeset_ops.exists(self.db, self.repository_id, record.revision):
            result.duplicates += 1
            return None

        user = await self.resolver.resolve(record.author)
        try:
            changeset = await changeset_ops.create_from_record(
                self.db, self.repository_id, record, user.id if user else None
            )
            await self.db.commit()
        except IntegrityError:
            # A concurrent run stored the same revision first
            await self.db.rollback()
            self.resolver.invalidate()
            result.duplicates += 1
            logger.info(f"[sync] {self.label}: revision {record.revision} already stored")
            return None

        result.ingested += 1
        return changeset.id

    async def _scan(self, changeset_ids: list[int]) -> int:
        linked = 0
        for changeset_id in changeset_ids:
            try:
                changeset = await changeset_ops.get(self.db, changeset_id)
                if changeset is None:
                    continue
                linked += await self.scanner.scan(self.db, changeset, self.project_id)
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                logger.warning(
                    f"[sync] {self.label}: reference scan failed for changeset "
                    f"{changeset_id}: {e}"
                )
        return linked

    async def _record_outcome(self, error: str | None) -> None:
        # Re-read: a rollback expires the instance
        repository = await repository_ops.get(self.db, self.repository_id)
        if repository is None:
            return
        self.repository = repository
        await repository_ops.record_fetch_result(self.db, repository, error)
        await self.db.commit()


async def sync_repository(
    db: AsyncSession,
    repository: Repository,
    adapter: ScmAdapter | None = None,
) -> SyncResult:
    """Synchronize one repository now."""
    return await RepositorySynchronizer(db, repository, adapter=adapter).run()


async def scan_changesets_for_work_items(
    db: AsyncSession,
    repository: Repository,
    scanner: ReferenceScanner | None = None,
) -> int:
    """Re-scan every stored changeset of a repository for work item references."""
    scanner = scanner or ReferenceScanner()
    project_id = repository.project_id
    linked = 0
    for changeset_id in await changeset_ops.get_ids_by_repository(db, repository.id):
        changeset = await changeset_ops.get(db, changeset_id)
        if changeset is not None:
            linked += await scanner.scan(db, changeset, project_id)
    await db.flush()
    logger.info(f"[sync] {repository.name}: rescan linked {linked} work items")
    return linked
