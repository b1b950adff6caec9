"""Repository-scoped mutual exclusion for synchronization runs.

Two layers: an in-process set of repositories being synchronized, and a
PostgreSQL advisory lock so separate processes (scheduler, CLI, API) never
ingest the same repository at once. On other databases only the in-process
guard applies.
"""

import logging
import uuid as uuid_pkg
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_in_progress: set[uuid_pkg.UUID] = set()


def lock_id_for(repository_id: uuid_pkg.UUID) -> int:
    """Signed 64-bit advisory lock id derived from a repository id."""
    return repository_id.int & 0x7FFF_FFFF_FFFF_FFFF


@asynccontextmanager
async def advisory_lock(db: AsyncSession, lock_id: int) -> AsyncIterator[bool]:
    """
    Acquire a PostgreSQL advisory lock on a dedicated connection.

    The lock session is separate from `db` so the per-record commits of
    the synchronization run do not interfere with it. Yields True without
    locking when the database is not PostgreSQL.
    """
    bind = db.bind
    if bind is None or bind.dialect.name != "postgresql":
        yield True
        return

    async with AsyncSession(bind) as session:
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


@asynccontextmanager
async def repository_lock(db: AsyncSession, repository_id: uuid_pkg.UUID) -> AsyncIterator[bool]:
    """Yields False when another run already holds the repository."""
    if repository_id in _in_progress:
        yield False
        return

    _in_progress.add(repository_id)
    try:
        async with advisory_lock(db, lock_id_for(repository_id)) as acquired:
            yield acquired
    finally:
        _in_progress.discard(repository_id)


def is_locked(repository_id: uuid_pkg.UUID) -> bool:
    """Whether this process is currently synchronizing the repository."""
    return repository_id in _in_progress
