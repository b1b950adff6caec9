"""Synchronize repository changesets from the command line.

Runs the same batch as the scheduler, or a single repository when its id
is given. Intended for cron on deployments that disable the in-process
scheduler.

Usage:
    python -m scripts.fetch_changesets
    python -m scripts.fetch_changesets <repository-id> [<repository-id> ...]
"""

import asyncio
import logging
import sys
import uuid as uuid_pkg

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)


async def fetch_all() -> int:
    from scmlink.services.sync.batch import fetch_changesets

    report = await fetch_changesets()
    for error in report.errors:
        logger.warning(error)
    return 1 if report.failed else 0


async def fetch_repositories(repository_ids: list[uuid_pkg.UUID]) -> int:
    from scmlink.core.database import direct_session_maker
    from scmlink.domain import repository_ops
    from scmlink.services.sync.engine import SyncState, sync_repository

    failed = 0
    async with direct_session_maker() as db:
        for repository_id in repository_ids:
            repository = await repository_ops.get(db, repository_id)
            if repository is None:
                logger.error(f"Repository {repository_id} not found")
                failed += 1
                continue

            result = await sync_repository(db, repository)
            if result.state == SyncState.FAILED:
                failed += 1
            logger.info(
                f"{repository.name}: {result.state.value} "
                f"({result.ingested} new changesets)"
                + (f", error: {result.error}" if result.error else "")
            )
    return 1 if failed else 0


async def main(argv: list[str]) -> int:
    from scmlink.core.database import direct_engine

    try:
        if not argv:
            return await fetch_all()
        try:
            repository_ids = [uuid_pkg.UUID(arg) for arg in argv]
        except ValueError as e:
            logger.error(f"Invalid repository id: {e}")
            return 2
        return await fetch_repositories(repository_ids)
    finally:
        from scmlink.scm.github import close_github_client

        await close_github_client()
        await direct_engine.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
