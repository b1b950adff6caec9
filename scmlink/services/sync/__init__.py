"""
Changeset synchronization.

Modules:
- engine: RepositorySynchronizer (one repository, one run)
- batch: fetch_changesets() over every eligible repository
- identity: committer → user resolution
- references: work item references in commit messages
- lock: per-repository mutual exclusion
"""

from scmlink.services.sync.batch import BatchSyncReport, fetch_changesets
from scmlink.services.sync.engine import (
    RepositorySynchronizer,
    SyncResult,
    SyncState,
    scan_changesets_for_work_items,
    sync_repository,
)
from scmlink.services.sync.identity import CommitterResolver, parse_committer
from scmlink.services.sync.references import ReferenceScanner

__all__ = [
    "BatchSyncReport",
    "CommitterResolver",
    "ReferenceScanner",
    "RepositorySynchronizer",
    "SyncResult",
    "SyncState",
    "fetch_changesets",
    "parse_committer",
    "scan_changesets_for_work_items",
    "sync_repository",
]
