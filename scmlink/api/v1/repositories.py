"""Repository API endpoints.

Configuration (CRUD, default flag, committer mapping), history read from
the changeset store, and browsing served live by the repository's adapter.
Authentication and authorization happen in front of this service.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.api.deps import get_adapter, get_repository_or_404
from scmlink.api.v1.serializers import (
    serialize_changeset,
    serialize_entry,
    serialize_repository,
)
from scmlink.core.database import get_db
from scmlink.domain import changeset_ops, repository_ops
from scmlink.models.repository import Repository, RepositoryCreate, RepositoryUpdate
from scmlink.schemas import CommitterMapUpdate, CommitterRead
from scmlink.scm.base import ScmAdapter
from scmlink.scm.types import Capability
from scmlink.services.sync.engine import scan_changesets_for_work_items, sync_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/repositories", tags=["repositories"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_repository(
    data: RepositoryCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a repository.

    The project's first repository becomes its default. Other repositories
    need an identifier.
    """
    repository = await repository_ops.create(db, data.model_dump())
    return serialize_repository(repository)


@router.get("/{repository_id}")
async def get_repository(repository: Repository = Depends(get_repository_or_404)):
    """Get a single repository."""
    return serialize_repository(repository)


@router.patch("/{repository_id}")
async def update_repository(
    data: RepositoryUpdate,
    repository: Repository = Depends(get_repository_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Update a repository. extra_info is merged into the stored map."""
    updated = await repository_ops.update(db, repository, data.model_dump(exclude_unset=True))
    return serialize_repository(updated)


@router.delete("/{repository_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_repository(
    repository: Repository = Depends(get_repository_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Delete a repository with all its synchronized history."""
    await repository_ops.delete(db, repository)


@router.post("/{repository_id}/default")
async def set_default_repository(
    repository: Repository = Depends(get_repository_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Make this repository its project's default."""
    repository = await repository_ops.set_default(db, repository)
    return serialize_repository(repository)


# ─────────────────────────────────────────────────────────────────────────────
# Committers
# ─────────────────────────────────────────────────────────────────────────────


@router.get("/{repository_id}/committers", response_model=list[CommitterRead])
async def list_committers(
    repository: Repository = Depends(get_repository_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Distinct committer strings of the repository and their mapped users."""
    pairs = await repository_ops.committers(db, repository)
    return [CommitterRead(committer=committer, user_id=user_id) for committer, user_id in pairs]


@router.put("/{repository_id}/committers")
async def update_committers(
    data: CommitterMapUpdate,
    repository: Repository = Depends(get_repository_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Map committer strings to users across all changesets of the repository."""
    updated = await repository_ops.apply_committer_map(db, repository, data.mapping)
    return {"updated": updated}


# ─────────────────────────────────────────────────────────────────────────────
# History (changeset store)
# ─────────────────────────────────────────────────────────────────────────────


@router.get("/{repository_id}/changesets")
async def list_changesets(
    path: str | None = Query(None, description="Only changesets touching this path"),
    rev: str | None = Query(None, description="Only changesets at or before this revision"),
    limit: int = Query(10, ge=1, le=100),
    repository: Repository = Depends(get_repository_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Most recent changesets, newest first."""
    changesets = await changeset_ops.latest_changesets(
        db,
        repository.id,
        path=path,
        revision=rev,
        limit=limit,
        numeric_revisions=repository_ops.has_numeric_revisions(repository),
    )
    return [serialize_changeset(c) for c in changesets]


@router.delete("/{repository_id}/changesets")
async def clear_changesets(
    repository: Repository = Depends(get_repository_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Forget all synchronized history; the next fetch re-ingests it."""
    removed = await repository_ops.clear_changesets(db, repository)
    return {"deleted": removed}


@router.get("/{repository_id}/revisions/{token}")
async def get_revision(
    token: str,
    repository: Repository = Depends(get_repository_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Find a changeset by full or abbreviated revision."""
    changeset = await changeset_ops.find_by_revision_prefix(
        db,
        repository.id,
        token,
        numeric_revisions=repository_ops.has_numeric_revisions(repository),
    )
    if not changeset:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Revision not found",
        )
    assert changeset.id is not None
    parents = await changeset_ops.get_parents(db, changeset.id)
    return serialize_changeset(changeset, parents=parents)


@router.post("/{repository_id}/fetch")
async def fetch_repository(
    repository: Repository = Depends(get_repository_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Synchronize this repository now.

    Backend failures are reported in the body (state "failed"), not as
    an HTTP error: the repository keeps its previous history.
    """
    result = await sync_repository(db, repository)
    return asdict(result)


@router.post("/{repository_id}/rescan")
async def rescan_repository(
    repository: Repository = Depends(get_repository_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Re-scan every stored commit message for work item references."""
    linked = await scan_changesets_for_work_items(db, repository)
    return {"linked": linked}


# ─────────────────────────────────────────────────────────────────────────────
# Browsing (live from the backend)
# ─────────────────────────────────────────────────────────────────────────────


@router.get("/{repository_id}/entries")
async def list_entries(
    path: str = Query("", description="Directory path, repository root if empty"),
    rev: str | None = Query(None),
    adapter: ScmAdapter = Depends(get_adapter),
):
    """Directory listing: directories first, then files."""
    entries = await adapter.list_entries(path, rev)
    return [serialize_entry(e) for e in entries]


@router.get("/{repository_id}/raw")
async def read_file(
    path: str = Query(..., min_length=1),
    rev: str | None = Query(None),
    adapter: ScmAdapter = Depends(get_adapter),
):
    """Raw file content."""
    if not adapter.supports(Capability.CAT):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{adapter.scm_name} repositories do not serve file content",
        )
    content = await adapter.read_file(path, rev)
    return Response(content=content, media_type="application/octet-stream")


@router.get("/{repository_id}/diff", response_class=PlainTextResponse)
async def diff(
    rev: str = Query(..., min_length=1),
    rev_to: str | None = Query(None, description="Base revision, first parent if omitted"),
    path: str | None = Query(None),
    adapter: ScmAdapter = Depends(get_adapter),
):
    """Unified diff between two revisions."""
    return await adapter.diff(path, rev, rev_to)


@router.get("/{repository_id}/annotate")
async def annotate(
    path: str = Query(..., min_length=1),
    rev: str | None = Query(None),
    adapter: ScmAdapter = Depends(get_adapter),
):
    """Per-line revision and author of a file."""
    if not adapter.supports(Capability.ANNOTATE):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{adapter.scm_name} repositories do not support annotate",
        )
    lines = await adapter.annotate(path, rev)
    return [asdict(line) for line in lines]


@router.get("/{repository_id}/branches")
async def list_branches(adapter: ScmAdapter = Depends(get_adapter)):
    """Branch names, empty when the backend has no branches."""
    if not adapter.supports(Capability.BRANCHES):
        return []
    return sorted(await adapter.branches())


@router.get("/{repository_id}/tags")
async def list_tags(adapter: ScmAdapter = Depends(get_adapter)):
    """Tag names, empty when the backend has no tags."""
    if not adapter.supports(Capability.TAGS):
        return []
    return sorted(await adapter.tags())
