import uuid as uuid_pkg
from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.core.database import get_db
from scmlink.domain import project_ops, repository_ops
from scmlink.models.project import Project
from scmlink.models.repository import Repository
from scmlink.scm.base import ScmAdapter


async def get_project_or_404(
    project_id: uuid_pkg.UUID,
    db: AsyncSession = Depends(get_db),
) -> Project:
    project = await project_ops.get(db, project_id)
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )
    return project


async def get_repository_or_404(
    repository_id: uuid_pkg.UUID,
    db: AsyncSession = Depends(get_db),
) -> Repository:
    repository = await repository_ops.get(db, repository_id)
    if not repository:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Repository not found",
        )
    return repository


async def get_adapter(
    repository: Repository = Depends(get_repository_or_404),
) -> AsyncGenerator[ScmAdapter, None]:
    """Adapter for the requested repository, closed after the response."""
    adapter = repository_ops.get_adapter(repository)
    try:
        yield adapter
    finally:
        await adapter.aclose()
