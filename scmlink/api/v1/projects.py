from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.api.deps import get_project_or_404
from scmlink.api.v1.serializers import serialize_repository
from scmlink.core.database import get_db
from scmlink.domain import repository_ops
from scmlink.models.project import Project

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("/{project_id}/repositories", response_model=list[dict])
async def list_project_repositories(
    project: Project = Depends(get_project_or_404),
    db: AsyncSession = Depends(get_db),
):
    """List a project's repositories, default repository first."""
    repositories = await repository_ops.get_by_project(db, project.id)
    return [serialize_repository(r) for r in repositories]
