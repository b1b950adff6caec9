from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.domain.base_operations import BaseOperations
from scmlink.models.project import Project, ProjectStatus


class ProjectOperations(BaseOperations[Project]):
    def __init__(self) -> None:
        super().__init__(Project)

    async def get_by_identifier(self, db: AsyncSession, identifier: str) -> Project | None:
        statement = select(Project).where(Project.identifier == identifier)
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_active_with_repository_module(self, db: AsyncSession) -> list[Project]:
        """Projects taking part in batch synchronization."""
        statement = (
            select(Project)
            .where(
                Project.status == ProjectStatus.ACTIVE.value,
                Project.repository_module_enabled.is_(True),  # type: ignore[attr-defined]
            )
            .order_by(Project.identifier)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())


project_ops = ProjectOperations()
