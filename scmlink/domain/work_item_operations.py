import uuid as uuid_pkg

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.domain.base_operations import BaseOperations
from scmlink.models.work_item import WorkItem


class WorkItemOperations(BaseOperations[WorkItem]):
    def __init__(self) -> None:
        super().__init__(WorkItem)

    async def get_by_numbers(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        numbers: list[int],
    ) -> list[WorkItem]:
        """Work items of a project matching `#<number>` references."""
        if not numbers:
            return []
        statement = (
            select(WorkItem)
            .where(
                WorkItem.project_id == project_id,
                WorkItem.number.in_(numbers),  # type: ignore[attr-defined]
            )
            .order_by(WorkItem.number)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def update_status(self, db: AsyncSession, work_item: WorkItem, status: str) -> WorkItem:
        if work_item.status == status:
            return work_item
        return await self.update(db, work_item, {"status": status})


work_item_ops = WorkItemOperations()
