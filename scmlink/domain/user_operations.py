"""Read side of the user directory used by the committer resolver."""

import uuid as uuid_pkg

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.domain.base_operations import BaseOperations
from scmlink.models.user import User


class UserOperations(BaseOperations[User]):
    """Lookups are exact: no case folding, no partial matches."""

    def __init__(self) -> None:
        super().__init__(User)

    async def get_by_login(self, db: AsyncSession, login: str) -> User | None:
        statement = select(User).where(User.login == login)
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_email(self, db: AsyncSession, email: str) -> User | None:
        # Email is not unique; the oldest account wins
        statement = (
            select(User).where(User.email == email).order_by(User.created_at).limit(1)
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_many(self, db: AsyncSession, ids: list[uuid_pkg.UUID]) -> list[User]:
        if not ids:
            return []
        statement = select(User).where(User.id.in_(ids))  # type: ignore[attr-defined]
        result = await db.execute(statement)
        return list(result.scalars().all())


user_ops = UserOperations()
