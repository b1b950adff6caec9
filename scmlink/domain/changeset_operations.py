"""Changeset store.

Changesets are written once by the synchronization engine and read by the
browse API. Display order is committed_on DESC, id DESC; the id is the
insertion sequence and identifies the last ingested revision.
"""

import uuid as uuid_pkg

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from scmlink.models.changeset import Change, Changeset, ChangesetParent, ChangesetWorkItem
from scmlink.models.user import User
from scmlink.scm.types import CommitRecord


def with_leading_slash(path: str | None) -> str:
    path = path or ""
    return path if path.startswith("/") else f"/{path}"


DISPLAY_ORDER = (Changeset.committed_on.desc(), Changeset.id.desc())  # type: ignore[union-attr]


class ChangesetOperations:
    """Queries and writes over Changeset and its owned rows."""

    def __init__(self) -> None:
        self.model = Changeset

    async def get(self, db: AsyncSession, id: int) -> Changeset | None:
        statement = (
            select(Changeset)
            .where(Changeset.id == id)
            .options(selectinload(Changeset.changes))  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_revision(
        self, db: AsyncSession, repository_id: uuid_pkg.UUID, revision: str
    ) -> Changeset | None:
        statement = (
            select(Changeset)
            .where(Changeset.repository_id == repository_id, Changeset.revision == revision)
            .options(selectinload(Changeset.changes))  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def exists(self, db: AsyncSession, repository_id: uuid_pkg.UUID, revision: str) -> bool:
        statement = select(Changeset.id).where(
            Changeset.repository_id == repository_id, Changeset.revision == revision
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none() is not None

    async def get_marker(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> str | None:
        """Revision of the last ingested changeset (highest insertion id)."""
        statement = (
            select(Changeset.revision)
            .where(Changeset.repository_id == repository_id)
            .order_by(Changeset.id.desc())  # type: ignore[union-attr]
            .limit(1)
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def count(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> int:
        statement = select(func.count(Changeset.id)).where(  # type: ignore[arg-type]
            Changeset.repository_id == repository_id
        )
        result = await db.execute(statement)
        return result.scalar() or 0

    async def get_ids_by_repository(
        self, db: AsyncSession, repository_id: uuid_pkg.UUID
    ) -> list[int]:
        """All changeset ids of a repository in insertion order."""
        statement = (
            select(Changeset.id)
            .where(Changeset.repository_id == repository_id)
            .order_by(Changeset.id)  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def find_by_revision_prefix(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        token: str | None,
        numeric_revisions: bool = False,
    ) -> Changeset | None:
        """
        Find a changeset from a user-typed revision.

        On backends with numeric revisions an all-digit token matches a
        revision exactly; anything else is an abbreviated revision and
        matches by prefix. The first match in display order wins.
        """
        token = (token or "").strip()
        if not token:
            return None

        if numeric_revisions and token.isascii() and token.isdigit():
            condition = Changeset.revision == token
        else:
            condition = Changeset.revision.startswith(token, autoescape=True)  # type: ignore[attr-defined]

        statement = (
            select(Changeset)
            .where(Changeset.repository_id == repository_id, condition)
            .options(selectinload(Changeset.changes))  # type: ignore[arg-type]
            .order_by(*DISPLAY_ORDER)
            .limit(1)
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def latest_changesets(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        path: str | None = None,
        revision: str | None = None,
        limit: int = 10,
        numeric_revisions: bool = False,
    ) -> list[Changeset]:
        """
        Most recent changesets of a repository, optionally touching `path`.

        When `revision` resolves to a stored changeset, only changesets
        committed at or before it are returned.
        """
        statement = select(Changeset).where(Changeset.repository_id == repository_id)

        if path and path.strip("/"):
            touching = select(Change.changeset_id).where(Change.path == with_leading_slash(path))
            statement = statement.where(Changeset.id.in_(touching))  # type: ignore[union-attr]

        if revision:
            anchor = await self.find_by_revision_prefix(
                db, repository_id, revision, numeric_revisions=numeric_revisions
            )
            if anchor is not None:
                statement = statement.where(Changeset.committed_on <= anchor.committed_on)

        statement = (
            statement.options(selectinload(Changeset.changes))  # type: ignore[arg-type]
            .order_by(*DISPLAY_ORDER)
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def find_user_for_committer(
        self, db: AsyncSession, repository_id: uuid_pkg.UUID, committer: str
    ) -> User | None:
        """User already mapped to `committer` by an earlier changeset."""
        statement = (
            select(User)
            .join(Changeset, Changeset.user_id == User.id)  # type: ignore[arg-type]
            .where(
                Changeset.repository_id == repository_id,
                Changeset.committer == committer,
            )
            .limit(1)
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def create_from_record(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        record: CommitRecord,
        user_id: uuid_pkg.UUID | None = None,
    ) -> Changeset:
        """Write a changeset with its changes and parent links (not committed)."""
        changeset = Changeset(
            repository_id=repository_id,
            revision=record.revision,
            committer=record.author,
            user_id=user_id,
            committed_on=record.committed_on,
            comments=record.message,
        )
        db.add(changeset)
        await db.flush()
        assert changeset.id is not None

        for change in record.changes:
            db.add(
                Change(
                    changeset_id=changeset.id,
                    action=change.action,
                    path=with_leading_slash(change.path),
                    from_path=with_leading_slash(change.from_path) if change.from_path else None,
                    from_revision=change.from_revision,
                )
            )

        if record.parents:
            statement = select(Changeset.revision, Changeset.id).where(
                Changeset.repository_id == repository_id,
                Changeset.revision.in_(record.parents),  # type: ignore[attr-defined]
            )
            known = {revision: id for revision, id in (await db.execute(statement)).all()}
            for position, parent in enumerate(record.parents):
                db.add(
                    ChangesetParent(
                        changeset_id=changeset.id,
                        position=position,
                        parent_revision=parent,
                        parent_id=known.get(parent),
                    )
                )

        await db.flush()
        return changeset

    async def get_parents(self, db: AsyncSession, changeset_id: int) -> list[str]:
        statement = (
            select(ChangesetParent.parent_revision)
            .where(ChangesetParent.changeset_id == changeset_id)
            .order_by(ChangesetParent.position)  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def add_work_item_link(
        self,
        db: AsyncSession,
        changeset_id: int,
        work_item_id: uuid_pkg.UUID,
        action: str = "refs",
    ) -> bool:
        """Link a changeset to a work item; returns False if already linked."""
        existing = await db.get(ChangesetWorkItem, (changeset_id, work_item_id))
        if existing is not None:
            if action == "fixes" and existing.action != "fixes":
                existing.action = action
                await db.flush()
            return False
        db.add(ChangesetWorkItem(changeset_id=changeset_id, work_item_id=work_item_id, action=action))
        await db.flush()
        return True

    async def get_work_item_ids(self, db: AsyncSession, changeset_id: int) -> list[uuid_pkg.UUID]:
        statement = select(ChangesetWorkItem.work_item_id).where(
            ChangesetWorkItem.changeset_id == changeset_id
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def delete_for_repository(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> int:
        """
        Remove every changeset of a repository with its owned rows.

        Four bulk deletes scoped by repository id: changes, work item links,
        parent links, then the changesets themselves. Returns the number of
        changesets deleted.
        """
        changeset_ids = select(Changeset.id).where(Changeset.repository_id == repository_id)

        for model in (Change, ChangesetWorkItem, ChangesetParent):
            await db.execute(
                delete(model)
                .where(model.changeset_id.in_(changeset_ids))  # type: ignore[attr-defined]
                .execution_options(synchronize_session=False)
            )
        result = await db.execute(
            delete(Changeset)
            .where(Changeset.repository_id == repository_id)
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount or 0  # type: ignore[attr-defined]


changeset_ops = ChangesetOperations()
