import uuid as uuid_pkg
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Index, Text, UniqueConstraint, Uuid, func
from sqlmodel import Field, Relationship, SQLModel

from scmlink.models.base import BigIntType, utcnow

if TYPE_CHECKING:
    from scmlink.models.repository import Repository


class ChangeAction(str, Enum):
    """Action recorded for a path in a changeset."""

    ADD = "A"
    MODIFY = "M"
    DELETE = "D"
    RENAME = "R"
    COPY = "C"


class Changeset(SQLModel, table=True):
    """
    One ingested commit.

    Rows are immutable once written, except `user_id` which follows the
    committer mapping. The integer id is the insertion sequence; it breaks
    ties between equal commit timestamps and identifies the last ingested
    revision.
    """

    __tablename__ = "changesets"
    __table_args__ = (
        UniqueConstraint("repository_id", "revision", name="uq_changeset_revision"),
        Index("ix_changesets_repository_committed_on", "repository_id", "committed_on"),
        Index("ix_changesets_repository_committer", "repository_id", "committer"),
    )

    id: int | None = Field(
        default=None,
        sa_column=Column(BigIntType, primary_key=True, autoincrement=True),
    )
    repository_id: uuid_pkg.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False),
    )
    revision: str = Field(max_length=255, nullable=False)
    committer: str | None = Field(default=None, max_length=255)
    user_id: uuid_pkg.UUID | None = Field(
        default=None,
        sa_column=Column(
            Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
        ),
    )
    committed_on: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    comments: str | None = Field(default=None, sa_column=Column(Text, nullable=True))

    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": func.now()},
    )

    # Relationships
    repository: Optional["Repository"] = Relationship(back_populates="changesets")
    changes: list["Change"] = Relationship(
        back_populates="changeset",
        sa_relationship_kwargs={"passive_deletes": True, "order_by": "Change.id"},
    )


class Change(SQLModel, table=True):
    """A file path touched by a changeset."""

    __tablename__ = "changes"
    __table_args__ = (Index("ix_changes_changeset_path", "changeset_id", "path"),)

    id: int | None = Field(
        default=None,
        sa_column=Column(BigIntType, primary_key=True, autoincrement=True),
    )
    changeset_id: int = Field(
        sa_column=Column(
            BigIntType, ForeignKey("changesets.id", ondelete="CASCADE"), nullable=False
        ),
    )
    action: str = Field(max_length=1, nullable=False)
    # Always stored with a leading "/"
    path: str = Field(sa_column=Column(Text, nullable=False))
    from_path: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    from_revision: str | None = Field(default=None, max_length=255)

    changeset: Optional[Changeset] = Relationship(back_populates="changes")


class ChangesetParent(SQLModel, table=True):
    """Ordered parent link of a changeset.

    `parent_id` is filled when the parent revision is already mirrored;
    the revision string is always kept.
    """

    __tablename__ = "changeset_parents"

    changeset_id: int = Field(
        sa_column=Column(
            BigIntType,
            ForeignKey("changesets.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    position: int = Field(primary_key=True)
    parent_revision: str = Field(max_length=255, nullable=False)
    parent_id: int | None = Field(
        default=None,
        sa_column=Column(
            BigIntType, ForeignKey("changesets.id", ondelete="SET NULL"), nullable=True, index=True
        ),
    )


class ChangesetWorkItem(SQLModel, table=True):
    """Cross-reference between a changeset and a work item named in its message."""

    __tablename__ = "changeset_work_items"

    changeset_id: int = Field(
        sa_column=Column(
            BigIntType,
            ForeignKey("changesets.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    work_item_id: uuid_pkg.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("work_items.id", ondelete="CASCADE"), primary_key=True),
    )
    action: str = Field(default="refs", max_length=10)  # refs | fixes
