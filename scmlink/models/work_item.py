import uuid as uuid_pkg
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

from scmlink.models.base import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from scmlink.models.project import Project


class WorkItemBase(SQLModel):
    """Base fields for WorkItem."""

    title: str | None = Field(default=None, max_length=500)
    status: str | None = Field(default=None, max_length=50, index=True)  # e.g. todo, done


class WorkItemCreate(SQLModel):
    """Schema for creating a work item."""

    project_id: uuid_pkg.UUID
    number: int
    title: str
    status: str | None = None


class WorkItem(WorkItemBase, UUIDMixin, TimestampMixin, table=True):
    """Work item commit messages refer to as `#<number>`."""

    __tablename__ = "work_items"
    __table_args__ = (UniqueConstraint("project_id", "number", name="uq_work_item_number"),)

    project_id: uuid_pkg.UUID = Field(foreign_key="projects.id", index=True)
    number: int = Field(nullable=False)

    # Relationships
    project: Optional["Project"] = Relationship(back_populates="work_items")
