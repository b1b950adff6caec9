from enum import Enum
from typing import TYPE_CHECKING

from sqlmodel import Field, Relationship, SQLModel

from scmlink.models.base import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from scmlink.models.repository import Repository
    from scmlink.models.work_item import WorkItem


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    ARCHIVED = "archived"


class ProjectBase(SQLModel):
    """Base fields shared across Project schemas."""

    name: str = Field(max_length=255, index=True)
    identifier: str = Field(max_length=100, unique=True, index=True)
    status: str = Field(default=ProjectStatus.ACTIVE.value, max_length=20, index=True)
    # Projects without the repository module are skipped by the sync batch
    repository_module_enabled: bool = Field(default=True)


class ProjectCreate(SQLModel):
    """Schema for creating a project."""

    name: str
    identifier: str
    status: str = ProjectStatus.ACTIVE.value
    repository_module_enabled: bool = True


class Project(ProjectBase, UUIDMixin, TimestampMixin, table=True):
    """Project the repositories and work items belong to."""

    __tablename__ = "projects"

    # Relationships
    repositories: list["Repository"] = Relationship(back_populates="project")
    work_items: list["WorkItem"] = Relationship(back_populates="project")
