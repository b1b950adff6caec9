import uuid as uuid_pkg
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import Column, DateTime, Index, UniqueConstraint, text
from sqlmodel import Field, Relationship, SQLModel

from scmlink.models.base import JSONType, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from scmlink.models.changeset import Changeset
    from scmlink.models.project import Project

DEFAULT_LOG_ENCODING = "UTF-8"


class RepositoryBase(SQLModel):
    """Base fields for Repository."""

    # Human-chosen slug; NULL only for the project's default repository
    identifier: str | None = Field(default=None, max_length=255, index=True)
    url: str = Field(max_length=1000)
    # Canonical root reported by the backend, discovered on first sync
    root_url: str | None = Field(default=None, max_length=1000)
    login: str | None = Field(default=None, max_length=255)
    log_encoding: str | None = Field(default=None, max_length=64)
    path_encoding: str | None = Field(default=None, max_length=64)
    scm_type: str = Field(max_length=30, index=True)
    is_default: bool = Field(default=False, nullable=False)


class RepositoryCreate(SQLModel):
    """Schema for creating a repository."""

    project_id: uuid_pkg.UUID
    scm_type: str
    url: str
    identifier: str | None = None
    root_url: str | None = None
    login: str | None = None
    password: str | None = None
    log_encoding: str | None = None
    path_encoding: str | None = None
    is_default: bool = False
    extra_info: dict[str, Any] | None = None


class RepositoryUpdate(SQLModel):
    """Schema for updating a repository. `scm_type` is fixed at creation."""

    identifier: str | None = None
    url: str | None = None
    root_url: str | None = None
    login: str | None = None
    password: str | None = None
    log_encoding: str | None = None
    path_encoding: str | None = None
    is_default: bool | None = None
    extra_info: dict[str, Any] | None = None


class Repository(RepositoryBase, UUIDMixin, TimestampMixin, table=True):
    """External version-control repository linked to a Project."""

    __tablename__ = "repositories"
    __table_args__ = (
        UniqueConstraint("project_id", "identifier", name="uq_repository_identifier"),
        # At most one default repository per project
        Index(
            "uq_repository_default",
            "project_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
    )

    project_id: uuid_pkg.UUID = Field(foreign_key="projects.id", index=True)

    # Ciphertext (see scmlink.core.encryption); read it through
    # repository_ops.get_decrypted_password()
    password: str | None = Field(default=None, max_length=1000)

    # Backend-specific extras, merged key by key (never replaced wholesale)
    extra_info: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSONType, nullable=True),
    )

    # Outcome of the last synchronization attempt
    last_fetched_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    last_fetch_error: str | None = Field(default=None, max_length=1000)

    # Relationships
    project: Optional["Project"] = Relationship(back_populates="repositories")
    changesets: list["Changeset"] = Relationship(
        back_populates="repository",
        sa_relationship_kwargs={"passive_deletes": True, "lazy": "noload"},
    )

    @property
    def name(self) -> str:
        """Label shown to users: identifier, else the default marker, else the backend."""
        if self.identifier:
            return self.identifier
        if self.is_default:
            return "Default repository"
        return self.scm_type

    @property
    def identifier_param(self) -> str | None:
        """Path segment addressing this repository (None for the default one)."""
        if self.is_default:
            return None
        if self.identifier:
            return self.identifier
        return str(self.id)

    @property
    def repo_log_encoding(self) -> str:
        encoding = (self.log_encoding or "").strip()
        return encoding or DEFAULT_LOG_ENCODING

    def sort_key(self) -> tuple[int, str]:
        """Default repository first, then by identifier."""
        return (0 if self.is_default else 1, self.identifier or "")
