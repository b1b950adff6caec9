import uuid as uuid_pkg
from datetime import datetime

from sqlalchemy import DateTime, func
from sqlmodel import Field, SQLModel

from scmlink.models.base import utcnow


class User(SQLModel, table=True):
    """
    User directory entry.

    Accounts are owned by the surrounding application; this table is the
    read side the committer resolver looks users up in (exact login or
    exact email, nothing fuzzier).
    """

    __tablename__ = "users"

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        index=True,
        nullable=False,
    )
    login: str = Field(max_length=255, unique=True, index=True)
    email: str | None = Field(default=None, max_length=255, index=True)
    display_name: str | None = Field(default=None, max_length=100)

    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": func.now()},
    )
