"""Request and response bodies of the repository API that are not table models."""

import uuid as uuid_pkg

from pydantic import BaseModel, Field


class CommitterRead(BaseModel):
    """A distinct committer string and the user it is mapped to."""

    committer: str
    user_id: uuid_pkg.UUID | None = None


class CommitterMapUpdate(BaseModel):
    """Administrator override of committer → user mappings.

    A null user id clears the mapping for that committer.
    """

    mapping: dict[str, uuid_pkg.UUID | None] = Field(
        description="Committer string as recorded in changesets → user id"
    )


class ScmBackendRead(BaseModel):
    """A registered SCM backend."""

    scm_type: str = Field(description="Tag stored in Repository.scm_type, e.g. 'git'")
    name: str
    enabled: bool = Field(description="Whether new repositories may use this backend")
