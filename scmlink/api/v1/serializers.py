"""Dict serializers for API responses."""

from dataclasses import asdict
from typing import Any

from scmlink.models.changeset import Changeset
from scmlink.models.repository import Repository
from scmlink.scm.types import Entry


def serialize_repository(r: Repository) -> dict[str, Any]:
    """Serialize a repository; the password never leaves the server."""
    return {
        "id": str(r.id),
        "project_id": str(r.project_id),
        "name": r.name,
        "identifier": r.identifier,
        "identifier_param": r.identifier_param,
        "scm_type": r.scm_type,
        "url": r.url,
        "root_url": r.root_url,
        "login": r.login,
        "has_password": bool(r.password),
        "log_encoding": r.log_encoding,
        "path_encoding": r.path_encoding,
        "is_default": r.is_default,
        "extra_info": r.extra_info or {},
        "last_fetched_at": r.last_fetched_at.isoformat() if r.last_fetched_at else None,
        "last_fetch_error": r.last_fetch_error,
        "created_at": r.created_at.isoformat(),
        "updated_at": r.updated_at.isoformat(),
    }


def serialize_changeset(c: Changeset, parents: list[str] | None = None) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": c.id,
        "revision": c.revision,
        "committer": c.committer,
        "user_id": str(c.user_id) if c.user_id else None,
        "committed_on": c.committed_on.isoformat(),
        "comments": c.comments,
        "changes": [
            {
                "action": change.action,
                "path": change.path,
                "from_path": change.from_path,
                "from_revision": change.from_revision,
            }
            for change in c.changes
        ],
    }
    if parents is not None:
        data["parents"] = parents
    return data


def serialize_entry(entry: Entry) -> dict[str, Any]:
    return asdict(entry)
