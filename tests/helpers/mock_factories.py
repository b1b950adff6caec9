"""Mock object factories for unit tests.

Creates consistent mock objects that match the real model shapes.
Used in unit tests where the database is fully mocked.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from unittest.mock import MagicMock


def make_mock_user(**overrides: object) -> MagicMock:
    user = MagicMock()
    user.id = overrides.get("id", uuid.uuid4())
    user.login = overrides.get("login", "jsmith")
    user.email = overrides.get("email", "jsmith@example.com")
    user.display_name = overrides.get("display_name", "John Smith")
    user.created_at = overrides.get("created_at", datetime.now(UTC))
    return user


def make_mock_project(**overrides: object) -> MagicMock:
    project = MagicMock()
    project.id = overrides.get("id", uuid.uuid4())
    project.name = overrides.get("name", "__test_project")
    project.identifier = overrides.get("identifier", "test-project")
    project.status = overrides.get("status", "active")
    project.repository_module_enabled = overrides.get("repository_module_enabled", True)
    project.created_at = overrides.get("created_at", datetime.now(UTC))
    project.updated_at = overrides.get("updated_at", datetime.now(UTC))
    return project


def make_mock_repository(**overrides: object) -> MagicMock:
    repo = MagicMock()
    repo.id = overrides.get("id", uuid.uuid4())
    repo.project_id = overrides.get("project_id", uuid.uuid4())
    repo.identifier = overrides.get("identifier", "main-repo")
    repo.url = overrides.get("url", "/srv/git/main.git")
    repo.root_url = overrides.get("root_url")
    repo.login = overrides.get("login")
    repo.password = overrides.get("password")
    repo.log_encoding = overrides.get("log_encoding")
    repo.path_encoding = overrides.get("path_encoding")
    repo.repo_log_encoding = overrides.get("repo_log_encoding", "UTF-8")
    repo.scm_type = overrides.get("scm_type", "git")
    repo.is_default = overrides.get("is_default", False)
    repo.extra_info = overrides.get("extra_info")
    repo.last_fetched_at = overrides.get("last_fetched_at")
    repo.last_fetch_error = overrides.get("last_fetch_error")
    repo.name = overrides.get("name", repo.identifier or "Default repository")
    repo.created_at = overrides.get("created_at", datetime.now(UTC))
    repo.updated_at = overrides.get("updated_at", datetime.now(UTC))
    repo.sort_key.return_value = (0 if repo.is_default else 1, repo.identifier or "")
    return repo


def make_mock_changeset(**overrides: object) -> MagicMock:
    changeset = MagicMock()
    changeset.id = overrides.get("id", 1)
    changeset.repository_id = overrides.get("repository_id", uuid.uuid4())
    changeset.revision = overrides.get("revision", "a" * 40)
    changeset.committer = overrides.get("committer", "John Smith <jsmith@example.com>")
    changeset.user_id = overrides.get("user_id")
    changeset.committed_on = overrides.get("committed_on", datetime.now(UTC))
    changeset.comments = overrides.get("comments", "Initial commit")
    changeset.changes = overrides.get("changes", [])
    return changeset


def make_mock_work_item(**overrides: object) -> MagicMock:
    item = MagicMock()
    item.id = overrides.get("id", uuid.uuid4())
    item.project_id = overrides.get("project_id", uuid.uuid4())
    item.number = overrides.get("number", 1)
    item.title = overrides.get("title", "Test work item")
    item.status = overrides.get("status", "todo")
    return item


def mock_scalars_result(values: list) -> MagicMock:
    """Create a mock execute() result that yields values via .scalars().all()."""
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    result.scalars.return_value.first.return_value = values[0] if values else None
    return result


def mock_scalar_result(value: object) -> MagicMock:
    """Create a mock execute() result that yields a single value."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar.return_value = value
    result.first.return_value = (value,) if value is not None else None
    return result


def mock_rows_result(rows: list[tuple]) -> MagicMock:
    """Create a mock execute() result that yields tuples via .all()."""
    result = MagicMock()
    result.all.return_value = rows
    return result
