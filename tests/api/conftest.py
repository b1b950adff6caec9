"""API test fixtures.

Builds on root conftest fixtures (db_session, test_project,
test_repository, fake_backend, api_client).
"""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tests.helpers.fake_adapter import make_commit


@pytest.fixture
async def synced_repository(db_session: AsyncSession, test_repository, fake_backend):
    """test_repository with three commits ingested."""
    from scmlink.services.sync import sync_repository

    fake_backend.commits = [
        make_commit(1, author="alice"),
        make_commit(2, author="bob"),
        make_commit(3, author="alice", message="Fix crash, refs #1"),
    ]
    fake_backend.files = {"README.md": b"# Hello\n", "src/app.py": b"print('hi')\n"}
    fake_backend.branches = {"main", "develop"}
    await sync_repository(db_session, test_repository)
    return test_repository
