"""Integration test conftest.

Inherits the root conftest.py fixtures (db_session, test_project,
test_repository, fake_backend, ...) and marks every test in this
directory as integration. Real SQL runs against the in-memory SQLite
database of each test.
"""

import pytest


@pytest.fixture(autouse=True)
def _mark_integration(request):
    """Auto-mark all tests in this directory as integration."""
    request.node.add_marker(pytest.mark.integration)


@pytest.fixture
async def second_project(db_session):
    """Another active project, for cross-project isolation checks."""
    from scmlink.domain.project_operations import project_ops

    project = await project_ops.create(db_session, {"name": "Other", "identifier": "other"})
    await db_session.commit()
    return project
