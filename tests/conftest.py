"""Root conftest — test infrastructure for all tests.

Provides:
- Per-test in-memory SQLite database (aiosqlite) with the full schema
- db_session / session_maker fixtures
- Test user, project and repository fixtures
- API client with get_db overridden
- The in-memory "fake" SCM backend, enabled for repository creation
"""

from __future__ import annotations

import uuid

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import scmlink.models  # noqa: F401
from scmlink.config.settings import settings
from tests.helpers.fake_adapter import FakeAdapter, FakeBackend

# ─────────────────────────────────────────────────────────────────────────────
# Markers
# ─────────────────────────────────────────────────────────────────────────────


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: tests against the SQLite test database")


# ─────────────────────────────────────────────────────────────────────────────
# Database (fresh in-memory SQLite per test)
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
async def test_engine():
    """In-memory database shared by every session of one test.

    StaticPool keeps a single connection so all sessions see the same
    database; tests that run several sessions must not run them
    concurrently.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return sessionmaker(  # type: ignore[call-overload]
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def test_user(db_session: AsyncSession):
    from scmlink.models.user import User

    user = User(
        login="jsmith",
        email="jsmith@example.com",
        display_name="John Smith",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def test_project(db_session: AsyncSession):
    from scmlink.domain.project_operations import project_ops

    project = await project_ops.create(
        db_session,
        {"name": "Test Project", "identifier": f"test-{uuid.uuid4().hex[:8]}"},
    )
    await db_session.commit()
    return project


# ─────────────────────────────────────────────────────────────────────────────
# SCM backend
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def fake_scm(monkeypatch):
    """Enable the fake backend and give each test an empty backend registry."""
    monkeypatch.setattr(settings, "enabled_scm", ["git", "github", "fake"])
    FakeAdapter.backends = {}
    FakeAdapter.closed = 0
    yield FakeAdapter.backends


@pytest.fixture
def fake_backend(fake_scm) -> FakeBackend:
    """Backend behind the URL "fake://main"."""
    backend = FakeBackend()
    fake_scm["fake://main"] = backend
    return backend


@pytest.fixture
async def test_repository(db_session: AsyncSession, test_project, fake_backend):  # noqa: ARG001
    """Default fake repository of test_project."""
    from scmlink.domain.repository_operations import repository_ops

    repository = await repository_ops.create(
        db_session,
        {
            "project_id": test_project.id,
            "scm_type": "fake",
            "url": "fake://main",
            "identifier": "main",
        },
    )
    await db_session.commit()
    return repository


# ─────────────────────────────────────────────────────────────────────────────
# API Client
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
async def api_client(db_session: AsyncSession):
    """HTTP client whose requests run on the test session.

    The application lifespan (scheduler) is not started.
    """
    from scmlink.core.database import get_db
    from scmlink.main import app

    async def override_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
