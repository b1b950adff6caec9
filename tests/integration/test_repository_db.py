"""DB integration tests for RepositoryOperations.

Covers: default-repository invariant, identifier uniqueness per project,
URL-segment lookup, delete cascade and successor promotion, committer
mapping, and password encryption at rest.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.core.encryption import CredentialCipher
from scmlink.core.exceptions import ConstraintViolation, ValidationError
from scmlink.domain.changeset_operations import changeset_ops
from scmlink.domain.repository_operations import repository_ops
from scmlink.models.changeset import Change, Changeset, ChangesetParent
from scmlink.models.repository import Repository

from tests.helpers.fake_adapter import make_commit


async def _create(db: AsyncSession, project, **overrides):
    data = {"project_id": project.id, "scm_type": "fake", "url": "fake://main"}
    data.update(overrides)
    repository = await repository_ops.create(db, data)
    await db.commit()
    return repository


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


# ─────────────────────────────────────────────────────────────────────────────
# Default repository invariant
# ─────────────────────────────────────────────────────────────────────────────


class TestDefaultRepository:
    """Exactly one default repository per project."""

    async def test_first_repository_is_default(self, db_session: AsyncSession, test_project):
        repository = await _create(db_session, test_project)

        assert repository.is_default is True
        assert repository.identifier is None
        assert repository.name == "Default repository"

    async def test_set_default_moves_flag(self, db_session: AsyncSession, test_project):
        first = await _create(db_session, test_project, identifier="main")
        second = await _create(db_session, test_project, identifier="docs")
        assert second.is_default is False

        await repository_ops.set_default(db_session, second)
        await db_session.commit()
        await db_session.refresh(first)

        assert second.is_default is True
        assert first.is_default is False
        default = await repository_ops.get_default(db_session, test_project.id)
        assert default.id == second.id

    async def test_create_as_default_replaces_existing(
        self, db_session: AsyncSession, test_project
    ):
        first = await _create(db_session, test_project, identifier="main")
        second = await _create(db_session, test_project, identifier="docs", is_default=True)
        await db_session.refresh(first)

        assert second.is_default is True
        assert first.is_default is False

    async def test_update_to_default_clears_sibling(self, db_session: AsyncSession, test_project):
        first = await _create(db_session, test_project, identifier="main")
        second = await _create(db_session, test_project, identifier="docs")

        await repository_ops.update(db_session, second, {"is_default": True})
        await db_session.commit()
        await db_session.refresh(first)

        assert first.is_default is False
        defaults = [r for r in await repository_ops.get_by_project(db_session, test_project.id) if r.is_default]
        assert [r.id for r in defaults] == [second.id]

    async def test_second_default_rejected_by_database(
        self, db_session: AsyncSession, test_project
    ):
        await _create(db_session, test_project, identifier="main")

        db_session.add(
            Repository(
                project_id=test_project.id,
                scm_type="fake",
                url="fake://docs",
                identifier="docs",
                is_default=True,
            )
        )
        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()

    async def test_default_without_identifier_cannot_be_replaced(
        self, db_session: AsyncSession, test_project
    ):
        first = await _create(db_session, test_project)
        second = await _create(db_session, test_project, identifier="docs")
        first_id, second_id = first.id, second.id

        with pytest.raises(ValidationError) as exc_info:
            await repository_ops.set_default(db_session, second)
        await db_session.rollback()

        assert "is_default" in exc_info.value.errors
        default = await repository_ops.get_default(db_session, test_project.id)
        assert default.id == first_id

        # Once named, the old default can give up the flag
        first = await repository_ops.get(db_session, first_id)
        await repository_ops.update(db_session, first, {"identifier": "main"})
        second = await repository_ops.get(db_session, second_id)
        await repository_ops.set_default(db_session, second)
        await db_session.commit()

        default = await repository_ops.get_default(db_session, test_project.id)
        assert default.id == second_id

    async def test_default_listed_first(self, db_session: AsyncSession, test_project):
        await _create(db_session, test_project, identifier="zeta")
        await _create(db_session, test_project, identifier="alpha")
        await _create(db_session, test_project, identifier="beta")

        repositories = await repository_ops.get_by_project(db_session, test_project.id)

        assert [r.identifier for r in repositories] == ["zeta", "alpha", "beta"]

    async def test_count_by_project(self, db_session: AsyncSession, test_project, second_project):
        await _create(db_session, test_project, identifier="main")
        await _create(db_session, test_project, identifier="docs")
        await _create(db_session, second_project, identifier="main")

        assert await repository_ops.count_by_project(db_session, test_project.id) == 2
        assert await repository_ops.count_by_project(db_session, second_project.id) == 1


# ─────────────────────────────────────────────────────────────────────────────
# Identifiers
# ─────────────────────────────────────────────────────────────────────────────


class TestIdentifiers:
    async def test_duplicate_identifier_in_project_rejected(
        self, db_session: AsyncSession, test_project
    ):
        await _create(db_session, test_project, identifier="main")

        with pytest.raises(ConstraintViolation):
            await repository_ops.create(
                db_session,
                {"project_id": test_project.id, "scm_type": "fake", "url": "fake://x", "identifier": "main"},
            )

    async def test_same_identifier_in_other_project_allowed(
        self, db_session: AsyncSession, test_project, second_project
    ):
        await _create(db_session, test_project, identifier="main")
        other = await _create(db_session, second_project, identifier="main")

        assert other.identifier == "main"

    async def test_rename_to_taken_identifier_rejected(
        self, db_session: AsyncSession, test_project
    ):
        await _create(db_session, test_project, identifier="main")
        docs = await _create(db_session, test_project, identifier="docs")

        with pytest.raises(ConstraintViolation):
            await repository_ops.update(db_session, docs, {"identifier": "main"})

    async def test_keeping_own_identifier_allowed(self, db_session: AsyncSession, test_project):
        main = await _create(db_session, test_project, identifier="main")

        updated = await repository_ops.update(db_session, main, {"identifier": "main", "url": "fake://y"})

        assert updated.url == "fake://y"

    async def test_reserved_identifier_rejected(self, db_session: AsyncSession, test_project):
        with pytest.raises(ValidationError) as exc_info:
            await _create(db_session, test_project, identifier="diff")

        assert exc_info.value.errors["identifier"] == "is reserved"

    async def test_lookup_by_identifier_param(
        self, db_session: AsyncSession, test_project, second_project
    ):
        default = await _create(db_session, test_project, identifier="main")
        docs = await _create(db_session, test_project, identifier="docs")
        foreign = await _create(db_session, second_project, identifier="other")

        assert (await repository_ops.get_by_identifier_param(db_session, test_project.id, None)).id == default.id
        assert (await repository_ops.get_by_identifier_param(db_session, test_project.id, "docs")).id == docs.id
        assert (
            await repository_ops.get_by_identifier_param(db_session, test_project.id, str(docs.id))
        ).id == docs.id
        assert await repository_ops.get_by_identifier_param(db_session, test_project.id, "nope") is None
        assert (
            await repository_ops.get_by_identifier_param(db_session, test_project.id, str(foreign.id))
            is None
        )


# ─────────────────────────────────────────────────────────────────────────────
# Delete
# ─────────────────────────────────────────────────────────────────────────────


class TestDelete:
    async def test_delete_removes_history(self, db_session: AsyncSession, test_project):
        repository = await _create(db_session, test_project, identifier="main")
        keep = await _create(db_session, test_project, identifier="docs")
        for n in (1, 2, 3):
            await changeset_ops.create_from_record(db_session, repository.id, make_commit(n))
            await changeset_ops.create_from_record(db_session, keep.id, make_commit(n))
        await db_session.commit()

        await repository_ops.delete(db_session, repository)
        await db_session.commit()

        assert await repository_ops.get(db_session, repository.id) is None
        assert await changeset_ops.count(db_session, repository.id) == 0
        assert await changeset_ops.count(db_session, keep.id) == 3
        assert await _count(db_session, Changeset) == 3
        assert await _count(db_session, Change) == 3
        # Commit 1 of the kept repository has no parent
        assert await _count(db_session, ChangesetParent) == 2

    async def test_deleting_default_promotes_oldest_sibling(
        self, db_session: AsyncSession, test_project
    ):
        default = await _create(db_session, test_project, identifier="main")
        older = await _create(db_session, test_project, identifier="older")
        await _create(db_session, test_project, identifier="newer")

        await repository_ops.delete(db_session, default)
        await db_session.commit()

        promoted = await repository_ops.get_default(db_session, test_project.id)
        assert promoted.id == older.id

    async def test_deleting_last_repository(self, db_session: AsyncSession, test_project):
        only = await _create(db_session, test_project)

        await repository_ops.delete(db_session, only)
        await db_session.commit()

        assert await repository_ops.get_by_project(db_session, test_project.id) == []

    async def test_clear_changesets(self, db_session: AsyncSession, test_project):
        repository = await _create(db_session, test_project)
        await changeset_ops.create_from_record(db_session, repository.id, make_commit(1))
        await repository_ops.record_fetch_result(db_session, repository, "boom")
        await db_session.commit()

        removed = await repository_ops.clear_changesets(db_session, repository)
        await db_session.commit()

        assert removed == 1
        assert await changeset_ops.get_marker(db_session, repository.id) is None
        assert repository.last_fetched_at is None
        assert repository.last_fetch_error is None


# ─────────────────────────────────────────────────────────────────────────────
# Extra info and credentials
# ─────────────────────────────────────────────────────────────────────────────


class TestExtraInfoAndCredentials:
    async def test_merge_extra_info_persists(self, db_session: AsyncSession, test_project):
        repository = await _create(db_session, test_project, extra_info={"a": 1})

        await repository_ops.merge_extra_info(db_session, repository, {"b": 2})
        await db_session.commit()
        await db_session.refresh(repository)

        assert repository.extra_info == {"a": 1, "b": 2}

    async def test_password_encrypted_at_rest(self, db_session: AsyncSession, test_project):
        cipher = CredentialCipher(Fernet.generate_key().decode())
        with patch("scmlink.domain.repository_operations.credential_cipher", cipher):
            repository = await _create(db_session, test_project, password="s3cret")

            assert repository.password != "s3cret"
            assert repository.password.startswith("gAAAAA")
            assert repository_ops.get_decrypted_password(repository) == "s3cret"
            assert repository_ops.get_adapter(repository).password == "s3cret"

    async def test_unchanged_password_keeps_ciphertext(
        self, db_session: AsyncSession, test_project
    ):
        cipher = CredentialCipher(Fernet.generate_key().decode())
        with patch("scmlink.domain.repository_operations.credential_cipher", cipher):
            repository = await _create(db_session, test_project, password="s3cret")
            stored = repository.password

            await repository_ops.update(db_session, repository, {"password": "s3cret"})

            assert repository.password == stored


# ─────────────────────────────────────────────────────────────────────────────
# Committers
# ─────────────────────────────────────────────────────────────────────────────


class TestCommitters:
    async def test_committers_and_mapping(self, db_session: AsyncSession, test_project, test_user):
        repository = await _create(db_session, test_project)
        await changeset_ops.create_from_record(db_session, repository.id, make_commit(1, author="alice"))
        await changeset_ops.create_from_record(db_session, repository.id, make_commit(2, author="bob"))
        await changeset_ops.create_from_record(db_session, repository.id, make_commit(3, author="alice"))
        await changeset_ops.create_from_record(db_session, repository.id, make_commit(4, author=None))
        await db_session.commit()

        assert await repository_ops.committers(db_session, repository) == [
            ("alice", None),
            ("bob", None),
        ]

        updated = await repository_ops.apply_committer_map(db_session, repository, {"alice": test_user.id})
        await db_session.commit()

        assert updated == 2
        assert await repository_ops.committers(db_session, repository) == [
            ("alice", test_user.id),
            ("bob", None),
        ]

        await repository_ops.apply_committer_map(db_session, repository, {"alice": None})
        await db_session.commit()

        assert await repository_ops.committers(db_session, repository) == [
            ("alice", None),
            ("bob", None),
        ]
