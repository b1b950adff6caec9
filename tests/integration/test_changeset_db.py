"""DB integration tests for ChangesetOperations.

Covers: record ingestion with changes and parent links, the last-ingested
marker, revision lookup by prefix, latest changesets by path and revision,
and work item links.
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.domain.changeset_operations import changeset_ops
from scmlink.domain.work_item_operations import work_item_ops
from scmlink.scm.types import ChangedPath, CommitRecord

from tests.helpers.fake_adapter import BASE_TIME, make_commit


def _record(revision: str, hours: int = 0, paths: list[str] | None = None) -> CommitRecord:
    return CommitRecord(
        revision=revision,
        author="jsmith",
        committed_on=BASE_TIME + timedelta(hours=hours),
        message=f"Commit {revision}",
        changes=[ChangedPath("M", p) for p in (paths or ["src/a.py"])],
    )


# ─────────────────────────────────────────────────────────────────────────────
# Ingestion
# ─────────────────────────────────────────────────────────────────────────────


class TestCreateFromRecord:
    async def test_changes_get_leading_slash(self, db_session: AsyncSession, test_repository):
        record = make_commit(
            1,
            changes=[
                ChangedPath("A", "src/new.py"),
                ChangedPath("R", "/src/b.py", from_path="src/a.py", from_revision="f" * 40),
            ],
        )

        changeset = await changeset_ops.create_from_record(db_session, test_repository.id, record)
        await db_session.commit()
        stored = await changeset_ops.get(db_session, changeset.id)

        assert [(c.action, c.path) for c in stored.changes] == [("A", "/src/new.py"), ("R", "/src/b.py")]
        assert stored.changes[1].from_path == "/src/a.py"
        assert stored.changes[1].from_revision == "f" * 40
        assert stored.committer == "John Smith <jsmith@example.com>"

    async def test_parents_kept_in_order(self, db_session: AsyncSession, test_repository):
        first = await changeset_ops.create_from_record(db_session, test_repository.id, make_commit(1))
        merge = make_commit(3, parents=[first.revision, "e" * 40])

        changeset = await changeset_ops.create_from_record(db_session, test_repository.id, merge)
        await db_session.commit()

        assert await changeset_ops.get_parents(db_session, changeset.id) == [first.revision, "e" * 40]

    async def test_marker_is_last_ingested_not_latest_date(
        self, db_session: AsyncSession, test_repository
    ):
        assert await changeset_ops.get_marker(db_session, test_repository.id) is None

        await changeset_ops.create_from_record(db_session, test_repository.id, _record("b" * 40, hours=5))
        await changeset_ops.create_from_record(db_session, test_repository.id, _record("a" * 40, hours=1))
        await db_session.commit()

        assert await changeset_ops.get_marker(db_session, test_repository.id) == "a" * 40
        assert await changeset_ops.exists(db_session, test_repository.id, "b" * 40)
        assert not await changeset_ops.exists(db_session, test_repository.id, "c" * 40)


# ─────────────────────────────────────────────────────────────────────────────
# Revision lookup
# ─────────────────────────────────────────────────────────────────────────────


class TestFindByRevisionPrefix:
    async def test_abbreviated_revision(self, db_session: AsyncSession, test_repository):
        await changeset_ops.create_from_record(db_session, test_repository.id, _record("abc123" + "0" * 34))
        await changeset_ops.create_from_record(db_session, test_repository.id, _record("def456" + "0" * 34))
        await db_session.commit()

        found = await changeset_ops.find_by_revision_prefix(db_session, test_repository.id, "abc1")

        assert found.revision.startswith("abc123")

    async def test_numeric_token_matches_exactly_on_numeric_backend(
        self, db_session: AsyncSession, test_repository
    ):
        await changeset_ops.create_from_record(db_session, test_repository.id, _record("1234", hours=1))
        await changeset_ops.create_from_record(db_session, test_repository.id, _record("12345", hours=2))
        await db_session.commit()

        found = await changeset_ops.find_by_revision_prefix(
            db_session, test_repository.id, "1234", numeric_revisions=True
        )
        missing = await changeset_ops.find_by_revision_prefix(
            db_session, test_repository.id, "123", numeric_revisions=True
        )

        assert found.revision == "1234"
        assert missing is None

    async def test_numeric_token_is_a_prefix_on_hash_backend(
        self, db_session: AsyncSession, test_repository
    ):
        await changeset_ops.create_from_record(db_session, test_repository.id, _record("4215abcdef" + "0" * 30))
        await db_session.commit()

        found = await changeset_ops.find_by_revision_prefix(db_session, test_repository.id, "4215")

        assert found.revision.startswith("4215abcdef")

    async def test_non_ascii_digits_are_not_numeric(self, db_session: AsyncSession, test_repository):
        await changeset_ops.create_from_record(db_session, test_repository.id, _record("²abc"))
        await db_session.commit()

        found = await changeset_ops.find_by_revision_prefix(
            db_session, test_repository.id, "²", numeric_revisions=True
        )

        assert found.revision == "²abc"

    async def test_wildcards_are_literal(self, db_session: AsyncSession, test_repository):
        await changeset_ops.create_from_record(db_session, test_repository.id, _record("abc123"))
        await db_session.commit()

        assert await changeset_ops.find_by_revision_prefix(db_session, test_repository.id, "a%") is None
        assert await changeset_ops.find_by_revision_prefix(db_session, test_repository.id, "a_c") is None

    async def test_scoped_to_repository(
        self, db_session: AsyncSession, test_repository, test_project
    ):
        from scmlink.domain.repository_operations import repository_ops

        other = await repository_ops.create(
            db_session,
            {"project_id": test_project.id, "scm_type": "fake", "url": "fake://b", "identifier": "b"},
        )
        await changeset_ops.create_from_record(db_session, other.id, _record("abc123"))
        await db_session.commit()

        assert await changeset_ops.find_by_revision_prefix(db_session, test_repository.id, "abc") is None


# ─────────────────────────────────────────────────────────────────────────────
# Latest changesets
# ─────────────────────────────────────────────────────────────────────────────


class TestLatestChangesets:
    async def _seed(self, db: AsyncSession, repository_id):
        await changeset_ops.create_from_record(db, repository_id, _record("a" * 40, 1, ["src/a.py"]))
        await changeset_ops.create_from_record(db, repository_id, _record("b" * 40, 2, ["docs/x.md"]))
        await changeset_ops.create_from_record(db, repository_id, _record("c" * 40, 3, ["src/a.py", "src/b.py"]))
        await changeset_ops.create_from_record(db, repository_id, _record("d" * 40, 4, ["src/b.py"]))
        await db.commit()

    async def test_newest_first_with_limit(self, db_session: AsyncSession, test_repository):
        await self._seed(db_session, test_repository.id)

        latest = await changeset_ops.latest_changesets(db_session, test_repository.id, limit=2)

        assert [c.revision[0] for c in latest] == ["d", "c"]

    async def test_ties_broken_by_insertion_order(self, db_session: AsyncSession, test_repository):
        await changeset_ops.create_from_record(db_session, test_repository.id, _record("a" * 40, 1))
        await changeset_ops.create_from_record(db_session, test_repository.id, _record("b" * 40, 1))
        await db_session.commit()

        latest = await changeset_ops.latest_changesets(db_session, test_repository.id)

        assert [c.revision[0] for c in latest] == ["b", "a"]

    async def test_filtered_by_path(self, db_session: AsyncSession, test_repository):
        await self._seed(db_session, test_repository.id)

        latest = await changeset_ops.latest_changesets(db_session, test_repository.id, path="src/a.py")

        assert [c.revision[0] for c in latest] == ["c", "a"]

    async def test_root_path_is_unfiltered(self, db_session: AsyncSession, test_repository):
        await self._seed(db_session, test_repository.id)

        latest = await changeset_ops.latest_changesets(db_session, test_repository.id, path="/")

        assert len(latest) == 4

    async def test_at_or_before_revision(self, db_session: AsyncSession, test_repository):
        await self._seed(db_session, test_repository.id)

        latest = await changeset_ops.latest_changesets(db_session, test_repository.id, revision="bbbb")

        assert [c.revision[0] for c in latest] == ["b", "a"]

    async def test_unknown_revision_is_ignored(self, db_session: AsyncSession, test_repository):
        await self._seed(db_session, test_repository.id)

        latest = await changeset_ops.latest_changesets(db_session, test_repository.id, revision="ffff")

        assert len(latest) == 4

    async def test_numeric_anchor_on_numeric_backend(self, db_session: AsyncSession, test_repository):
        for hours, revision in enumerate(["1", "2", "12"], start=1):
            await changeset_ops.create_from_record(db_session, test_repository.id, _record(revision, hours))
        await db_session.commit()

        exact = await changeset_ops.latest_changesets(
            db_session, test_repository.id, revision="1", numeric_revisions=True
        )
        prefixed = await changeset_ops.latest_changesets(db_session, test_repository.id, revision="1")

        assert [c.revision for c in exact] == ["1"]
        assert [c.revision for c in prefixed] == ["12", "2", "1"]


# ─────────────────────────────────────────────────────────────────────────────
# Work item links
# ─────────────────────────────────────────────────────────────────────────────


class TestWorkItemLinks:
    async def test_link_once(self, db_session: AsyncSession, test_repository, test_project):
        changeset = await changeset_ops.create_from_record(db_session, test_repository.id, make_commit(1))
        item = await work_item_ops.create(
            db_session, {"project_id": test_project.id, "number": 1, "title": "Crash"}
        )

        assert await changeset_ops.add_work_item_link(db_session, changeset.id, item.id) is True
        assert await changeset_ops.add_work_item_link(db_session, changeset.id, item.id) is False
        await db_session.commit()

        assert await changeset_ops.get_work_item_ids(db_session, changeset.id) == [item.id]
