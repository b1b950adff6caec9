"""Create project, repository and changeset tables

Revision ID: a3f1c2d4e5b6
Revises:
Create Date: 2026-10-19 09:00:00.000000

Initial schema: the minimal project, user and work item tables the
repository module refers to, repositories, and the changeset store
(changesets, changes, parent links, work item links).
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a3f1c2d4e5b6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("login", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_login", "users", ["login"], unique=True)
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "projects",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("identifier", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column(
            "repository_module_enabled", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_id", "projects", ["id"])
    op.create_index("ix_projects_name", "projects", ["name"])
    op.create_index("ix_projects_identifier", "projects", ["identifier"], unique=True)
    op.create_index("ix_projects_status", "projects", ["status"])

    op.create_table(
        "work_items",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("status", sa.String(50), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "number", name="uq_work_item_number"),
    )
    op.create_index("ix_work_items_id", "work_items", ["id"])
    op.create_index("ix_work_items_project_id", "work_items", ["project_id"])
    op.create_index("ix_work_items_status", "work_items", ["status"])

    op.create_table(
        "repositories",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("identifier", sa.String(255), nullable=True),
        sa.Column("url", sa.String(1000), nullable=False),
        sa.Column("root_url", sa.String(1000), nullable=True),
        sa.Column("login", sa.String(255), nullable=True),
        # Fernet ciphertext of a password of at most 255 characters
        sa.Column("password", sa.String(1000), nullable=True),
        sa.Column("log_encoding", sa.String(64), nullable=True),
        sa.Column("path_encoding", sa.String(64), nullable=True),
        sa.Column("scm_type", sa.String(30), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("extra_info", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("last_fetched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_fetch_error", sa.String(1000), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "identifier", name="uq_repository_identifier"),
    )
    op.create_index("ix_repositories_id", "repositories", ["id"])
    op.create_index("ix_repositories_project_id", "repositories", ["project_id"])
    op.create_index("ix_repositories_identifier", "repositories", ["identifier"])
    op.create_index("ix_repositories_scm_type", "repositories", ["scm_type"])
    op.create_index(
        "uq_repository_default",
        "repositories",
        ["project_id"],
        unique=True,
        postgresql_where=sa.text("is_default"),
    )

    op.create_table(
        "changesets",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("repository_id", sa.UUID(), nullable=False),
        sa.Column("revision", sa.String(255), nullable=False),
        sa.Column("committer", sa.String(255), nullable=True),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("committed_on", sa.DateTime(timezone=True), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["repository_id"], ["repositories.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("repository_id", "revision", name="uq_changeset_revision"),
    )
    op.create_index("ix_changesets_user_id", "changesets", ["user_id"])
    op.create_index(
        "ix_changesets_repository_committed_on", "changesets", ["repository_id", "committed_on"]
    )
    op.create_index(
        "ix_changesets_repository_committer", "changesets", ["repository_id", "committer"]
    )

    op.create_table(
        "changes",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("changeset_id", sa.BigInteger(), nullable=False),
        sa.Column("action", sa.String(1), nullable=False),
        sa.Column("path", sa.Text(), nullable=False),
        sa.Column("from_path", sa.Text(), nullable=True),
        sa.Column("from_revision", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["changeset_id"], ["changesets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_changes_changeset_path", "changes", ["changeset_id", "path"])

    op.create_table(
        "changeset_parents",
        sa.Column("changeset_id", sa.BigInteger(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("parent_revision", sa.String(255), nullable=False),
        sa.Column("parent_id", sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(["changeset_id"], ["changesets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parent_id"], ["changesets.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("changeset_id", "position"),
    )
    op.create_index("ix_changeset_parents_parent_id", "changeset_parents", ["parent_id"])

    op.create_table(
        "changeset_work_items",
        sa.Column("changeset_id", sa.BigInteger(), nullable=False),
        sa.Column("work_item_id", sa.UUID(), nullable=False),
        sa.Column("action", sa.String(10), nullable=False, server_default="refs"),
        sa.ForeignKeyConstraint(["changeset_id"], ["changesets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["work_item_id"], ["work_items.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("changeset_id", "work_item_id"),
    )


def downgrade() -> None:
    op.drop_table("changeset_work_items")
    op.drop_index("ix_changeset_parents_parent_id", table_name="changeset_parents")
    op.drop_table("changeset_parents")
    op.drop_index("ix_changes_changeset_path", table_name="changes")
    op.drop_table("changes")
    op.drop_index("ix_changesets_repository_committer", table_name="changesets")
    op.drop_index("ix_changesets_repository_committed_on", table_name="changesets")
    op.drop_index("ix_changesets_user_id", table_name="changesets")
    op.drop_table("changesets")
    op.drop_index("uq_repository_default", table_name="repositories")
    op.drop_index("ix_repositories_scm_type", table_name="repositories")
    op.drop_index("ix_repositories_identifier", table_name="repositories")
    op.drop_index("ix_repositories_project_id", table_name="repositories")
    op.drop_index("ix_repositories_id", table_name="repositories")
    op.drop_table("repositories")
    op.drop_index("ix_work_items_status", table_name="work_items")
    op.drop_index("ix_work_items_project_id", table_name="work_items")
    op.drop_index("ix_work_items_id", table_name="work_items")
    op.drop_table("work_items")
    op.drop_index("ix_projects_status", table_name="projects")
    op.drop_index("ix_projects_identifier", table_name="projects")
    op.drop_index("ix_projects_name", table_name="projects")
    op.drop_index("ix_projects_id", table_name="projects")
    op.drop_table("projects")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_login", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
