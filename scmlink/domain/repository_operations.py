"""Repository registry operations.

Repositories belong to a project. Exactly one repository per project is the
default one; it is the only repository allowed to have no identifier.
Passwords are stored encrypted and decrypted only when an adapter is built.
"""

import logging
import uuid as uuid_pkg
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.core.encryption import credential_cipher
from scmlink.core.exceptions import ConstraintViolation, NotFoundError, ValidationError
from scmlink.domain.changeset_operations import changeset_ops
from scmlink.domain.project_operations import project_ops
from scmlink.domain.repository_validation import normalize_payload, validate_repository_fields
from scmlink.domain.user_operations import user_ops
from scmlink.models.base import utcnow
from scmlink.models.changeset import Changeset
from scmlink.models.repository import Repository
from scmlink.scm.base import ScmAdapter
from scmlink.scm.exceptions import BackendError
from scmlink.scm.registry import available_scm, build_adapter, get_adapter_class, is_enabled

if TYPE_CHECKING:
    from scmlink.services.sync.identity import CommitterResolver

logger = logging.getLogger(__name__)

FETCH_ERROR_MAX_LENGTH = 1000


class RepositoryOperations:
    """CRUD and invariant-keeping operations for Repository."""

    def __init__(self) -> None:
        self.model = Repository

    async def get(self, db: AsyncSession, id: uuid_pkg.UUID) -> Repository | None:
        """Get a repository by ID."""
        statement = select(Repository).where(Repository.id == id)
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_project(
        self, db: AsyncSession, project_id: uuid_pkg.UUID
    ) -> list[Repository]:
        """Repositories of a project, default first, then by identifier."""
        statement = select(Repository).where(Repository.project_id == project_id)
        result = await db.execute(statement)
        return sorted(result.scalars().all(), key=Repository.sort_key)

    async def count_by_project(self, db: AsyncSession, project_id: uuid_pkg.UUID) -> int:
        statement = select(func.count(Repository.id)).where(  # type: ignore[arg-type]
            Repository.project_id == project_id
        )
        result = await db.execute(statement)
        return result.scalar() or 0

    async def get_default(self, db: AsyncSession, project_id: uuid_pkg.UUID) -> Repository | None:
        statement = select(Repository).where(
            Repository.project_id == project_id,
            Repository.is_default.is_(True),  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return result.scalars().first()

    async def get_by_identifier_param(
        self, db: AsyncSession, project_id: uuid_pkg.UUID, param: str | None
    ) -> Repository | None:
        """
        Find a repository from a URL segment.

        No segment addresses the default repository. Otherwise the segment
        is matched against identifiers first, then as a repository id.
        """
        if not param:
            return await self.get_default(db, project_id)

        statement = select(Repository).where(
            Repository.project_id == project_id, Repository.identifier == param
        )
        result = await db.execute(statement)
        repository = result.scalar_one_or_none()
        if repository is not None:
            return repository

        try:
            repository_id = uuid_pkg.UUID(param)
        except ValueError:
            return None
        repository = await self.get(db, repository_id)
        if repository is None or repository.project_id != project_id:
            return None
        return repository

    async def _ensure_identifier_available(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        identifier: str | None,
        exclude_id: uuid_pkg.UUID | None = None,
    ) -> None:
        if identifier is None:
            return
        statement = select(Repository.id).where(
            Repository.project_id == project_id, Repository.identifier == identifier
        )
        if exclude_id is not None:
            statement = statement.where(Repository.id != exclude_id)
        result = await db.execute(statement)
        if result.first() is not None:
            raise ConstraintViolation(f"Identifier '{identifier}' has already been taken")

    async def _clear_default(
        self, db: AsyncSession, project_id: uuid_pkg.UUID, keep_id: uuid_pkg.UUID | None
    ) -> None:
        """Drop the default flag from every repository of the project but `keep_id`.

        Raises:
            ValidationError: The current default has no identifier and could
                not be addressed once it is no longer the default
        """
        anonymous = select(Repository.id).where(
            Repository.project_id == project_id,
            Repository.is_default.is_(True),  # type: ignore[attr-defined]
            Repository.identifier.is_(None),  # type: ignore[union-attr]
        )
        if keep_id is not None:
            anonymous = anonymous.where(Repository.id != keep_id)
        if (await db.execute(anonymous)).first() is not None:
            raise ValidationError(
                {"is_default": "the current default repository needs an identifier first"}
            )

        statement = update(Repository).where(
            Repository.project_id == project_id,
            Repository.is_default.is_(True),  # type: ignore[attr-defined]
        )
        if keep_id is not None:
            statement = statement.where(Repository.id != keep_id)
        await db.execute(
            statement.values(is_default=False).execution_options(synchronize_session="fetch")
        )

    async def create(self, db: AsyncSession, obj_in: dict[str, Any]) -> Repository:
        """
        Create a repository.

        The project's first repository becomes its default automatically.
        Keys prefixed with `extra_` are merged into extra_info.

        Raises:
            ValidationError: Invalid fields, or no identifier on a non-default repository
            ConstraintViolation: Identifier already used in the project
            NotFoundError: Project does not exist
        """
        data = normalize_payload(obj_in)
        validate_repository_fields(data, creating=True)

        project_id = data["project_id"]
        if await project_ops.get(db, project_id) is None:
            raise NotFoundError("Project")

        if await self.count_by_project(db, project_id) == 0:
            data["is_default"] = True
        if not data.get("is_default") and data.get("identifier") is None:
            raise ValidationError({"identifier": "can't be blank"})

        await self._ensure_identifier_available(db, project_id, data.get("identifier"))

        if data.get("password"):
            data["password"] = credential_cipher.encrypt(data["password"])
        else:
            data["password"] = None

        if data.get("is_default"):
            await self._clear_default(db, project_id, keep_id=None)

        db_obj = Repository(**data)
        db.add(db_obj)
        try:
            await db.flush()
        except IntegrityError as e:
            raise ConstraintViolation("Repository violates a uniqueness constraint") from e
        await db.refresh(db_obj)

        logger.info(
            f"Created {db_obj.scm_type} repository {db_obj.name!r} in project {project_id}"
        )
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        db_obj: Repository,
        obj_in: dict[str, Any],
    ) -> Repository:
        """
        Update a repository with the keys present in `obj_in`.

        extra_info (and `extra_*` keys) is merged, not replaced. The password
        is only re-encrypted when it actually changes. Becoming default
        clears the flag on siblings; the default flag cannot be dropped
        directly, set another repository as default instead.
        """
        data = normalize_payload(obj_in)
        data.pop("scm_type", None)
        data.pop("project_id", None)
        validate_repository_fields(data, creating=False)

        extra = data.pop("extra_info", None)
        make_default = data.pop("is_default", None)

        if make_default is False and db_obj.is_default:
            raise ConstraintViolation(
                "The default repository cannot be unset; set another repository as default"
            )

        becomes_default = bool(make_default) or db_obj.is_default
        if "identifier" in data:
            if data["identifier"] is None and not becomes_default:
                raise ValidationError({"identifier": "can't be blank"})
            await self._ensure_identifier_available(
                db, db_obj.project_id, data["identifier"], exclude_id=db_obj.id
            )

        if "password" in data:
            password = data.pop("password")
            if not password:
                db_obj.password = None
            elif password != self.get_decrypted_password(db_obj):
                db_obj.password = credential_cipher.encrypt(password)

        for field, value in data.items():
            setattr(db_obj, field, value)

        if extra:
            db_obj.extra_info = {**(db_obj.extra_info or {}), **extra}

        if make_default and not db_obj.is_default:
            await self._clear_default(db, db_obj.project_id, keep_id=db_obj.id)
            db_obj.is_default = True

        db.add(db_obj)
        try:
            await db.flush()
        except IntegrityError as e:
            raise ConstraintViolation("Repository violates a uniqueness constraint") from e
        await db.refresh(db_obj)
        return db_obj

    async def set_default(self, db: AsyncSession, repository: Repository) -> Repository:
        """Make `repository` its project's default, clearing every sibling.

        Raises:
            ValidationError: The current default has no identifier
            ConstraintViolation: A concurrent transaction made another default
        """
        await self._clear_default(db, repository.project_id, keep_id=repository.id)
        repository.is_default = True
        db.add(repository)
        try:
            await db.flush()
        except IntegrityError as e:
            raise ConstraintViolation("Project already has a default repository") from e
        await db.refresh(repository)
        return repository

    async def merge_extra_info(
        self, db: AsyncSession, repository: Repository, partial: dict[str, Any]
    ) -> Repository:
        """Shallow-merge `partial` into extra_info; later values win."""
        # Assign a new dict so the JSON column is flagged dirty
        repository.extra_info = {**(repository.extra_info or {}), **partial}
        db.add(repository)
        await db.flush()
        return repository

    async def delete(self, db: AsyncSession, repository: Repository) -> None:
        """
        Delete a repository and everything it owns.

        Changesets go through bulk deletes; if the repository was the
        project's default, the oldest remaining sibling takes over.
        """
        project_id = repository.project_id
        was_default = repository.is_default

        removed = await changeset_ops.delete_for_repository(db, repository.id)
        await db.delete(repository)
        await db.flush()

        if was_default:
            statement = (
                select(Repository)
                .where(Repository.project_id == project_id)
                .order_by(Repository.created_at)
                .limit(1)
            )
            successor = (await db.execute(statement)).scalar_one_or_none()
            if successor is not None:
                await self.set_default(db, successor)

        logger.info(f"Deleted repository {repository.id} ({removed} changesets)")

    async def clear_changesets(self, db: AsyncSession, repository: Repository) -> int:
        """Forget all synchronized history so the next run re-ingests it."""
        removed = await changeset_ops.delete_for_repository(db, repository.id)
        repository.last_fetched_at = None
        repository.last_fetch_error = None
        db.add(repository)
        await db.flush()
        return removed

    async def committers(
        self, db: AsyncSession, repository: Repository
    ) -> list[tuple[str, uuid_pkg.UUID | None]]:
        """Distinct (committer string, mapped user id) pairs of a repository."""
        statement = (
            select(Changeset.committer, Changeset.user_id)
            .where(
                Changeset.repository_id == repository.id,
                Changeset.committer.is_not(None),  # type: ignore[union-attr]
            )
            .distinct()
            .order_by(Changeset.committer)
        )
        result = await db.execute(statement)
        return [(committer, user_id) for committer, user_id in result.all()]

    async def apply_committer_map(
        self,
        db: AsyncSession,
        repository: Repository,
        mapping: dict[str, uuid_pkg.UUID | None],
        resolver: "CommitterResolver | None" = None,
    ) -> int:
        """
        Map committer strings to users for every changeset of a repository.

        A None user id clears the mapping. All updates happen in the
        caller's transaction. Returns the number of changesets updated.

        Raises:
            NotFoundError: A mapped user does not exist
        """
        user_ids = {user_id for user_id in mapping.values() if user_id is not None}
        if user_ids:
            found = {user.id for user in await user_ops.get_many(db, list(user_ids))}
            if found != user_ids:
                raise NotFoundError("User")

        updated = 0
        for committer, user_id in mapping.items():
            result = await db.execute(
                update(Changeset)
                .where(
                    Changeset.repository_id == repository.id,
                    Changeset.committer == committer,
                )
                .values(user_id=user_id)
                .execution_options(synchronize_session=False)
            )
            updated += result.rowcount or 0  # type: ignore[attr-defined]
        await db.flush()

        if resolver is not None:
            resolver.invalidate()
        return updated

    def get_decrypted_password(self, repository: Repository) -> str | None:
        """Plaintext password of a repository, or None."""
        if not repository.password:
            return None
        return credential_cipher.decrypt(repository.password)

    def get_adapter(self, repository: Repository) -> ScmAdapter:
        """Build the backend adapter for a repository.

        Raises:
            BackendError: The repository's scm_type has no registered adapter
        """
        return build_adapter(
            repository.scm_type,
            url=repository.url,
            root_url=repository.root_url,
            login=repository.login,
            password=self.get_decrypted_password(repository),
            path_encoding=repository.path_encoding,
            log_encoding=repository.repo_log_encoding,
        )

    def has_numeric_revisions(self, repository: Repository) -> bool:
        """Whether the repository's backend names revisions with plain numbers."""
        try:
            return get_adapter_class(repository.scm_type).numeric_revisions
        except BackendError:
            return False

    async def backfill_root_url(
        self, db: AsyncSession, repository: Repository, adapter: ScmAdapter
    ) -> str | None:
        """Ask the backend for the root URL once and store it."""
        if repository.root_url:
            return repository.root_url

        root_url = await adapter.discover_root_url()
        if root_url and root_url.strip():
            repository.root_url = root_url.strip()
            adapter.root_url = repository.root_url
            db.add(repository)
            await db.flush()
        return repository.root_url

    async def record_fetch_result(
        self, db: AsyncSession, repository: Repository, error: str | None = None
    ) -> Repository:
        """Store the outcome of a synchronization attempt."""
        repository.last_fetched_at = utcnow()
        repository.last_fetch_error = error[:FETCH_ERROR_MAX_LENGTH] if error else None
        db.add(repository)
        await db.flush()
        return repository

    def available_scm(self) -> list[dict[str, Any]]:
        """Registered backends and whether new repositories may use them."""
        return [
            {"scm_type": tag, "name": name, "enabled": is_enabled(tag)}
            for tag, name in available_scm()
        ]


repository_ops = RepositoryOperations()
