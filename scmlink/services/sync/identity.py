"""Committer string → local user resolution."""

import logging
import re
import uuid as uuid_pkg

from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.domain.changeset_operations import changeset_ops
from scmlink.domain.user_operations import user_ops
from scmlink.models.user import User

logger = logging.getLogger(__name__)

# "Name <email>", email optional
COMMITTER_PATTERN = re.compile(r"^([^<]+)(<(.*)>)?$")


def parse_committer(committer: str) -> tuple[str, str | None] | None:
    """Split a committer string into (name, email); None if there is no name."""
    match = COMMITTER_PATTERN.match(committer.strip())
    if not match:
        return None
    name = match.group(1).strip()
    if not name:
        return None
    email = (match.group(3) or "").strip() or None
    return name, email


class CommitterResolver:
    """
    Resolves committer strings for one repository.

    First match wins:
    1. a changeset of this repository with the same committer already
       mapped to a user;
    2. a user whose login equals the committer name;
    3. a user whose email equals the committer email.

    Results (misses included) are cached for the lifetime of the instance,
    which is one synchronization run. Call invalidate() after remapping
    committers.
    """

    def __init__(self, db: AsyncSession, repository_id: uuid_pkg.UUID):
        self.db = db
        self.repository_id = repository_id
        self._cache: dict[str, User | None] = {}

    async def resolve(self, committer: str | None) -> User | None:
        if not committer or not committer.strip():
            return None
        if committer in self._cache:
            return self._cache[committer]

        user = await self._lookup(committer)
        self._cache[committer] = user
        return user

    async def _lookup(self, committer: str) -> User | None:
        user = await changeset_ops.find_user_for_committer(self.db, self.repository_id, committer)
        if user is not None:
            return user

        parsed = parse_committer(committer)
        if parsed is None:
            return None
        name, email = parsed

        user = await user_ops.get_by_login(self.db, name)
        if user is None and email:
            user = await user_ops.get_by_email(self.db, email)
        if user is not None:
            logger.debug(f"Resolved committer {committer!r} to user {user.login}")
        return user

    def invalidate(self) -> None:
        self._cache.clear()
