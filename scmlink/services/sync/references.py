"""Work item cross-references in commit messages ("refs #12", "fixes #34")."""

import logging
import re
import uuid as uuid_pkg

from sqlalchemy.ext.asyncio import AsyncSession

from scmlink.config import settings
from scmlink.domain.changeset_operations import changeset_ops
from scmlink.domain.work_item_operations import work_item_ops
from scmlink.models.changeset import Changeset

logger = logging.getLogger(__name__)

REFS = "refs"
FIXES = "fixes"

_NUMBER = re.compile(r"#(\d+)")
_ANY_NUMBER = re.compile(r"(?:^|[\s(\[,-])#(\d+)\b")


def _keyword_pattern(keywords: list[str]) -> re.Pattern[str] | None:
    words = [re.escape(k.strip()) for k in keywords if k.strip() and k.strip() != "*"]
    if not words:
        return None
    return re.compile(
        rf"(?:^|[\s(\[,-])(?:{'|'.join(words)})[\s:]+((?:#\d+(?:\s*(?:,|&|\band\b)\s*|\s+)?)+)",
        re.IGNORECASE,
    )


class ReferenceScanner:
    """Extracts work item numbers from commit messages and links them."""

    def __init__(
        self,
        ref_keywords: list[str] | None = None,
        fix_keywords: list[str] | None = None,
        fix_status: str | None = None,
    ):
        ref_keywords = settings.commit_ref_keywords if ref_keywords is None else ref_keywords
        fix_keywords = settings.commit_fix_keywords if fix_keywords is None else fix_keywords
        self.any_reference = "*" in [k.strip() for k in ref_keywords]
        self._ref_pattern = _keyword_pattern(ref_keywords)
        self._fix_pattern = _keyword_pattern(fix_keywords)
        self.fix_status = settings.commit_fix_status if fix_status is None else fix_status

    def extract(self, message: str | None) -> dict[int, str]:
        """Work item number → action. A fixing reference wins over a plain one."""
        found: dict[int, str] = {}
        if not message:
            return found

        if self.any_reference:
            for number in _ANY_NUMBER.findall(message):
                found[int(number)] = REFS

        for pattern, action in ((self._ref_pattern, REFS), (self._fix_pattern, FIXES)):
            if pattern is None:
                continue
            for group in pattern.findall(message):
                for number in _NUMBER.findall(group):
                    if found.get(int(number)) != FIXES:
                        found[int(number)] = action
        return found

    async def scan(
        self, db: AsyncSession, changeset: Changeset, project_id: uuid_pkg.UUID
    ) -> int:
        """Link `changeset` to the work items its message references.

        Returns the number of new links. Fixing references also move the
        work item to the configured fix status.
        """
        references = self.extract(changeset.comments)
        if not references:
            return 0

        assert changeset.id is not None
        work_items = await work_item_ops.get_by_numbers(db, project_id, list(references))
        linked = 0
        for work_item in work_items:
            action = references[work_item.number]
            if await changeset_ops.add_work_item_link(db, changeset.id, work_item.id, action):
                linked += 1
            if action == FIXES and self.fix_status:
                await work_item_ops.update_status(db, work_item, self.fix_status)

        missing = set(references) - {w.number for w in work_items}
        if missing:
            logger.debug(
                f"[sync] Changeset {changeset.revision} references unknown work items "
                f"{sorted(missing)}"
            )
        return linked
