"""
GitHub adapter backed by the REST API.

Addresses a repository by its GitHub URL ("https://github.com/owner/repo",
"git@github.com:owner/repo.git" or plain "owner/repo"). Authenticates with
the repository password as a token, falling back to the configured
`github_token`.

Uses the shared HTTP client singleton for connection pooling.
"""

import base64
import logging
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

import httpx

from scmlink.config import settings
from scmlink.core.exceptions import NotFoundError
from scmlink.models.changeset import ChangeAction
from scmlink.scm.base import ScmAdapter
from scmlink.scm.exceptions import BackendError, BackendUnavailable
from scmlink.scm.github.cache import entries_cache, is_immutable_revision
from scmlink.scm.github.helpers import filter_diff, handle_error_response, parse_repo_url
from scmlink.scm.github.http_client import get_github_client
from scmlink.scm.registry import register_adapter
from scmlink.scm.types import ChangedPath, Capability, CommitRecord, Entry, sort_entries

logger = logging.getLogger(__name__)

PER_PAGE = 100

_FILE_STATUS_ACTIONS = {
    "added": ChangeAction.ADD,
    "modified": ChangeAction.MODIFY,
    "changed": ChangeAction.MODIFY,
    "removed": ChangeAction.DELETE,
    "renamed": ChangeAction.RENAME,
    "copied": ChangeAction.COPY,
}


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _format_person(person: dict[str, Any] | None) -> str | None:
    if not person:
        return None
    name = (person.get("name") or "").strip()
    email = (person.get("email") or "").strip()
    if name and email:
        return f"{name} <{email}>"
    return name or email or None


@register_adapter("github")
class GitHubAdapter(ScmAdapter):
    """Repository hosted on GitHub."""

    scm_name = "GitHub"
    capabilities = frozenset({Capability.CAT, Capability.BRANCHES, Capability.TAGS})

    API_VERSION = "2022-11-28"

    def __init__(self, url: str, **kwargs: Any):
        super().__init__(url, **kwargs)
        self.owner, self.repo = parse_repo_url(url)
        self.full_name = f"{self.owner}/{self.repo}"
        self.token = self.password or settings.github_token
        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.API_VERSION,
        }
        if self.token:
            self._headers["Authorization"] = f"Bearer {self.token}"

    def _url(self, suffix: str = "") -> str:
        return f"{settings.github_api_url}/repos/{self.full_name}{suffix}"

    async def _get(
        self,
        suffix: str,
        resource: str,
        params: dict[str, Any] | None = None,
        accept: str | None = None,
    ) -> httpx.Response:
        headers = dict(self._headers)
        if accept:
            headers["Accept"] = accept
        client = get_github_client()
        try:
            response = await client.get(self._url(suffix), headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise BackendUnavailable(f"GitHub API timed out for {self.full_name}") from e
        except httpx.RequestError as e:
            raise BackendUnavailable(f"GitHub API not reachable: {e}") from e

        handle_error_response(response, self.full_name, resource)
        return response

    async def discover_root_url(self) -> str | None:
        response = await self._get("", f"Repository {self.full_name}")
        html_url: str | None = response.json().get("html_url")
        return html_url

    async def list_entries(self, path: str = "", revision: str | None = None) -> list[Entry]:
        prefix = (path or "").strip("/")
        cache_key = (self.full_name, prefix, revision or "")
        if is_immutable_revision(revision) and cache_key in entries_cache:
            logger.debug(f"Cache hit for entries {self.full_name}:/{prefix}@{revision}")
            cached: list[Entry] = entries_cache[cache_key]
            return cached

        params = {"ref": revision} if revision else None
        try:
            response = await self._get(f"/contents/{prefix}", f"Directory /{prefix}", params)
        except NotFoundError:
            if not prefix and revision is None:
                # Empty repository: GitHub answers 404 for the root listing
                return []
            raise

        data = response.json()
        if not isinstance(data, list):
            raise NotFoundError(f"Directory /{prefix}")

        entries = sort_entries(
            [
                Entry(
                    name=item["name"],
                    path=item["path"],
                    kind="dir" if item["type"] == "dir" else "file",
                    size=item.get("size") if item["type"] != "dir" else None,
                )
                for item in data
            ]
        )
        if is_immutable_revision(revision):
            entries_cache[cache_key] = entries
        return entries

    async def read_file(self, path: str, revision: str | None = None) -> bytes:
        normalized = (path or "").strip("/")
        params = {"ref": revision} if revision else None
        response = await self._get(f"/contents/{normalized}", f"File /{normalized}", params)

        data = response.json()
        if not isinstance(data, dict) or data.get("type") != "file":
            raise NotFoundError(f"File /{normalized}")

        content = data.get("content")
        if content is None:
            raise BackendError(f"GitHub returned no content for /{normalized}")
        return base64.b64decode(content)

    async def diff(
        self, path: str | None, revision_a: str, revision_b: str | None = None
    ) -> str:
        if revision_b:
            suffix = f"/compare/{revision_b}...{revision_a}"
        else:
            suffix = f"/commits/{revision_a}"
        response = await self._get(
            suffix, f"Revision {revision_a}", accept="application/vnd.github.diff"
        )
        return filter_diff(response.text, path)

    async def _ref_names(self, suffix: str) -> set[str]:
        names: set[str] = set()
        page = 1
        while True:
            response = await self._get(
                suffix, f"Repository {self.full_name}", {"per_page": PER_PAGE, "page": page}
            )
            items = response.json()
            names.update(item["name"] for item in items)
            if len(items) < PER_PAGE:
                return names
            page += 1

    async def branches(self) -> set[str]:
        return await self._ref_names("/branches")

    async def tags(self) -> set[str]:
        return await self._ref_names("/tags")

    async def _pending_shas(self, marker: str | None) -> list[str]:
        """SHAs newer than `marker` on the default branch, newest first."""
        shas: list[str] = []
        page = 1
        while True:
            try:
                response = await self._get(
                    "/commits",
                    f"Repository {self.full_name}",
                    {"per_page": PER_PAGE, "page": page},
                )
            except BackendError as e:
                # 409 "Git Repository is empty"
                if e.backend_status == 409:
                    return []
                raise

            items = response.json()
            for item in items:
                if item["sha"] == marker:
                    return shas
                shas.append(item["sha"])
            if len(items) < PER_PAGE:
                break
            page += 1

        if marker:
            # History was rewritten and the marker no longer exists
            raise BackendError(f"Revision {marker} is unknown to {self.full_name}")
        return shas

    def _record_from_detail(self, data: dict[str, Any]) -> CommitRecord:
        commit = data.get("commit") or {}
        author = commit.get("author") or {}
        committer = commit.get("committer") or {}
        parents = [p["sha"] for p in data.get("parents", [])]

        changes = []
        for item in data.get("files", []):
            action = _FILE_STATUS_ACTIONS.get(item.get("status", ""), ChangeAction.MODIFY)
            from_path = item.get("previous_filename")
            changes.append(
                ChangedPath(
                    action=action.value,
                    path=f"/{item['filename']}",
                    from_path=f"/{from_path}" if from_path else None,
                    from_revision=parents[0] if from_path and parents else None,
                )
            )

        return CommitRecord(
            revision=data["sha"],
            author=_format_person(author),
            committed_on=_parse_timestamp(committer.get("date") or author["date"]),
            message=commit.get("message") or "",
            parents=parents,
            changes=changes,
        )

    async def new_revisions_since(self, marker: str | None) -> AsyncIterator[CommitRecord]:
        shas = await self._pending_shas(marker)
        logger.debug(f"scm: {self.full_name} has {len(shas)} commits after {marker}")

        # Oldest first; each detail call happens only when the caller asks
        # for the next record
        for sha in reversed(shas):
            response = await self._get(f"/commits/{sha}", f"Revision {sha}")
            yield self._record_from_detail(response.json())
