"""
GitHub API helper utilities.

Repository URL parsing, rate limit handling and translation of error
responses into the adapter exception taxonomy.
"""

import logging
import re

import httpx

from scmlink.core.exceptions import NotFoundError
from scmlink.scm.exceptions import BackendError, BackendUnavailable

logger = logging.getLogger(__name__)

_REPO_URL_PATTERNS = (
    re.compile(r"^https?://(?:www\.)?github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$"),
    re.compile(r"^git@github\.com:([^/]+)/([^/]+?)(?:\.git)?$"),
    re.compile(r"^([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+?)(?:\.git)?$"),
)


class GitHubRepoRenamed(BackendError):
    """Repository has been renamed or transferred on GitHub (301)."""

    def __init__(self, old_full_name: str, new_full_name: str | None = None):
        self.old_full_name = old_full_name
        self.new_full_name = new_full_name
        if new_full_name:
            message = f"Repository renamed: {old_full_name} → {new_full_name}"
        else:
            message = f"Repository {old_full_name} was moved"
        super().__init__(message, backend_status=301)


class RateLimitInfo:
    """Rate limit information from GitHub API response."""

    def __init__(self, response: httpx.Response) -> None:
        self.remaining = response.headers.get("X-RateLimit-Remaining")
        self.reset = response.headers.get("X-RateLimit-Reset")

    @property
    def reset_timestamp(self) -> int | None:
        """Get reset timestamp as integer, or None if not available."""
        return int(self.reset) if self.reset else None

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        return self.remaining is not None and int(self.remaining) == 0


def parse_repo_url(url: str) -> tuple[str, str]:
    """
    Extract (owner, repo) from a configured repository URL.

    Accepts https URLs, SSH remotes and bare "owner/repo".

    Raises:
        BackendError: If the URL does not name a GitHub repository
    """
    candidate = url.strip()
    for pattern in _REPO_URL_PATTERNS:
        match = pattern.match(candidate)
        if match:
            return match.group(1), match.group(2)
    raise BackendError(f"Not a GitHub repository URL: {url}")


def parse_redirect_location(location: str) -> tuple[str, str] | None:
    """
    Extract owner/repo from a GitHub redirect Location header.

    Handles absolute ("https://api.github.com/repos/owner/name/...") and
    relative ("/repos/owner/name/...") forms.
    """
    if not location:
        return None

    match = re.match(r"(?:https://api\.github\.com)?/repos/([^/]+)/([^/]+)", location)
    if match:
        return (match.group(1), match.group(2))
    return None


def handle_error_response(response: httpx.Response, repo_name: str, resource: str) -> None:
    """
    Raise the adapter exception matching an unsuccessful response.

    Args:
        response: The HTTP response from GitHub API
        repo_name: Repository name for error context (format: "owner/repo")
        resource: What was requested, for NotFoundError messages

    Raises:
        GitHubRepoRenamed: Repository was renamed/transferred (301)
        NotFoundError: Path, revision or repository does not exist (404, 422)
        BackendUnavailable: GitHub is failing (5xx)
        BackendError: Authentication, rate limit or other API errors
    """
    if response.status_code in (200, 201):
        return

    rate_info = RateLimitInfo(response)

    if response.status_code == 301:
        new_repo = parse_redirect_location(response.headers.get("Location", ""))
        if new_repo:
            new_full_name = f"{new_repo[0]}/{new_repo[1]}"
            logger.info(f"Repository redirect detected: {repo_name} → {new_full_name}")
            raise GitHubRepoRenamed(repo_name, new_full_name)
        raise GitHubRepoRenamed(repo_name)
    elif response.status_code == 401:
        raise BackendError("Invalid or expired GitHub token", 401)
    elif response.status_code in (404, 422):
        raise NotFoundError(resource)
    elif response.status_code in (403, 429):
        if rate_info.is_exhausted or response.status_code == 429:
            raise BackendError(
                "GitHub API rate limit exceeded",
                response.status_code,
                rate_limit_reset=rate_info.reset_timestamp,
            )
        raise BackendError("GitHub API forbidden", 403)
    elif response.status_code >= 500:
        raise BackendUnavailable(f"GitHub API unavailable: {response.status_code}")
    raise BackendError(f"GitHub API error: {response.status_code}", response.status_code)


def filter_diff(diff: str, path: str | None) -> str:
    """Keep only the `diff --git` sections touching `path` (file or directory)."""
    if not path:
        return diff
    target = path.strip("/")

    kept: list[str] = []
    keep = False
    for line in diff.splitlines(keepends=True):
        if line.startswith("diff --git "):
            parts = line.split()
            names = [p[2:] for p in parts[2:4] if p[:2] in ("a/", "b/")]
            keep = any(n == target or n.startswith(f"{target}/") for n in names)
        if keep:
            kept.append(line)
    return "".join(kept)
