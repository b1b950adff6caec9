"""
Git adapter backed by the `git` command line client.

Works against local bare repositories and working copies. Every call is an
`asyncio` subprocess so backend I/O never blocks the event loop; history is
streamed from `git log` and parsed record by record.
"""

import asyncio
import logging
import os
from collections.abc import AsyncIterator

from scmlink.config import settings
from scmlink.core.exceptions import NotFoundError
from scmlink.scm.base import ScmAdapter
from scmlink.scm.exceptions import BackendError, BackendUnavailable
from scmlink.scm.git.parser import LOG_FORMAT, GitLogParser, parse_blame
from scmlink.scm.registry import register_adapter
from scmlink.scm.types import AnnotatedLine, Capability, CommitRecord, Entry, sort_entries

logger = logging.getLogger(__name__)

# git log lines can be long (huge commit messages); StreamReader default is 64 KiB
STREAM_LIMIT = 16 * 1024 * 1024

_NOT_FOUND_MARKERS = (
    "does not exist",
    "exists on disk, but not in",
    "not a valid object name",
    "invalid object name",
    "unknown revision",
    "bad revision",
    "no such path",
)
_UNAVAILABLE_MARKERS = (
    "not a git repository",
    "cannot change to",
)


def _normalize_path(path: str | None) -> str:
    return (path or "").strip("/")


@register_adapter("git")
class GitAdapter(ScmAdapter):
    """Local Git repository."""

    scm_name = "Git"
    capabilities = frozenset(
        {
            Capability.CAT,
            Capability.ANNOTATE,
            Capability.BRANCHES,
            Capability.TAGS,
            Capability.REVISION_GRAPH,
        }
    )

    def _command(self, *args: str) -> list[str]:
        return [settings.git_command, "-C", self.url, "-c", "core.quotepath=false", *args]

    async def _spawn(self, *args: str) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *self._command(*args),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise BackendUnavailable(f"git client not available: {e}") from e

    def _raise_for_stderr(self, args: tuple[str, ...], returncode: int, stderr: bytes) -> None:
        message = stderr.decode(errors="replace").strip()
        lowered = message.lower()
        logger.debug(f"scm: git {' '.join(args)} exited {returncode}: {message}")
        if any(marker in lowered for marker in _UNAVAILABLE_MARKERS):
            raise BackendUnavailable(f"Repository {self.url} is not reachable: {message}")
        if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
            raise NotFoundError("Path or revision")
        raise BackendError(f"git {args[0]} failed: {message}", backend_status=returncode)

    async def _run(self, *args: str) -> bytes:
        if not os.path.isdir(self.url):
            raise BackendUnavailable(f"Repository {self.url} does not exist")

        proc = await self._spawn(*args)
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=settings.scm_command_timeout
            )
        except TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise BackendUnavailable(
                f"git {args[0]} timed out after {settings.scm_command_timeout}s"
            ) from e

        if proc.returncode != 0:
            self._raise_for_stderr(args, proc.returncode or 0, stderr)
        return stdout

    async def _has_commits(self) -> bool:
        try:
            await self._run("rev-parse", "--verify", "--quiet", "HEAD")
        except (NotFoundError, BackendError):
            return False
        return True

    async def discover_root_url(self) -> str | None:
        bare = (await self._run("rev-parse", "--is-bare-repository")).decode().strip()
        flag = "--absolute-git-dir" if bare == "true" else "--show-toplevel"
        root = (await self._run("rev-parse", flag)).decode(self.path_encoding).strip()
        return root or None

    async def list_entries(self, path: str = "", revision: str | None = None) -> list[Entry]:
        if revision is None and not await self._has_commits():
            return []

        prefix = _normalize_path(path)
        args = ["ls-tree", "-l", "-z", revision or "HEAD"]
        if prefix:
            args += ["--", f"{prefix}/"]
        output = await self._run(*args)

        entries = []
        for item in output.split(b"\0"):
            if not item:
                continue
            meta, _, name = item.partition(b"\t")
            _mode, kind, _sha, size = meta.split()
            full_path = name.decode(self.path_encoding, errors="replace")
            entries.append(
                Entry(
                    name=full_path.rsplit("/", 1)[-1],
                    path=full_path,
                    kind="dir" if kind == b"tree" else "file",
                    size=None if size == b"-" else int(size),
                )
            )

        if prefix and not entries:
            raise NotFoundError(f"Directory /{prefix}")
        return sort_entries(entries)

    async def read_file(self, path: str, revision: str | None = None) -> bytes:
        spec = f"{revision or 'HEAD'}:{_normalize_path(path)}"
        try:
            return await self._run("cat-file", "-p", spec)
        except BackendError as e:
            # cat-file reports unknown paths as "fatal: Not a valid object name"
            # with exit code 128 on some git versions
            if e.backend_status == 128:
                raise NotFoundError(f"File /{_normalize_path(path)}") from e
            raise

    async def diff(
        self, path: str | None, revision_a: str, revision_b: str | None = None
    ) -> str:
        if revision_b:
            args = ["diff", "--no-color", revision_b, revision_a]
        else:
            args = ["show", "--no-color", "--format=", revision_a]
        if path:
            args += ["--", _normalize_path(path)]
        output = await self._run(*args)
        return output.decode(self.path_encoding, errors="replace")

    async def _refs(self, namespace: str) -> set[str]:
        output = await self._run("for-each-ref", "--format=%(refname:short)", namespace)
        return {line.strip() for line in output.decode().splitlines() if line.strip()}

    async def branches(self) -> set[str]:
        return await self._refs("refs/heads")

    async def tags(self) -> set[str]:
        return await self._refs("refs/tags")

    async def annotate(self, path: str, revision: str | None = None) -> list[AnnotatedLine]:
        output = await self._run(
            "blame", "--porcelain", revision or "HEAD", "--", _normalize_path(path)
        )
        return parse_blame(output, self.log_encoding)

    async def new_revisions_since(self, marker: str | None) -> AsyncIterator[CommitRecord]:
        if not os.path.isdir(self.url):
            raise BackendUnavailable(f"Repository {self.url} does not exist")

        args = [
            "log",
            "--branches",
            "--topo-order",
            "--reverse",
            "--raw",
            "--no-abbrev",
            "-M",
            "--no-color",
            f"--encoding={self.log_encoding}",
            f"--format={LOG_FORMAT}",
        ]
        if marker:
            args.append(f"^{marker}")

        parser = GitLogParser(self.log_encoding, self.path_encoding)
        proc = await self._spawn(*args)
        try:
            assert proc.stdout is not None
            async for line in proc.stdout:
                record = parser.feed(line)
                if record is not None:
                    yield record

            stderr = await proc.stderr.read() if proc.stderr else b""
            returncode = await proc.wait()
            if returncode != 0:
                # Fresh repository without any branch: nothing to ingest
                if b"does not have any commits" in stderr:
                    return
                try:
                    self._raise_for_stderr(tuple(args), returncode, stderr)
                except NotFoundError as e:
                    # History was rewritten and the marker no longer exists
                    raise BackendError(f"Revision {marker} is unknown to {self.url}") from e

            last = parser.close()
            if last is not None:
                yield last
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
