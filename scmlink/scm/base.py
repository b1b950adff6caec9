"""
Adapter contract every SCM backend implements.

The synchronization engine and the browse API only talk to this interface.
Optional operations are advertised through `capabilities`; callers check
`supports()` before using them.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import ClassVar

from scmlink.scm.exceptions import BackendError
from scmlink.scm.types import AnnotatedLine, Capability, CommitRecord, Entry


class ScmAdapter(ABC):
    """Uniform access to one external repository."""

    scm_name: ClassVar[str] = "Abstract"
    capabilities: ClassVar[frozenset[Capability]] = frozenset()
    # Revisions are sequence numbers: an all-digit token is a whole revision
    numeric_revisions: ClassVar[bool] = False

    def __init__(
        self,
        url: str,
        root_url: str | None = None,
        login: str | None = None,
        password: str | None = None,
        path_encoding: str | None = None,
        log_encoding: str = "UTF-8",
    ):
        self.url = url
        self.root_url = root_url
        self.login = login
        self.password = password
        self.path_encoding = path_encoding or "UTF-8"
        self.log_encoding = log_encoding

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def _require(self, capability: Capability) -> None:
        if not self.supports(capability):
            raise BackendError(f"{self.scm_name} does not support {capability.value}")

    async def discover_root_url(self) -> str | None:
        """Canonical root URL reported by the backend (None if it has no such notion)."""
        return None

    @abstractmethod
    async def list_entries(self, path: str = "", revision: str | None = None) -> list[Entry]:
        """Entries under `path` at `revision` (None = latest), directories first."""

    @abstractmethod
    async def read_file(self, path: str, revision: str | None = None) -> bytes:
        """Raw content of `path`; raises NotFoundError when absent."""

    @abstractmethod
    async def diff(
        self, path: str | None, revision_a: str, revision_b: str | None = None
    ) -> str:
        """Unified diff of `path` (whole tree if None) between two revisions.

        With no `revision_b`, diffs `revision_a` against its first parent.
        """

    async def branches(self) -> set[str]:
        return set()

    async def tags(self) -> set[str]:
        return set()

    async def annotate(self, path: str, revision: str | None = None) -> list[AnnotatedLine]:
        self._require(Capability.ANNOTATE)
        raise NotImplementedError

    @abstractmethod
    def new_revisions_since(self, marker: str | None) -> AsyncIterator[CommitRecord]:
        """Commits strictly after `marker` (all history if None), oldest first.

        Implementations are async generators and produce records lazily, so
        the caller can persist each one before the next is fetched.
        """

    async def aclose(self) -> None:  # noqa: B027
        """Release backend resources. Default adapters hold none."""
