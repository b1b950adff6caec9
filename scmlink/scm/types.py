"""Backend-neutral data types produced by SCM adapters."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Capability(str, Enum):
    """Optional operations an adapter may support."""

    CAT = "cat"
    ANNOTATE = "annotate"
    BRANCHES = "branches"
    TAGS = "tags"
    REVISION_GRAPH = "revision_graph"
    DIRECTORY_REVISIONS = "directory_revisions"


@dataclass
class Entry:
    """File or directory at a point in history."""

    name: str
    path: str
    kind: str  # "file" or "dir"
    size: int | None = None
    revision: str | None = None  # last revision touching the entry, when known

    @property
    def is_dir(self) -> bool:
        return self.kind == "dir"


@dataclass
class ChangedPath:
    """Path touched by a commit, as reported by the backend."""

    action: str  # one of ChangeAction values
    path: str
    from_path: str | None = None
    from_revision: str | None = None


@dataclass
class CommitRecord:
    """Backend-native commit, before it becomes a Changeset."""

    revision: str
    author: str | None
    committed_on: datetime
    message: str
    parents: list[str] = field(default_factory=list)
    changes: list[ChangedPath] = field(default_factory=list)


@dataclass
class AnnotatedLine:
    """One line of an annotate (blame) result."""

    line_number: int
    revision: str
    author: str | None
    content: str


def sort_entries(entries: list[Entry]) -> list[Entry]:
    """Directories first, then files, each alphabetically."""
    return sorted(entries, key=lambda e: (0 if e.is_dir else 1, e.name))
