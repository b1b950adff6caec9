"""Parsers for `git log --raw` and `git blame --porcelain` output.

Log records are delimited with control characters so commit messages can
contain anything printable:

    \\x1e<hash>\\x1f<parents>\\x1f<author>\\x1f<committer date>\\x1f<message>\\x1f
    :100644 100644 <sha> <sha> M\\t<path>
    :100644 100644 <sha> <sha> R091\\t<old path>\\t<new path>
"""

from datetime import datetime

from scmlink.models.changeset import ChangeAction
from scmlink.scm.types import AnnotatedLine, ChangedPath, CommitRecord

RECORD_START = b"\x1e"
FIELD_SEP = b"\x1f"
HEADER_FIELDS = 5

LOG_FORMAT = "%x1e%H%x1f%P%x1f%an <%ae>%x1f%cI%x1f%B%x1f"

_ACTIONS = {
    "A": ChangeAction.ADD,
    "M": ChangeAction.MODIFY,
    "D": ChangeAction.DELETE,
    "R": ChangeAction.RENAME,
    "C": ChangeAction.COPY,
}


class GitLogParser:
    """Incremental parser: feed it output lines, collect finished records."""

    def __init__(self, log_encoding: str = "UTF-8", path_encoding: str = "UTF-8"):
        self.log_encoding = log_encoding
        self.path_encoding = path_encoding
        self._header = b""
        self._current: CommitRecord | None = None

    def feed(self, line: bytes) -> CommitRecord | None:
        """Consume one output line; returns the previous record once a new one starts."""
        finished = None
        if line.startswith(RECORD_START):
            finished = self._current
            self._current = None
            self._header = line[len(RECORD_START) :]
        elif self._current is None and self._header:
            self._header += line
        elif self._current is not None and line.startswith(b":"):
            self._current.changes.append(self._parse_raw(line.rstrip(b"\r\n")))
            return finished

        if self._current is None and self._header.count(FIELD_SEP) >= HEADER_FIELDS:
            self._current = self._parse_header(self._header)
            self._header = b""
        return finished

    def close(self) -> CommitRecord | None:
        """Flush the last record at end of output."""
        if self._current is None and self._header.count(FIELD_SEP) >= HEADER_FIELDS:
            self._current = self._parse_header(self._header)
        record, self._current, self._header = self._current, None, b""
        return record

    def _parse_header(self, header: bytes) -> CommitRecord:
        revision, parents, author, date, message = header.split(FIELD_SEP)[:HEADER_FIELDS]
        return CommitRecord(
            revision=revision.decode("ascii").strip(),
            parents=parents.decode("ascii").split(),
            author=author.decode(self.log_encoding, errors="replace").strip() or None,
            committed_on=datetime.fromisoformat(date.decode("ascii").strip()),
            message=message.decode(self.log_encoding, errors="replace").strip(),
        )

    def _parse_raw(self, line: bytes) -> ChangedPath:
        meta, *paths = line.split(b"\t")
        status = meta.split()[-1].decode("ascii")
        action = _ACTIONS.get(status[:1], ChangeAction.MODIFY)
        decoded = [p.decode(self.path_encoding, errors="replace") for p in paths]

        if action in (ChangeAction.RENAME, ChangeAction.COPY) and len(decoded) >= 2:
            parents = self._current.parents if self._current else []
            return ChangedPath(
                action=action.value,
                path=decoded[1],
                from_path=decoded[0],
                from_revision=parents[0] if parents else None,
            )
        return ChangedPath(action=action.value, path=decoded[0])


def parse_log(output: bytes, log_encoding: str = "UTF-8", path_encoding: str = "UTF-8"):
    """Parse a complete `git log` output into records (oldest/newest order preserved)."""
    parser = GitLogParser(log_encoding, path_encoding)
    records = []
    for line in output.splitlines(keepends=True):
        record = parser.feed(line)
        if record is not None:
            records.append(record)
    last = parser.close()
    if last is not None:
        records.append(last)
    return records


def parse_blame(output: bytes, encoding: str = "UTF-8") -> list[AnnotatedLine]:
    """Parse `git blame --porcelain` output."""
    lines: list[AnnotatedLine] = []
    authors: dict[str, str | None] = {}
    revision: str | None = None
    final_line = 0

    for raw in output.splitlines():
        if raw.startswith(b"\t"):
            if revision is not None:
                lines.append(
                    AnnotatedLine(
                        line_number=final_line,
                        revision=revision,
                        author=authors.get(revision),
                        content=raw[1:].decode(encoding, errors="replace"),
                    )
                )
            continue

        parts = raw.split(b" ")
        head = parts[0].decode("ascii", errors="replace")
        if len(head) == 40 and len(parts) >= 3 and all(c in "0123456789abcdef" for c in head):
            revision = head
            final_line = int(parts[2])
            authors.setdefault(revision, None)
        elif head == "author" and revision is not None:
            authors[revision] = raw[len(b"author ") :].decode(encoding, errors="replace")

    return lines
