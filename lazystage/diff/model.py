"""Immutable snapshot of repository working state.

One ``RepoStatus`` is built per refresh and replaced wholesale on the next.
Files own hunks, hunks own lines; nothing here carries UI state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Section(Enum):
    UNSTAGED = "unstaged"
    STAGED = "staged"


class FileKind(Enum):
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    TYPE_CHANGED = "typechange"
    UNTRACKED = "untracked"
    CONFLICTED = "conflicted"


class LineKind(Enum):
    CONTEXT = " "
    ADDITION = "+"
    DELETION = "-"
    NO_NEWLINE = "\\"


@dataclass(frozen=True)
class Line:
    """One hunk row; ``text`` excludes the leading marker character."""

    kind: LineKind
    text: str
    origin: int

    @property
    def is_change(self) -> bool:
        return self.kind in (LineKind.ADDITION, LineKind.DELETION)

    def raw(self) -> str:
        return f"{self.kind.value}{self.text}"


def format_range(start: int, count: int) -> str:
    """Render one side of a hunk header the way git does (count omitted when 1)."""
    if count == 1:
        return str(start)
    return f"{start},{count}"


@dataclass(frozen=True)
class Hunk:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str
    lines: tuple[Line, ...]
    raw_header: str = ""

    def header_line(self) -> str:
        """Return the ``@@`` line, reusing the parsed text when available."""
        if self.raw_header:
            return self.raw_header
        return (
            f"@@ -{format_range(self.old_start, self.old_count)} "
            f"+{format_range(self.new_start, self.new_count)} @@{self.header}"
        )

    def counted_ranges(self) -> tuple[int, int]:
        """Count (context + deletion, context + addition) lines actually present."""
        old = 0
        new = 0
        for line in self.lines:
            if line.kind is LineKind.CONTEXT:
                old += 1
                new += 1
            elif line.kind is LineKind.DELETION:
                old += 1
            elif line.kind is LineKind.ADDITION:
                new += 1
        return old, new

    def is_consistent(self) -> bool:
        return self.counted_ranges() == (self.old_count, self.new_count)

    def change_indices(self) -> frozenset[int]:
        return frozenset(line.origin for line in self.lines if line.is_change)

    def text(self) -> str:
        out = [self.header_line(), "\n"]
        for line in self.lines:
            out.append(line.raw())
            out.append("\n")
        return "".join(out)


@dataclass(frozen=True)
class FileEntry:
    path: str
    kind: FileKind
    old_path: str | None = None
    binary: bool = False
    hunks: tuple[Hunk, ...] = ()
    header_lines: tuple[str, ...] = ()
    old_mode: str | None = None
    new_mode: str | None = None

    @property
    def is_opaque(self) -> bool:
        """Whether the entry can only be acted on as a whole path."""
        return not self.hunks

    def display_path(self) -> str:
        if self.old_path and self.old_path != self.path:
            return f"{self.old_path} -> {self.path}"
        return self.path


@dataclass(frozen=True)
class HeadCommit:
    oid: str
    title: str


@dataclass(frozen=True)
class BranchInfo:
    name: str
    detached: bool = False
    no_commits: bool = False
    upstream: str | None = None
    ahead: int = 0
    behind: int = 0

    def label(self) -> str:
        if self.detached:
            return "HEAD (detached)"
        if self.no_commits:
            return f"{self.name} (no commits yet)"
        return self.name


@dataclass(frozen=True)
class RepoStatus:
    branch: BranchInfo
    head: HeadCommit | None = None
    unstaged: tuple[FileEntry, ...] = ()
    staged: tuple[FileEntry, ...] = ()

    @property
    def clean(self) -> bool:
        return not self.unstaged and not self.staged

    def entries(self, section: Section) -> tuple[FileEntry, ...]:
        if section is Section.STAGED:
            return self.staged
        return self.unstaged

    def find(self, section: Section, path: str) -> int | None:
        for idx, entry in enumerate(self.entries(section)):
            if entry.path == path:
                return idx
        return None


EMPTY_STATUS = RepoStatus(branch=BranchInfo(name=""))

__all__ = [
    "Section",
    "FileKind",
    "LineKind",
    "Line",
    "Hunk",
    "FileEntry",
    "HeadCommit",
    "BranchInfo",
    "RepoStatus",
    "EMPTY_STATUS",
    "format_range",
]
