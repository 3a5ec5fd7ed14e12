"""Visible row tree, session expansion state, cursor remapping, and viewport.

Rows are rebuilt from the current ``RepoStatus`` plus expansion state
whenever either changes. Only file, hunk, and line rows are navigable.
"""

from __future__ import annotations

from bisect import bisect_left
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from ..diff.model import FileEntry, FileKind, Hunk, Line, RepoStatus, Section


class RowKind(Enum):
    BRANCH = "branch"
    HEAD = "head"
    BLANK = "blank"
    SECTION = "section"
    CLEAN = "clean"
    FILE = "file"
    HUNK = "hunk"
    LINE = "line"


NAVIGABLE_KINDS = frozenset({RowKind.FILE, RowKind.HUNK, RowKind.LINE})


@dataclass(frozen=True)
class CursorPath:
    """Identity of a row that survives a refresh when the same item still exists."""

    section: Section
    path: str
    hunk_index: int | None = None
    line_index: int | None = None


@dataclass(frozen=True)
class Row:
    kind: RowKind
    section: Section | None = None
    file_index: int = -1
    hunk_index: int | None = None
    line_index: int | None = None
    title: str = ""
    entry: FileEntry | None = field(default=None, compare=False)
    hunk: Hunk | None = field(default=None, compare=False)
    line: Line | None = field(default=None, compare=False)

    @property
    def navigable(self) -> bool:
        return self.kind in NAVIGABLE_KINDS

    def cursor_path(self) -> CursorPath | None:
        if not self.navigable or self.entry is None or self.section is None:
            return None
        return CursorPath(self.section, self.entry.path, self.hunk_index, self.line_index)


class Expansion:
    """Expanded files and hunks, keyed by section and path so it survives refresh.

    Newly seen files and hunks start expanded when the matching auto-expand
    option is set.
    """

    def __init__(self, auto_expand_files: bool = False, auto_expand_hunks: bool = False) -> None:
        self.auto_expand_files = auto_expand_files
        self.auto_expand_hunks = auto_expand_hunks
        self.files: set[tuple[Section, str]] = set()
        self.hunks: set[tuple[Section, str, int]] = set()
        self._seen_files: set[tuple[Section, str]] = set()
        self._seen_hunks: set[tuple[Section, str, int]] = set()

    def file_expanded(self, section: Section, path: str) -> bool:
        return (section, path) in self.files

    def hunk_expanded(self, section: Section, path: str, hunk_index: int) -> bool:
        return (section, path, hunk_index) in self.hunks

    def toggle_file(self, section: Section, path: str) -> None:
        self.files ^= {(section, path)}

    def toggle_hunk(self, section: Section, path: str, hunk_index: int) -> None:
        self.hunks ^= {(section, path, hunk_index)}

    def observe(self, status: RepoStatus) -> None:
        """Apply auto-expansion to new items and forget items that are gone."""
        files: set[tuple[Section, str]] = set()
        hunks: set[tuple[Section, str, int]] = set()
        for section in (Section.UNSTAGED, Section.STAGED):
            for entry in status.entries(section):
                files.add((section, entry.path))
                for idx in range(len(entry.hunks)):
                    hunks.add((section, entry.path, idx))

        if self.auto_expand_files:
            self.files |= files - self._seen_files
        if self.auto_expand_hunks:
            self.hunks |= hunks - self._seen_hunks
        self.files &= files
        self.hunks &= hunks
        self._seen_files = files
        self._seen_hunks = hunks


def _file_rows(
    rows: list[Row],
    section: Section,
    file_index: int,
    entry: FileEntry,
    expansion: Expansion,
) -> None:
    rows.append(Row(RowKind.FILE, section, file_index, entry=entry))
    if not entry.hunks or not expansion.file_expanded(section, entry.path):
        return
    for hunk_index, hunk in enumerate(entry.hunks):
        rows.append(Row(RowKind.HUNK, section, file_index, hunk_index, entry=entry, hunk=hunk))
        if not expansion.hunk_expanded(section, entry.path, hunk_index):
            continue
        for line_index, line in enumerate(hunk.lines):
            rows.append(
                Row(
                    RowKind.LINE,
                    section,
                    file_index,
                    hunk_index,
                    line_index,
                    entry=entry,
                    hunk=hunk,
                    line=line,
                )
            )


def build_rows(status: RepoStatus, expansion: Expansion) -> list[Row]:
    rows = [Row(RowKind.BRANCH)]
    if status.head is not None:
        rows.append(Row(RowKind.HEAD))
    if status.clean:
        rows.append(Row(RowKind.BLANK))
        rows.append(Row(RowKind.CLEAN))
        return rows

    untracked = [idx for idx, e in enumerate(status.unstaged) if e.kind is FileKind.UNTRACKED]
    unstaged = [idx for idx, e in enumerate(status.unstaged) if e.kind is not FileKind.UNTRACKED]
    groups = (
        (Section.UNSTAGED, "Untracked files", untracked),
        (Section.UNSTAGED, "Unstaged changes", unstaged),
        (Section.STAGED, "Staged changes", list(range(len(status.staged)))),
    )
    for section, title, indices in groups:
        if not indices:
            continue
        rows.append(Row(RowKind.BLANK))
        rows.append(Row(RowKind.SECTION, section, title=title))
        entries = status.entries(section)
        for idx in indices:
            _file_rows(rows, section, idx, entries[idx], expansion)
    return rows


def navigable_indices(rows: list[Row]) -> list[int]:
    return [idx for idx, row in enumerate(rows) if row.navigable]


def step_cursor(rows: list[Row], cursor: int, delta: int) -> int:
    """Move ``delta`` navigable rows from ``cursor``, clamped at both ends."""
    nav = navigable_indices(rows)
    if not nav:
        return 0
    pos = bisect_left(nav, cursor)
    if pos >= len(nav) or nav[pos] != cursor:
        pos = min(pos, len(nav) - 1)
    pos = max(0, min(len(nav) - 1, pos + delta))
    return nav[pos]


def first_navigable(rows: list[Row]) -> int:
    nav = navigable_indices(rows)
    return nav[0] if nav else 0


def remap_cursor(rows: list[Row], path: CursorPath | None, file_index: int) -> int:
    """Find the row for ``path`` in freshly built rows.

    Falls back to the enclosing hunk or file, then to the row at the nearest
    file index in the same section, then to the top of the list.
    """
    if path is None:
        return first_navigable(rows)

    best_hunk: int | None = None
    best_file: int | None = None
    same_section: list[tuple[int, int]] = []
    for idx, row in enumerate(rows):
        row_path = row.cursor_path()
        if row_path is None:
            continue
        if row_path == path:
            return idx
        if row.section is not path.section:
            continue
        if row.kind is RowKind.FILE:
            same_section.append((row.file_index, idx))
        if row_path.path != path.path:
            continue
        if row.kind is RowKind.FILE:
            best_file = idx
        elif row.kind is RowKind.HUNK and row.hunk_index == path.hunk_index:
            best_hunk = idx

    if best_hunk is not None:
        return best_hunk
    if best_file is not None:
        return best_file
    if same_section:
        nearest = min(same_section, key=lambda item: (abs(item[0] - file_index), -item[0]))
        return nearest[1]
    return first_navigable(rows)


@dataclass
class Viewport:
    """Scroll offset in rows, kept so the cursor stays ``lookahead`` rows from the edges."""

    height: int = 24
    lookahead: int = 5
    offset: int = 0

    def effective_lookahead(self) -> int:
        return max(0, min(self.lookahead, (self.height - 1) // 2))

    def follow(
        self,
        cursor: int,
        total: int,
        row_height: Callable[[int], int] | None = None,
    ) -> int:
        """Adjust ``offset`` for ``cursor`` and return it.

        ``row_height`` gives the screen lines a row occupies (wrapped rows
        take more than one).
        """
        if total <= 0:
            self.offset = 0
            return 0
        height_of = row_height or (lambda _idx: 1)
        height = max(1, self.height)
        margin = self.effective_lookahead()

        top_target = max(0, cursor - margin)
        if self.offset > top_target:
            self.offset = top_target

        bottom = min(total - 1, cursor + margin)
        while self.offset < cursor and self._span(self.offset, bottom, height_of) > height:
            self.offset += 1

        self.offset = max(0, min(self.offset, self._max_offset(total, height, height_of)))
        return self.offset

    @staticmethod
    def _span(start: int, end: int, height_of: Callable[[int], int]) -> int:
        return sum(max(1, height_of(idx)) for idx in range(start, end + 1))

    @staticmethod
    def _max_offset(total: int, height: int, height_of: Callable[[int], int]) -> int:
        used = 0
        idx = total
        while idx > 0:
            used += max(1, height_of(idx - 1))
            if used > height:
                break
            idx -= 1
        return idx


__all__ = [
    "CursorPath",
    "Expansion",
    "Row",
    "RowKind",
    "Viewport",
    "build_rows",
    "first_navigable",
    "navigable_indices",
    "remap_cursor",
    "step_cursor",
]
