"""User selections over a ``RepoStatus`` snapshot.

A ``Selection`` is a set of references (file, optional hunk, optional lines).
References are resolved against the current snapshot on every use; anything
that no longer resolves is dropped instead of dangling.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from .model import FileEntry, Hunk, RepoStatus, Section


def hunk_key(hunk: Hunk) -> tuple[int, int, int, int]:
    return (hunk.old_start, hunk.old_count, hunk.new_start, hunk.new_count)


@dataclass(frozen=True)
class SelectionRef:
    """Reference to a whole file, a whole hunk, or some lines of a hunk.

    ``hunk_index`` of ``None`` means the whole file. An empty ``lines`` set
    with a hunk means the whole hunk. ``hunk_ranges`` pins the hunk header so
    a refresh that reshapes the hunk invalidates the reference.
    """

    section: Section
    file_index: int
    path: str
    hunk_index: int | None = None
    hunk_ranges: tuple[int, int, int, int] | None = None
    lines: frozenset[int] = frozenset()

    @classmethod
    def for_file(cls, section: Section, file_index: int, entry: FileEntry) -> SelectionRef:
        return cls(section=section, file_index=file_index, path=entry.path)

    @classmethod
    def for_hunk(
        cls,
        section: Section,
        file_index: int,
        entry: FileEntry,
        hunk_index: int,
        lines: frozenset[int] = frozenset(),
    ) -> SelectionRef:
        return cls(
            section=section,
            file_index=file_index,
            path=entry.path,
            hunk_index=hunk_index,
            hunk_ranges=hunk_key(entry.hunks[hunk_index]),
            lines=lines,
        )


@dataclass(frozen=True)
class ResolvedFile:
    """A selection resolved for one file.

    ``hunks`` maps hunk index to the selected line origins, or ``None`` for
    the whole hunk. It is ignored when ``whole`` is set.
    """

    file_index: int
    entry: FileEntry
    whole: bool
    hunks: dict[int, frozenset[int] | None] = field(default_factory=dict)


def _resolve_entry(status: RepoStatus, ref: SelectionRef) -> tuple[int, FileEntry] | None:
    entries = status.entries(ref.section)
    if 0 <= ref.file_index < len(entries) and entries[ref.file_index].path == ref.path:
        return ref.file_index, entries[ref.file_index]
    idx = status.find(ref.section, ref.path)
    if idx is None:
        return None
    return idx, entries[idx]


def resolve_ref(status: RepoStatus, ref: SelectionRef) -> SelectionRef | None:
    """Re-anchor ``ref`` on ``status``; ``None`` when it no longer exists."""
    found = _resolve_entry(status, ref)
    if found is None:
        return None
    file_index, entry = found
    if ref.hunk_index is None:
        return replace(ref, file_index=file_index)

    if not 0 <= ref.hunk_index < len(entry.hunks):
        return None
    hunk = entry.hunks[ref.hunk_index]
    if ref.hunk_ranges is not None and ref.hunk_ranges != hunk_key(hunk):
        return None
    if not ref.lines:
        return replace(ref, file_index=file_index)

    lines = frozenset(idx for idx in ref.lines if 0 <= idx < len(hunk.lines))
    if not lines:
        return None
    return replace(ref, file_index=file_index, lines=lines)


@dataclass(frozen=True)
class Selection:
    refs: frozenset[SelectionRef] = frozenset()

    def __bool__(self) -> bool:
        return bool(self.refs)

    def __len__(self) -> int:
        return len(self.refs)

    def __contains__(self, ref: object) -> bool:
        return ref in self.refs

    def toggle(self, ref: SelectionRef) -> Selection:
        if ref in self.refs:
            return Selection(self.refs - {ref})
        return Selection(self.refs | {ref})

    def prune(self, status: RepoStatus) -> Selection:
        """Return a selection holding only references that still resolve."""
        kept: set[SelectionRef] = set()
        for ref in self.refs:
            resolved = resolve_ref(status, ref)
            if resolved is not None:
                kept.add(resolved)
        return Selection(frozenset(kept))

    def for_section(self, section: Section) -> Selection:
        return Selection(frozenset(ref for ref in self.refs if ref.section is section))

    def resolve(self, status: RepoStatus, section: Section) -> list[ResolvedFile]:
        """Group resolvable references for ``section`` per file, in listing order.

        A whole-file reference wins over hunk references; a whole-hunk
        reference wins over line references to the same hunk.
        """
        files: dict[int, ResolvedFile] = {}
        for ref in self.refs:
            if ref.section is not section:
                continue
            resolved = resolve_ref(status, ref)
            if resolved is None:
                continue
            entry = status.entries(section)[resolved.file_index]
            current = files.get(resolved.file_index)
            if current is None:
                current = ResolvedFile(file_index=resolved.file_index, entry=entry, whole=False)
                files[resolved.file_index] = current
            if resolved.hunk_index is None:
                files[resolved.file_index] = replace(current, whole=True)
                continue
            previous = current.hunks.get(resolved.hunk_index, frozenset())
            if not resolved.lines or previous is None:
                current.hunks[resolved.hunk_index] = None
            else:
                current.hunks[resolved.hunk_index] = previous | resolved.lines
        return [files[idx] for idx in sorted(files)]


EMPTY_SELECTION = Selection()

__all__ = [
    "EMPTY_SELECTION",
    "ResolvedFile",
    "Selection",
    "SelectionRef",
    "hunk_key",
    "resolve_ref",
]
