"""Patch synthesis from partial selections.

Turns a ``Selection`` over a ``RepoStatus`` into unified-diff text that
``git apply`` accepts against the index or the working tree.

Rules for a partially selected hunk, in the orientation being applied:

* context lines are always kept;
* an unselected addition is omitted;
* an unselected deletion becomes a context line with the same text;
* a no-newline marker follows its line, and goes when that line goes;
* a line kept as context with a no-newline marker is deleted and added
  back with a newline when later lines follow it.

Unstage and Discard are emitted inverted (additions and deletions swapped)
and are applied forward, so the rules above hold for every action.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
import logging
import re

from .model import FileEntry, FileKind, Hunk, Line, LineKind, RepoStatus, Section
from .selection import ResolvedFile, Selection

_LOG = logging.getLogger(__name__)

_NEEDS_QUOTING_RE = re.compile(r'[\x00-\x1f"\\\x7f-\U0010ffff]')
_QUOTE_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\v": "\\v",
    "\f": "\\f",
    "\r": "\\r",
    '"': '\\"',
    "\\": "\\\\",
}
_SWAPPED_KINDS = {
    LineKind.ADDITION: LineKind.DELETION,
    LineKind.DELETION: LineKind.ADDITION,
    LineKind.CONTEXT: LineKind.CONTEXT,
    LineKind.NO_NEWLINE: LineKind.NO_NEWLINE,
}


class SynthesisError(Exception):
    """Base class for patch synthesis failures."""


class EmptySelection(SynthesisError):
    def __init__(self, message: str = "Nothing selected") -> None:
        super().__init__(message)


class InvalidHunkState(SynthesisError):
    """A source hunk's header does not match its lines."""


class PatchAction(Enum):
    STAGE = "stage"
    UNSTAGE = "unstage"
    DISCARD = "discard"

    @property
    def section(self) -> Section:
        return Section.STAGED if self is PatchAction.UNSTAGE else Section.UNSTAGED

    @property
    def inverted(self) -> bool:
        return self is not PatchAction.STAGE

    @property
    def cached(self) -> bool:
        """Whether the patch applies to the index rather than the working tree."""
        return self is not PatchAction.DISCARD


@dataclass(frozen=True)
class ActionPlan:
    """What one staging action needs to do.

    ``patch`` covers entries with hunks; ``opaque`` lists entries (untracked,
    binary, conflicted, mode-only) that can only be handled by path.
    """

    action: PatchAction
    patch: str | None
    opaque: tuple[FileEntry, ...] = ()

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(entry.path for entry in self.opaque)


def quote_path(path: str) -> str:
    """Quote a path the way git does when it contains unusual characters."""
    if _NEEDS_QUOTING_RE.search(path) is None:
        return path
    out: list[str] = ['"']
    for ch in path:
        if ch in _QUOTE_ESCAPES:
            out.append(_QUOTE_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\{ord(ch):03o}")
        elif ord(ch) > 0x7F:
            out.extend(f"\\{byte:03o}" for byte in ch.encode("utf-8"))
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def invert_hunk(hunk: Hunk) -> Hunk:
    """Swap the old and new sides of ``hunk``."""
    return Hunk(
        old_start=hunk.new_start,
        old_count=hunk.new_count,
        new_start=hunk.old_start,
        new_count=hunk.old_count,
        header=hunk.header,
        lines=tuple(Line(_SWAPPED_KINDS[line.kind], line.text, line.origin) for line in hunk.lines),
    )


def _new_start(old_start: int, old_count: int, new_count: int, shift: int) -> int:
    if old_count == 0:
        return old_start + 1 + shift
    if new_count == 0:
        return old_start - 1 + shift
    return old_start + shift


def _reterminate_context(lines: list[Line]) -> tuple[Line, ...]:
    """Split an unterminated context line that is no longer last.

    A deletion kept as context still carries its no-newline marker, so it can
    only end the new side too. When kept additions follow it, the line is
    deleted as is and added back with a newline.
    """
    out: list[Line] = []
    idx = 0
    while idx < len(lines):
        line = lines[idx]
        marker = lines[idx + 1] if idx + 1 < len(lines) else None
        if (
            line.kind is LineKind.CONTEXT
            and marker is not None
            and marker.kind is LineKind.NO_NEWLINE
            and idx + 2 < len(lines)
        ):
            out.append(Line(LineKind.DELETION, line.text, len(out)))
            out.append(Line(marker.kind, marker.text, len(out)))
            out.append(Line(LineKind.ADDITION, line.text, len(out)))
            idx += 2
            continue
        out.append(Line(line.kind, line.text, len(out)))
        idx += 1
    return tuple(out)


def subset_hunk(
    hunk: Hunk,
    selected: frozenset[int] | None,
    *,
    inverted: bool = False,
    shift: int = 0,
) -> Hunk | None:
    """Return the part of ``hunk`` covered by ``selected`` line origins.

    ``None`` for ``selected`` means the whole hunk. Returns ``None`` when the
    selection names no addition or deletion of this hunk.
    """
    if not hunk.is_consistent():
        old, new = hunk.counted_ranges()
        raise InvalidHunkState(
            f"hunk {hunk.header_line()!r} declares -{hunk.old_count} +{hunk.new_count}"
            f" but holds -{old} +{new}"
        )

    changes = hunk.change_indices()
    if selected is not None:
        selected = selected & changes
        if not selected:
            return None
        if selected == changes:
            selected = None

    source = invert_hunk(hunk) if inverted else hunk
    if selected is None:
        new_start = _new_start(source.old_start, source.old_count, source.new_count, shift)
        if new_start == source.new_start:
            return source
        return replace(source, new_start=new_start, raw_header="")

    lines: list[Line] = []
    previous_kept = False
    for line in source.lines:
        if line.kind is LineKind.NO_NEWLINE:
            if previous_kept:
                lines.append(Line(line.kind, line.text, len(lines)))
            continue
        if line.kind is LineKind.ADDITION and line.origin not in selected:
            previous_kept = False
            continue
        kind = line.kind
        if kind is LineKind.DELETION and line.origin not in selected:
            kind = LineKind.CONTEXT
        lines.append(Line(kind, line.text, len(lines)))
        previous_kept = True

    result = Hunk(
        old_start=source.old_start,
        old_count=0,
        new_start=source.new_start,
        new_count=0,
        header=source.header,
        lines=_reterminate_context(lines),
    )
    old_count, new_count = result.counted_ranges()
    return Hunk(
        old_start=source.old_start,
        old_count=old_count,
        new_start=_new_start(source.old_start, old_count, new_count, shift),
        new_count=new_count,
        header=source.header,
        lines=result.lines,
    )


def _mode_changed(entry: FileEntry) -> bool:
    return bool(entry.old_mode and entry.new_mode and entry.old_mode != entry.new_mode)


def _renamed(entry: FileEntry) -> bool:
    return (entry.old_path or entry.path) != entry.path


def _generated_header(entry: FileEntry, inverted: bool, partial: bool) -> list[str]:
    old_path = entry.old_path or entry.path
    new_path = entry.path
    old_mode = entry.old_mode
    new_mode = entry.new_mode
    kind = entry.kind
    if inverted:
        old_path, new_path = new_path, old_path
        old_mode, new_mode = new_mode, old_mode
        if kind is FileKind.ADDED:
            kind = FileKind.DELETED
        elif kind is FileKind.DELETED:
            kind = FileKind.ADDED
    if partial and kind is FileKind.DELETED:
        # Removing only part of the content cannot delete the file.
        kind = FileKind.MODIFIED
    created_mode = new_mode or "100644"
    if partial or (inverted and entry.kind is FileKind.COPIED):
        # Only content changes: the file keeps the name and mode it has in
        # the target, which is the old side of the patch.
        new_path = old_path
        old_mode = new_mode = None

    old_name = quote_path(f"a/{old_path}")
    new_name = quote_path(f"b/{new_path}")
    lines = [f"diff --git {old_name} {new_name}"]
    if kind is FileKind.ADDED:
        lines.append(f"new file mode {created_mode}")
    elif kind is FileKind.DELETED:
        lines.append(f"deleted file mode {old_mode or '100644'}")
    elif old_mode and new_mode and old_mode != new_mode:
        lines.append(f"old mode {old_mode}")
        lines.append(f"new mode {new_mode}")
    if old_path != new_path:
        verb = "copy" if kind is FileKind.COPIED else "rename"
        lines.append(f"{verb} from {quote_path(old_path)}")
        lines.append(f"{verb} to {quote_path(new_path)}")
    lines.append(f"--- {'/dev/null' if kind is FileKind.ADDED else old_name}")
    lines.append(f"+++ {'/dev/null' if kind is FileKind.DELETED else new_name}")
    return lines


def _file_patch(resolved: ResolvedFile, action: PatchAction) -> str | None:
    entry = resolved.entry
    if resolved.whole:
        wanted: dict[int, frozenset[int] | None] = {idx: None for idx in range(len(entry.hunks))}
    else:
        wanted = resolved.hunks

    hunks: list[Hunk] = []
    partial = False
    shift = 0
    for idx in sorted(wanted):
        source = entry.hunks[idx]
        selected = wanted[idx]
        if selected is not None and not source.change_indices() <= selected:
            partial = True
        piece = subset_hunk(source, selected, inverted=action.inverted, shift=shift)
        if piece is None:
            continue
        old_count, new_count = piece.counted_ranges()
        if (old_count, new_count) != (piece.old_count, piece.new_count):
            raise InvalidHunkState(f"synthesized hunk {piece.header_line()!r} is inconsistent")
        shift += new_count - old_count
        hunks.append(piece)
    if not hunks:
        return None
    if len(hunks) < len(entry.hunks):
        partial = True

    reshaped = partial and (entry.kind is FileKind.DELETED or _renamed(entry) or _mode_changed(entry))
    if not action.inverted and entry.header_lines and not reshaped:
        header = list(entry.header_lines)
    else:
        header = _generated_header(entry, action.inverted, partial)
    return "\n".join(header) + "\n" + "".join(hunk.text() for hunk in hunks)


def plan_action(status: RepoStatus, selection: Selection, action: PatchAction) -> ActionPlan:
    """Resolve ``selection`` for ``action`` and build the patch and path list.

    Raises ``EmptySelection`` when nothing resolves to anything actionable.
    """
    resolved_files = selection.resolve(status, action.section)
    if not resolved_files:
        raise EmptySelection()

    parts: list[str] = []
    opaque: list[FileEntry] = []
    for resolved in resolved_files:
        if resolved.entry.is_opaque:
            opaque.append(resolved.entry)
            continue
        text = _file_patch(resolved, action)
        if text is not None:
            parts.append(text)

    if not parts and not opaque:
        raise EmptySelection("Selection contains no changed lines")
    patch = "".join(parts) if parts else None
    _LOG.debug(
        "planned %s: %d file patch(es), %d path(s)",
        action.value,
        len(parts),
        len(opaque),
    )
    return ActionPlan(action=action, patch=patch, opaque=tuple(opaque))


def synthesize_patch(status: RepoStatus, selection: Selection, action: PatchAction) -> str:
    """Return only the patch text for ``selection``."""
    plan = plan_action(status, selection, action)
    if plan.patch is None:
        raise EmptySelection("Selection has no hunks to patch")
    return plan.patch


__all__ = [
    "ActionPlan",
    "EmptySelection",
    "InvalidHunkState",
    "PatchAction",
    "SynthesisError",
    "invert_hunk",
    "plan_action",
    "quote_path",
    "subset_hunk",
    "synthesize_patch",
]
