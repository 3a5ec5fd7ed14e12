"""Status listing and unified-diff parsing.

Builds a ``RepoStatus`` top-down from structural markers: the porcelain
branch record, ``diff --git`` file headers and ``@@`` hunk headers. Hunk
bodies are read by count so diff content never gets mistaken for markup.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re

from .model import (
    BranchInfo,
    FileEntry,
    FileKind,
    HeadCommit,
    Hunk,
    Line,
    LineKind,
    RepoStatus,
)

_LOG = logging.getLogger(__name__)

_HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")
_BRANCH_AHEAD_BEHIND_RE = re.compile(r"\[(?:ahead (\d+))?(?:, )?(?:behind (\d+))?(?:gone)?\]$")
_OCTAL_ESCAPE_RE = re.compile(r"\\([0-7]{3})")
_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "t": "\t",
    "n": "\n",
    "v": "\v",
    "f": "\f",
    "r": "\r",
    '"': '"',
    "\\": "\\",
}

_UNMERGED_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})
_STATUS_KINDS = {
    "M": FileKind.MODIFIED,
    "A": FileKind.ADDED,
    "D": FileKind.DELETED,
    "R": FileKind.RENAMED,
    "C": FileKind.COPIED,
    "T": FileKind.TYPE_CHANGED,
}


class ParseError(ValueError):
    """Raised when status or diff text is structurally malformed."""


@dataclass(frozen=True)
class StatusRecord:
    code: str
    path: str
    old_path: str | None = None

    @property
    def index_code(self) -> str:
        return self.code[0]

    @property
    def worktree_code(self) -> str:
        return self.code[1]


def unquote_path(raw: str) -> str:
    """Undo git's C-style quoting of unusual path names."""
    if len(raw) < 2 or not (raw.startswith('"') and raw.endswith('"')):
        return raw

    body = raw[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.extend(ch.encode("utf-8"))
            i += 1
            continue
        match = _OCTAL_ESCAPE_RE.match(body, i)
        if match:
            out.append(int(match.group(1), 8) & 0xFF)
            i = match.end()
            continue
        nxt = body[i + 1]
        out.extend(_SIMPLE_ESCAPES.get(nxt, nxt).encode("utf-8"))
        i += 2
    return out.decode("utf-8", errors="replace")


def parse_branch_record(record: str) -> BranchInfo:
    """Parse the ``## ...`` header emitted by ``git status --branch``."""
    text = record[3:] if record.startswith("## ") else record
    if text.startswith("No commits yet on "):
        return BranchInfo(name=text[len("No commits yet on "):].strip(), no_commits=True)
    if text.startswith("Initial commit on "):
        return BranchInfo(name=text[len("Initial commit on "):].strip(), no_commits=True)
    if text.startswith("HEAD (no branch)"):
        return BranchInfo(name="HEAD", detached=True)

    ahead = 0
    behind = 0
    match = _BRANCH_AHEAD_BEHIND_RE.search(text)
    if match:
        ahead = int(match.group(1) or 0)
        behind = int(match.group(2) or 0)
        text = text[: match.start()].rstrip()

    name, sep, upstream = text.partition("...")
    return BranchInfo(
        name=name.strip(),
        upstream=(upstream.strip() or None) if sep else None,
        ahead=ahead,
        behind=behind,
    )


def parse_status_records(output: str) -> tuple[BranchInfo, list[StatusRecord]]:
    """Parse ``git status --porcelain=v1 --branch -z`` output."""
    branch = BranchInfo(name="")
    records: list[StatusRecord] = []
    tokens = output.split("\0")
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if not token:
            continue
        if token.startswith("## "):
            branch = parse_branch_record(token)
            continue
        if len(token) < 4 or token[2] != " ":
            raise ParseError(f"malformed status record: {token!r}")

        code = token[:2]
        path = token[3:]
        old_path = None
        # Renames and copies carry the source path as the following token.
        if "R" in code or "C" in code:
            if index >= len(tokens) or not tokens[index]:
                raise ParseError(f"rename record without source path: {token!r}")
            old_path = tokens[index]
            index += 1
        records.append(StatusRecord(code=code, path=path, old_path=old_path))
    return branch, records


def parse_head_commit(output: str) -> HeadCommit | None:
    """Parse ``git log -1 --format=%h%x00%s``; empty output means no commits."""
    text = output.strip("\n")
    if not text:
        return None
    oid, _, title = text.partition("\0")
    return HeadCommit(oid=oid.strip(), title=title.strip())


def _split_diff_git_paths(rest: str) -> tuple[str | None, str | None]:
    """Best-effort split of ``a/X b/Y`` from a ``diff --git`` line."""
    if rest.startswith('"'):
        end = rest.find('" ', 1)
        while end != -1 and rest[end - 1] == "\\":
            end = rest.find('" ', end + 1)
        if end == -1:
            return None, None
        old_raw = rest[: end + 1]
        new_raw = rest[end + 2:]
    else:
        # Unquoted names may contain spaces; prefer the split giving equal halves.
        half = len(rest) // 2
        if rest[half:half + 3] == " b/" and rest[:half][2:] == rest[half + 3:]:
            old_raw, new_raw = rest[:half], rest[half + 1:]
        else:
            old_raw, sep, new_raw = rest.partition(" b/")
            if not sep:
                return None, None
            new_raw = "b/" + new_raw

    old = unquote_path(old_raw)
    new = unquote_path(new_raw)
    old_path = old[2:] if old.startswith("a/") else None
    new_path = new[2:] if new.startswith("b/") else None
    return old_path, new_path


def _strip_marker_path(raw: str, prefix: str) -> str | None:
    """Parse a ``---``/``+++`` path, returning ``None`` for ``/dev/null``."""
    value = raw.rstrip("\t")
    if "\t" in value:
        value = value.split("\t", 1)[0]
    value = unquote_path(value)
    if value == "/dev/null":
        return None
    if value.startswith(prefix):
        return value[len(prefix):]
    return value


@dataclass
class _FileHeader:
    old_path: str | None = None
    new_path: str | None = None
    kind: FileKind = FileKind.MODIFIED
    binary: bool = False
    old_mode: str | None = None
    new_mode: str | None = None


def _parse_header_line(line: str, header: _FileHeader) -> None:
    if line.startswith("old mode "):
        header.old_mode = line[len("old mode "):].strip()
    elif line.startswith("new mode "):
        header.new_mode = line[len("new mode "):].strip()
    elif line.startswith("deleted file mode "):
        header.kind = FileKind.DELETED
        header.old_mode = line[len("deleted file mode "):].strip()
    elif line.startswith("new file mode "):
        header.kind = FileKind.ADDED
        header.new_mode = line[len("new file mode "):].strip()
    elif line.startswith("rename from "):
        header.kind = FileKind.RENAMED
        header.old_path = unquote_path(line[len("rename from "):])
    elif line.startswith("rename to "):
        header.new_path = unquote_path(line[len("rename to "):])
    elif line.startswith("copy from "):
        header.kind = FileKind.COPIED
        header.old_path = unquote_path(line[len("copy from "):])
    elif line.startswith("copy to "):
        header.new_path = unquote_path(line[len("copy to "):])
    elif line.startswith("Binary files ") or line == "GIT binary patch":
        header.binary = True
    elif line.startswith("--- "):
        path = _strip_marker_path(line[4:], "a/")
        if path is not None:
            header.old_path = path
    elif line.startswith("+++ "):
        path = _strip_marker_path(line[4:], "b/")
        if path is not None:
            header.new_path = path
    # ``index``, ``similarity index`` and ``dissimilarity index`` carry nothing we need.


def parse_hunk_header(line: str) -> tuple[int, int, int, int, str]:
    match = _HUNK_RE.match(line)
    if match is None:
        raise ParseError(f"malformed hunk header: {line!r}")
    old_count = int(match.group(2)) if match.group(2) is not None else 1
    new_count = int(match.group(4)) if match.group(4) is not None else 1
    return int(match.group(1)), old_count, int(match.group(3)), new_count, match.group(5)


class _DiffReader:
    """Cursor over the ``\\n``-separated lines of one diff text."""

    def __init__(self, text: str) -> None:
        self.lines = text.split("\n")
        if self.lines and self.lines[-1] == "":
            self.lines.pop()
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.lines)

    def peek(self) -> str:
        return self.lines[self.pos]

    def take(self) -> str:
        line = self.lines[self.pos]
        self.pos += 1
        return line

    def skip_to_next_file(self) -> None:
        while not self.at_end() and not self.peek().startswith("diff "):
            self.pos += 1


def _read_hunk(reader: _DiffReader) -> Hunk:
    raw_header = reader.take()
    old_start, old_count, new_start, new_count, caption = parse_hunk_header(raw_header)
    old_left = old_count
    new_left = new_count
    lines: list[Line] = []

    def append(kind: LineKind, text: str) -> None:
        lines.append(Line(kind=kind, text=text, origin=len(lines)))

    while old_left > 0 or new_left > 0:
        if reader.at_end():
            raise ParseError(f"hunk body ended early after {raw_header!r}")
        line = reader.take()
        marker = line[:1]
        if marker == " " or line == "":
            if old_left <= 0 or new_left <= 0:
                raise ParseError(f"context line exceeds hunk ranges in {raw_header!r}")
            append(LineKind.CONTEXT, line[1:])
            old_left -= 1
            new_left -= 1
        elif marker == "-":
            if old_left <= 0:
                raise ParseError(f"deletion exceeds old range in {raw_header!r}")
            append(LineKind.DELETION, line[1:])
            old_left -= 1
        elif marker == "+":
            if new_left <= 0:
                raise ParseError(f"addition exceeds new range in {raw_header!r}")
            append(LineKind.ADDITION, line[1:])
            new_left -= 1
        elif marker == "\\":
            append(LineKind.NO_NEWLINE, line[1:])
        else:
            raise ParseError(f"unexpected line {line!r} in hunk {raw_header!r}")

    while not reader.at_end() and reader.peek().startswith("\\"):
        append(LineKind.NO_NEWLINE, reader.take()[1:])

    return Hunk(
        old_start=old_start,
        old_count=old_count,
        new_start=new_start,
        new_count=new_count,
        header=caption,
        lines=tuple(lines),
        raw_header=raw_header,
    )


def _read_file_section(reader: _DiffReader) -> FileEntry:
    first = reader.take()
    header_lines = [first]
    header = _FileHeader()
    header.old_path, header.new_path = _split_diff_git_paths(first[len("diff --git "):])

    while not reader.at_end():
        line = reader.peek()
        if line.startswith("@@") or line.startswith("diff "):
            break
        header_lines.append(reader.take())
        _parse_header_line(line, header)
        if line == "GIT binary patch":
            reader.skip_to_next_file()
            break

    if header.old_path is None and header.new_path is None:
        raise ParseError(f"file header without paths: {first!r}")

    hunks: list[Hunk] = []
    while not reader.at_end() and reader.peek().startswith("@@"):
        hunks.append(_read_hunk(reader))
    if not reader.at_end() and not reader.peek().startswith("diff "):
        raise ParseError(f"unexpected line after hunks: {reader.peek()!r}")

    path = header.new_path if header.new_path is not None else header.old_path
    assert path is not None
    old_path = header.old_path if header.kind in (FileKind.RENAMED, FileKind.COPIED) else None
    return FileEntry(
        path=path,
        kind=header.kind,
        old_path=old_path,
        binary=header.binary,
        hunks=() if header.binary else tuple(hunks),
        header_lines=tuple(header_lines),
        old_mode=header.old_mode,
        new_mode=header.new_mode,
    )


def _read_combined_section(reader: _DiffReader) -> FileEntry:
    first = reader.take()
    _, _, raw = first.partition(" --cc " if first.startswith("diff --cc ") else " --combined ")
    path = unquote_path(raw.strip())
    if not path:
        raise ParseError(f"file header without paths: {first!r}")
    reader.skip_to_next_file()
    return FileEntry(path=path, kind=FileKind.CONFLICTED, header_lines=(first,))


def parse_diff(text: str) -> list[FileEntry]:
    """Parse unified ``git diff`` output into file entries, in source order."""
    reader = _DiffReader(text)
    entries: list[FileEntry] = []
    while not reader.at_end():
        line = reader.peek()
        if line.startswith("diff --git "):
            entries.append(_read_file_section(reader))
        elif line.startswith("diff --cc ") or line.startswith("diff --combined "):
            entries.append(_read_combined_section(reader))
        elif not line.strip():
            reader.take()
        else:
            raise ParseError(f"unexpected line outside a file section: {line!r}")
    return entries


def _entry_for_record(
    record: StatusRecord,
    code: str,
    diffs: dict[str, FileEntry],
) -> FileEntry:
    kind = _STATUS_KINDS.get(code, FileKind.MODIFIED)
    diff_entry = diffs.get(record.path)
    if diff_entry is None:
        return FileEntry(path=record.path, kind=kind, old_path=record.old_path)
    return FileEntry(
        path=record.path,
        kind=kind,
        old_path=record.old_path or diff_entry.old_path,
        binary=diff_entry.binary,
        hunks=diff_entry.hunks,
        header_lines=diff_entry.header_lines,
        old_mode=diff_entry.old_mode,
        new_mode=diff_entry.new_mode,
    )


def build_repo_status(
    status_output: str,
    unstaged_diff: str,
    staged_diff: str,
    head_output: str = "",
) -> RepoStatus:
    """Combine status listing and per-section diffs into one snapshot.

    The status listing decides which files exist and in what order; diff
    sections are attached by path. Untracked files are never diffed.
    """
    branch, records = parse_status_records(status_output)
    unstaged_by_path = {entry.path: entry for entry in parse_diff(unstaged_diff)}
    staged_by_path = {entry.path: entry for entry in parse_diff(staged_diff)}

    untracked: list[FileEntry] = []
    unstaged: list[FileEntry] = []
    staged: list[FileEntry] = []
    for record in records:
        if record.code == "!!":
            continue
        if record.code == "??":
            untracked.append(FileEntry(path=record.path, kind=FileKind.UNTRACKED))
            continue
        if record.code in _UNMERGED_CODES:
            unstaged.append(FileEntry(path=record.path, kind=FileKind.CONFLICTED))
            continue
        if record.index_code not in " ?!":
            staged.append(_entry_for_record(record, record.index_code, staged_by_path))
        if record.worktree_code not in " ?!":
            unstaged_record = StatusRecord(record.code, record.path)
            unstaged.append(_entry_for_record(unstaged_record, record.worktree_code, unstaged_by_path))

    _LOG.debug(
        "parsed status: %d untracked, %d unstaged, %d staged",
        len(untracked),
        len(unstaged),
        len(staged),
    )
    return RepoStatus(
        branch=branch,
        head=parse_head_commit(head_output),
        unstaged=tuple(untracked + unstaged),
        staged=tuple(staged),
    )


__all__ = [
    "ParseError",
    "StatusRecord",
    "build_repo_status",
    "parse_branch_record",
    "parse_diff",
    "parse_head_commit",
    "parse_hunk_header",
    "parse_status_records",
    "unquote_path",
]
