"""Screen composition: state in, a list of styled screen rows out.

Layout from top to bottom: the scrolling status tree (or the branch list),
an optional command-menu overlay, and the minibuffer area at the bottom.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import re

from .ansi import clip_ansi_line, display_width, pad_ansi_line, wrap_ansi_line
from .config import Options
from .diff.model import FileEntry, FileKind, Hunk, LineKind, RepoStatus
from .highlight import highlight_lines, sanitize_terminal_text
from .state.cursor import Row, RowKind
from .state.machine import StateMachine
from .state.messages import Message
from .state.mode import (
    BranchListMode,
    CommandMenuMode,
    ConfirmDestructiveMode,
    MinibufferCommandMode,
    SubprocessPromptMode,
)
from .ui_theme import Palette

EXPANDED_GLYPH = "⌄"
COLLAPSED_GLYPH = "›"
MARK_GLYPH = "*"

_KIND_LABELS = {
    FileKind.ADDED: "[NEW] ",
    FileKind.DELETED: "[DELETE] ",
    FileKind.RENAMED: "[RENAME] ",
    FileKind.COPIED: "[COPY] ",
    FileKind.TYPE_CHANGED: "[TYPE] ",
    FileKind.CONFLICTED: "[CONFLICT] ",
}
_WS_ERROR_KINDS = {
    "none": frozenset(),
    "default": frozenset({LineKind.ADDITION}),
    "new": frozenset({LineKind.ADDITION}),
    "old": frozenset({LineKind.DELETION}),
    "context": frozenset({LineKind.CONTEXT}),
    "all": frozenset({LineKind.ADDITION, LineKind.DELETION, LineKind.CONTEXT}),
}
_TRAILING_WS_RE = re.compile(r"[ \t]+$")


@dataclass(frozen=True)
class RenderContext:
    palette: Palette
    options: Options
    width: int
    height: int


def _branch_text(status: RepoStatus, p: Palette) -> str:
    branch = status.branch
    if branch.detached:
        text = f"{p.bold}HEAD (detached){p.base}"
    else:
        text = f"On branch {p.bold}{branch.label()}{p.base}"
    if branch.upstream:
        parts = []
        if branch.ahead:
            parts.append(f"ahead {branch.ahead}")
        if branch.behind:
            parts.append(f"behind {branch.behind}")
        state = ", ".join(parts) if parts else "up to date"
        text += f" {p.dim}[{branch.upstream}: {state}]{p.base}"
    return text


def _file_text(entry: FileEntry, expanded: bool, p: Palette) -> str:
    if not entry.hunks:
        glyph = " "
    else:
        glyph = EXPANDED_GLYPH if expanded else COLLAPSED_GLYPH
    label = _KIND_LABELS.get(entry.kind, "")
    if entry.binary:
        label += "[BINARY] "
    color = p.error if entry.kind is FileKind.CONFLICTED else ""
    return f"{glyph}{color}{label}{sanitize_terminal_text(entry.display_path())}{p.base}"


def _hunk_text(hunk: Hunk, expanded: bool, p: Palette) -> str:
    glyph = EXPANDED_GLYPH if expanded else COLLAPSED_GLYPH
    header = hunk.header_line()
    ranges, sep, caption = header.partition(" @@")
    return f"  {glyph}{p.hunk_head}{ranges}{sep}{p.base}{sanitize_terminal_text(caption)}"


def _mark_ws_errors(text: str, p: Palette) -> str:
    match = _TRAILING_WS_RE.search(text)
    if match is None:
        return text
    return f"{text[: match.start()]}{p.error}{p.reverse}{match.group(0)}"


def _line_text(row: Row, ctx: RenderContext) -> str:
    p = ctx.palette
    assert row.line is not None and row.hunk is not None and row.entry is not None
    line = row.line
    if line.kind is LineKind.NO_NEWLINE:
        return f"    {p.dim}\\{sanitize_terminal_text(line.text)}{p.base}"

    color = {
        LineKind.ADDITION: p.addition,
        LineKind.DELETION: p.deletion,
    }.get(line.kind, "")
    highlighted = None
    if ctx.options.syntax_highlighting:
        highlighted = highlight_lines(
            tuple(sanitize_terminal_text(item.text) for item in row.hunk.lines),
            row.entry.path,
            ctx.options.syntax_style,
        )
    if highlighted is not None:
        body = highlighted[row.line_index or 0]
    else:
        body = sanitize_terminal_text(line.text)
        if line.kind in _WS_ERROR_KINDS.get(ctx.options.ws_error_highlight, frozenset()):
            body = _mark_ws_errors(body, p)
        body = f"{color}{body}"
    return f"    {color}{line.kind.value}{p.base}{body}{p.base}"


def format_row(row: Row, machine: StateMachine, ctx: RenderContext) -> str:
    """Styled text of one tree row, before clipping or cursor highlighting."""
    p = ctx.palette
    status = machine.status
    kind = row.kind
    if kind is RowKind.BRANCH:
        text = _branch_text(status, p)
    elif kind is RowKind.HEAD:
        head = status.head
        text = f"{p.dim}{head.oid}{p.base} {sanitize_terminal_text(head.title)}" if head else ""
    elif kind is RowKind.SECTION:
        count = sum(1 for r in machine.rows if r.kind is RowKind.FILE and _same_group(r, row))
        text = f"{p.heading}{row.title}:{p.base} ({count})"
    elif kind is RowKind.CLEAN:
        text = f"{p.heading}nothing to commit, working tree clean{p.base}"
    elif kind is RowKind.FILE:
        assert row.entry is not None and row.section is not None
        expanded = machine.expansion.file_expanded(row.section, row.entry.path)
        text = _file_text(row.entry, expanded, p)
    elif kind is RowKind.HUNK:
        assert row.entry is not None and row.section is not None and row.hunk is not None
        expanded = machine.expansion.hunk_expanded(row.section, row.entry.path, row.hunk_index or 0)
        text = _hunk_text(row.hunk, expanded, p)
    elif kind is RowKind.LINE:
        text = _line_text(row, ctx)
    else:
        text = ""

    if row.navigable:
        mark = f"{p.key}{MARK_GLYPH}{p.base}" if machine.is_marked(row) else " "
        text = f"{mark}{text}"
    return f"{p.base}{text}"


def _same_group(file_row: Row, section_row: Row) -> bool:
    if file_row.section is not section_row.section or file_row.entry is None:
        return False
    untracked = file_row.entry.kind is FileKind.UNTRACKED
    return untracked == (section_row.title == "Untracked files")


def _highlight_cursor(text: str, width: int, p: Palette) -> str:
    body = text.replace(p.reset, p.reset + p.reverse)
    return f"{p.reverse}{pad_ansi_line(body, width)}{p.reset}"


def _shape(text: str, ctx: RenderContext) -> list[str]:
    if ctx.options.truncate_lines:
        return [clip_ansi_line(text, ctx.width)]
    return wrap_ansi_line(text, ctx.width)


# Bottom area


def _menu_rows(mode: CommandMenuMode, ctx: RenderContext) -> list[str]:
    p = ctx.palette
    rows = [f"{p.heading}{mode.menu.title}{p.base}"]
    for item in mode.menu.items:
        rows.append(f" {p.key}{item.key}{p.base} => {item.label}")
    return rows


def _prompt_row(prompt: str, text: str, cursor: int, ctx: RenderContext) -> str:
    p = ctx.palette
    shown = sanitize_terminal_text(text)
    before = shown[:cursor]
    at = shown[cursor : cursor + 1] or " "
    after = shown[cursor + 1 :]
    # Keep the cursor visible when the input is wider than the screen.
    overflow = display_width(prompt + before) + 1 - ctx.width
    if overflow > 0:
        before = "…" + before[overflow + 1 :]
    return f"{p.base}{prompt}{before}{p.reverse}{at}{p.base}{after}"


def minibuffer_rows(machine: StateMachine, notice: Message | None, ctx: RenderContext) -> list[str]:
    """Prompt line in text-entry modes, otherwise the current notice lines."""
    p = ctx.palette
    mode = machine.mode
    if isinstance(mode, (MinibufferCommandMode, SubprocessPromptMode)):
        editor = mode.editor
        return [_prompt_row(mode.prompt, editor.text, editor.cursor, ctx)]
    if isinstance(mode, ConfirmDestructiveMode):
        return [f"{p.base}{p.error}{mode.prompt}{p.base}"]
    if notice is None:
        return [""]
    color = p.error if notice.is_error else ""
    limit = max(1, ctx.height // 2)
    lines = notice.lines()
    if len(lines) > limit:
        lines = lines[-limit:]
    return [f"{p.base}{color}{line}{p.base}" for line in lines]


def _bottom_rows(machine: StateMachine, notice: Message | None, ctx: RenderContext) -> list[str]:
    rows: list[str] = []
    if isinstance(machine.mode, CommandMenuMode):
        rows.extend(_menu_rows(machine.mode, ctx))
    rows.extend(minibuffer_rows(machine, notice, ctx))
    return rows


def content_height(machine: StateMachine, notice: Message | None, ctx: RenderContext) -> int:
    return max(1, ctx.height - len(_bottom_rows(machine, notice, ctx)))


def row_height_fn(machine: StateMachine, ctx: RenderContext) -> Callable[[int], int] | None:
    """Screen lines per tree row; ``None`` when every row takes one line."""
    if ctx.options.truncate_lines:
        return None
    cache: dict[int, int] = {}

    def height_of(idx: int) -> int:
        if idx not in cache:
            cache[idx] = len(_shape(format_row(machine.rows[idx], machine, ctx), ctx))
        return cache[idx]

    return height_of


def _branch_list_rows(mode: BranchListMode, height: int, ctx: RenderContext) -> list[str]:
    p = ctx.palette
    rows = [f"{p.base}{p.heading}Branches:{p.base}"]
    visible = max(1, height - 1)
    start = max(0, min(mode.cursor - visible // 2, len(mode.branches) - visible))
    for idx in range(start, min(len(mode.branches), start + visible)):
        name = mode.branches[idx]
        marker = "*" if name == mode.current else " "
        text = f"{p.base}{marker} {sanitize_terminal_text(name)}"
        if idx == mode.cursor:
            rows.append(_highlight_cursor(clip_ansi_line(text, ctx.width), ctx.width, p))
        else:
            rows.append(clip_ansi_line(text, ctx.width))
    return rows


def render_screen(machine: StateMachine, notice: Message | None, ctx: RenderContext) -> list[str]:
    """Compose exactly ``ctx.height`` rows from the current state.

    Scrolling uses ``machine.viewport.offset`` as it stands; callers update
    the viewport first.
    """
    bottom = _bottom_rows(machine, notice, ctx)
    height = max(1, ctx.height - len(bottom))

    if isinstance(machine.mode, BranchListMode):
        screen = _branch_list_rows(machine.mode, height, ctx)
    else:
        screen = []
        idx = machine.viewport.offset
        while idx < len(machine.rows) and len(screen) < height:
            row = machine.rows[idx]
            lines = _shape(format_row(row, machine, ctx), ctx)
            if idx == machine.cursor and row.navigable:
                lines = [_highlight_cursor(line, ctx.width, ctx.palette) for line in lines]
            screen.extend(lines)
            idx += 1

    screen = screen[:height]
    screen.extend([""] * (height - len(screen)))
    screen.extend(clip_ansi_line(row, ctx.width) for row in bottom)
    return screen[: ctx.height]


__all__ = [
    "RenderContext",
    "content_height",
    "format_row",
    "minibuffer_rows",
    "render_screen",
    "row_height_fn",
]
