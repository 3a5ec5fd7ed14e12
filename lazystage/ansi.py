"""ANSI-aware measurement, clipping and wrapping of styled screen rows.

Escape sequences are carried through untouched and take no columns; tabs
expand to 8-column stops; wide characters take two columns.
"""

from __future__ import annotations

from collections.abc import Iterator
import re
import unicodedata

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
TAB_STOP = 8


def char_display_width(ch: str, col: int) -> int:
    """Return terminal column width for one character at visual column ``col``."""
    if ch == "\t":
        return TAB_STOP - (col % TAB_STOP)
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def _tokens(text: str) -> Iterator[tuple[str, bool]]:
    """Yield ``(token, is_escape)`` pairs: whole escape sequences or single characters."""
    i = 0
    n = len(text)
    while i < n:
        if text[i] == "\x1b":
            match = ANSI_ESCAPE_RE.match(text, i)
            if match:
                yield match.group(0), True
                i = match.end()
                continue
        yield text[i], False
        i += 1


def display_width(text: str) -> int:
    col = 0
    for token, is_escape in _tokens(text):
        if not is_escape:
            col += char_display_width(token, col)
    return col


def clip_ansi_line(text: str, max_cols: int) -> str:
    """Trim a styled row to at most ``max_cols`` display columns."""
    if max_cols <= 0 or not text:
        return ""

    out: list[str] = []
    col = 0
    for token, is_escape in _tokens(text):
        if is_escape:
            out.append(token)
            continue
        w = char_display_width(token, col)
        if col + w > max_cols:
            break
        out.append(" " * w if token == "\t" else token)
        col += w
    return "".join(out)


def wrap_ansi_line(text: str, width: int) -> list[str]:
    """Wrap a styled row into chunks of at most ``width`` columns.

    The SGR state active at a break is re-emitted at the start of the next
    chunk so continuation lines keep their color.
    """
    if width <= 0 or not text:
        return [""]

    wrapped: list[str] = []
    chunk: list[str] = []
    active_sgr: list[str] = []
    col = 0
    for token, is_escape in _tokens(text):
        if is_escape:
            chunk.append(token)
            if token.endswith("m"):
                if token in ("\x1b[0m", "\x1b[m"):
                    active_sgr = []
                else:
                    active_sgr.append(token)
            continue
        w = char_display_width(token, col)
        if col + w > width and col > 0:
            wrapped.append("".join(chunk))
            chunk = list(active_sgr)
            col = 0
            w = char_display_width(token, col)
        chunk.append(" " * w if token == "\t" else token)
        col += w

    wrapped.append("".join(chunk))
    return wrapped


def pad_ansi_line(text: str, width: int) -> str:
    """Clip ``text`` to ``width`` and pad it with spaces to exactly ``width`` columns."""
    clipped = clip_ansi_line(text, width)
    return clipped + " " * max(0, width - display_width(clipped))


__all__ = [
    "ANSI_ESCAPE_RE",
    "char_display_width",
    "clip_ansi_line",
    "display_width",
    "pad_ansi_line",
    "wrap_ansi_line",
]
