"""Diff text sanitization and optional Pygments highlighting of hunk lines.

Hunk lines are highlighted as one block so multi-line constructs (strings,
comments) keep their token state, then split back into rows.
"""

from __future__ import annotations

from functools import lru_cache
import logging
import re

from pygments import highlight as pygments_highlight
from pygments.formatters import Terminal256Formatter
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

_LOG = logging.getLogger(__name__)

_CONTROL_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f-\x9f]")
DEFAULT_STYLE = "monokai"


def sanitize_terminal_text(source: str) -> str:
    """Escape control bytes so diff content cannot move the cursor or ring the bell."""
    if _CONTROL_RE.search(source) is None:
        return source

    out: list[str] = []
    for ch in source:
        code = ord(ch)
        if ch == "\t":
            out.append(ch)
        elif code < 32 or code == 127 or 0x80 <= code <= 0x9F:
            out.append(f"\\x{code:02x}")
        else:
            out.append(ch)
    return "".join(out)


@lru_cache(maxsize=32)
def _normalize_style(style: str) -> str:
    try:
        get_style_by_name(style)
    except ClassNotFound:
        _LOG.warning("unknown pygments style %r, using %s", style, DEFAULT_STYLE)
        return DEFAULT_STYLE
    return style


@lru_cache(maxsize=32)
def _formatter_for_style(style: str) -> Terminal256Formatter:
    return Terminal256Formatter(style=_normalize_style(style))


def _lexer_for(path: str, source: str):
    name = path.rsplit("/", 1)[-1]
    try:
        return get_lexer_for_filename(name, source, stripnl=False, ensurenl=True)
    except ClassNotFound:
        return None


@lru_cache(maxsize=512)
def _highlight_block(path: str, source: str, style: str) -> tuple[str, ...] | None:
    lexer = _lexer_for(path, source)
    if lexer is None or isinstance(lexer, TextLexer):
        return None
    rendered = pygments_highlight(source, lexer, _formatter_for_style(style))
    rows = rendered.split("\n")
    if rows and rows[-1] == "":
        rows.pop()
    return tuple(rows)


def highlight_lines(texts: list[str] | tuple[str, ...], path: str, style: str = DEFAULT_STYLE) -> list[str] | None:
    """Return highlighted copies of ``texts`` or ``None`` when no lexer applies.

    ``texts`` must already be sanitized; the result has one entry per input.
    """
    if not texts:
        return []
    source = "\n".join(texts) + "\n"
    rows = _highlight_block(path, source, style)
    if rows is None or len(rows) != len(texts):
        return None
    return list(rows)


__all__ = ["DEFAULT_STYLE", "highlight_lines", "sanitize_terminal_text"]
