"""Streaming interpreter for terminal escape sequences in subprocess output.

Decodes bytes incrementally, tracks the SGR style state, and yields styled
text runs. Other control sequences are consumed without touching the text,
and undecodable bytes become U+FFFD instead of raising.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass, replace

_TEXT = 0
_ESC = 1
_CSI = 2
_OSC = 3
_OSC_ESC = 4
_ESC_INTERMEDIATE = 5

_KEPT_CONTROLS = frozenset({"\n", "\t"})


@dataclass(frozen=True)
class Style:
    """SGR state; colors are stored as their SGR parameter strings."""

    fg: str | None = None
    bg: str | None = None
    bold: bool = False
    dim: bool = False
    italic: bool = False
    underline: bool = False
    reverse: bool = False

    @property
    def is_default(self) -> bool:
        return self == DEFAULT_STYLE

    def sgr(self) -> str:
        params = ["0"]
        if self.bold:
            params.append("1")
        if self.dim:
            params.append("2")
        if self.italic:
            params.append("3")
        if self.underline:
            params.append("4")
        if self.reverse:
            params.append("7")
        if self.fg:
            params.append(self.fg)
        if self.bg:
            params.append(self.bg)
        return f"\033[{';'.join(params)}m"


DEFAULT_STYLE = Style()


@dataclass(frozen=True)
class StyledRun:
    text: str
    style: Style = DEFAULT_STYLE


def _extended_color(base: str, codes: list[int], index: int) -> tuple[str | None, int]:
    """Read ``5;n`` or ``2;r;g;b`` after a 38/48 code starting at ``index``."""
    if index >= len(codes):
        return None, index
    mode = codes[index]
    if mode == 5 and index + 1 < len(codes):
        return f"{base};5;{codes[index + 1] & 0xFF}", index + 2
    if mode == 2 and index + 3 < len(codes):
        r, g, b = (value & 0xFF for value in codes[index + 1:index + 4])
        return f"{base};2;{r};{g};{b}", index + 4
    return None, len(codes)


def apply_sgr(style: Style, params: str) -> Style:
    """Return ``style`` updated by one SGR parameter string (e.g. ``"1;31"``)."""
    try:
        codes = [int(part) if part else 0 for part in params.replace(":", ";").split(";")]
    except ValueError:
        return style

    index = 0
    while index < len(codes):
        code = codes[index]
        index += 1
        if code == 0:
            style = DEFAULT_STYLE
        elif code == 1:
            style = replace(style, bold=True)
        elif code == 2:
            style = replace(style, dim=True)
        elif code == 3:
            style = replace(style, italic=True)
        elif code == 4:
            style = replace(style, underline=True)
        elif code == 7:
            style = replace(style, reverse=True)
        elif code == 22:
            style = replace(style, bold=False, dim=False)
        elif code == 23:
            style = replace(style, italic=False)
        elif code == 24:
            style = replace(style, underline=False)
        elif code == 27:
            style = replace(style, reverse=False)
        elif 30 <= code <= 37 or 90 <= code <= 97:
            style = replace(style, fg=str(code))
        elif code == 39:
            style = replace(style, fg=None)
        elif 40 <= code <= 47 or 100 <= code <= 107:
            style = replace(style, bg=str(code))
        elif code == 49:
            style = replace(style, bg=None)
        elif code in (38, 48):
            color, index = _extended_color(str(code), codes, index)
            if color is not None:
                style = replace(style, fg=color) if code == 38 else replace(style, bg=color)
        # Anything else (blink, conceal, fonts, ...) is ignored.
    return style


class EscapeInterpreter:
    """Incremental escape-sequence state machine.

    ``feed`` accepts chunks split at arbitrary byte boundaries and returns the
    runs completed so far. Each SGR sequence closes the current run, even an
    empty one, and opens a new run in the updated style. ``finish`` flushes
    the open run.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._state = _TEXT
        self._params: list[str] = []
        self._style = DEFAULT_STYLE
        self._text: list[str] = []
        self._opened_by_sgr = False

    @property
    def style(self) -> Style:
        return self._style

    def _close_run(self, out: list[StyledRun]) -> None:
        out.append(StyledRun("".join(self._text), self._style))
        self._text = []

    def _finish_csi(self, final: str, out: list[StyledRun]) -> None:
        params = "".join(self._params)
        self._params = []
        self._state = _TEXT
        if final != "m" or (params and params[0] in "<=>?"):
            return
        if any(ch in params for ch in " !\"#$%&'()*+,-./"):
            return
        self._close_run(out)
        self._style = apply_sgr(self._style, params)
        self._opened_by_sgr = True

    def _step(self, ch: str, out: list[StyledRun]) -> None:
        state = self._state
        if state == _TEXT:
            if ch == "\x1b":
                self._state = _ESC
            elif ch in _KEPT_CONTROLS:
                self._text.append(ch)
            elif ord(ch) < 0x20 or 0x7F <= ord(ch) <= 0x9F:
                pass
            else:
                self._text.append(ch)
        elif state == _ESC:
            if ch == "[":
                self._state = _CSI
                self._params = []
            elif ch == "]":
                self._state = _OSC
            elif " " <= ch <= "/":
                self._state = _ESC_INTERMEDIATE
            else:
                # Two-byte sequences such as ESC 7 / ESC 8 / ESC M.
                self._state = _TEXT
        elif state == _CSI:
            if "@" <= ch <= "~":
                self._finish_csi(ch, out)
            elif " " <= ch <= "?":
                self._params.append(ch)
            else:
                # Malformed sequence: drop it and reinterpret the character.
                self._params = []
                self._state = _TEXT
                self._step(ch, out)
        elif state == _OSC:
            if ch == "\x07":
                self._state = _TEXT
            elif ch == "\x1b":
                self._state = _OSC_ESC
        elif state == _OSC_ESC:
            self._state = _TEXT if ch == "\\" else _OSC
        elif state == _ESC_INTERMEDIATE:
            if not " " <= ch <= "/":
                self._state = _TEXT

    def feed(self, chunk: bytes | str) -> list[StyledRun]:
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        out: list[StyledRun] = []
        for ch in text:
            self._step(ch, out)
        return out

    def finish(self) -> list[StyledRun]:
        out = self.feed(self._decoder.decode(b"", final=True))
        if self._text or self._opened_by_sgr:
            self._close_run(out)
        self._state = _TEXT
        self._params = []
        self._opened_by_sgr = False
        return out


def interpret(data: bytes | str) -> list[StyledRun]:
    """Interpret a complete stream in one call."""
    interpreter = EscapeInterpreter()
    runs = interpreter.feed(data)
    runs.extend(interpreter.finish())
    return runs


def split_lines(runs: list[StyledRun]) -> list[list[StyledRun]]:
    """Group runs into display lines, splitting runs at newlines."""
    lines: list[list[StyledRun]] = [[]]
    for run in runs:
        parts = run.text.split("\n")
        for idx, part in enumerate(parts):
            if idx > 0:
                lines.append([])
            if part:
                lines[-1].append(StyledRun(part, run.style))
    if len(lines) > 1 and not lines[-1]:
        lines.pop()
    return lines


def runs_to_ansi(runs: list[StyledRun]) -> str:
    """Re-emit runs as text carrying only the SGR sequences this tool writes."""
    out: list[str] = []
    styled = False
    for run in runs:
        if not run.text:
            continue
        if not run.style.is_default:
            out.append(run.style.sgr())
            styled = True
        elif styled:
            out.append(DEFAULT_STYLE.sgr())
            styled = False
        out.append(run.text)
    if styled:
        out.append(DEFAULT_STYLE.sgr())
    return "".join(out)


def plain_text(data: bytes | str) -> str:
    return "".join(run.text for run in interpret(data))


__all__ = [
    "DEFAULT_STYLE",
    "EscapeInterpreter",
    "Style",
    "StyledRun",
    "apply_sgr",
    "interpret",
    "plain_text",
    "runs_to_ansi",
    "split_lines",
]
