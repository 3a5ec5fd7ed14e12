"""Semantic color palette and color-name parsing.

Palettes map UI roles (heading, hunk head, addition, ...) to ANSI SGR
prefixes. Colors come from config as names, ``#rrggbb`` or 0-255 indices.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

_HEX_RE = re.compile(r"^#([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")

# Foreground SGR codes, following crossterm's color names.
_NAMED_COLORS: dict[str, int] = {
    "black": 30,
    "darkred": 31,
    "darkgreen": 32,
    "darkyellow": 33,
    "darkblue": 34,
    "darkmagenta": 35,
    "darkcyan": 36,
    "grey": 37,
    "gray": 37,
    "darkgrey": 90,
    "darkgray": 90,
    "red": 91,
    "green": 92,
    "yellow": 93,
    "blue": 94,
    "magenta": 95,
    "cyan": 96,
    "white": 97,
}
_DEFAULT_NAMES = frozenset({"default", "reset", "none"})

COLOR_ROLES: tuple[str, ...] = (
    "foreground",
    "background",
    "heading",
    "hunk_head",
    "addition",
    "deletion",
    "key",
    "error",
)

DEFAULT_COLORS: dict[str, str] = {
    "foreground": "default",
    "background": "default",
    "heading": "yellow",
    "hunk_head": "blue",
    "addition": "dark_green",
    "deletion": "dark_red",
    "key": "green",
    "error": "red",
}


def parse_color(value: object, *, background: bool = False) -> str | None:
    """Return the SGR parameter string for a configured color.

    ``""`` means the terminal default; ``None`` means the value is invalid.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        if 0 <= value <= 255:
            return f"{48 if background else 38};5;{value}"
        return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    match = _HEX_RE.match(text)
    if match:
        r, g, b = (int(part, 16) for part in match.groups())
        return f"{48 if background else 38};2;{r};{g};{b}"

    name = re.sub(r"[\s_-]", "", text).lower()
    if name in _DEFAULT_NAMES:
        return ""
    code = _NAMED_COLORS.get(name)
    if code is None:
        return None
    return str(code + 10) if background else str(code)


@dataclass(frozen=True)
class Palette:
    """SGR prefixes per UI role; every field is a complete escape or ``""``."""

    foreground: str
    background: str
    heading: str
    hunk_head: str
    addition: str
    deletion: str
    key: str
    error: str
    bold: str = "\033[1m"
    dim: str = "\033[2m"
    reverse: str = "\033[7m"
    reset: str = "\033[0m"

    @property
    def base(self) -> str:
        """Prefix restoring the configured foreground/background."""
        return f"{self.reset}{self.foreground}{self.background}"


PLAIN_PALETTE = Palette(
    foreground="",
    background="",
    heading="",
    hunk_head="",
    addition="",
    deletion="",
    key="",
    error="",
    bold="",
    dim="",
    reverse="\033[7m",
    reset="\033[0m",
)


def _sgr(params: str) -> str:
    return f"\033[{params}m" if params else ""


def build_palette(colors: dict[str, str] | None = None, *, no_color: bool = False) -> Palette:
    """Build a palette from role -> SGR parameter strings.

    Unknown roles are ignored; missing roles use ``DEFAULT_COLORS``.
    """
    if no_color:
        return PLAIN_PALETTE
    resolved: dict[str, str] = {}
    for role in COLOR_ROLES:
        params = (colors or {}).get(role)
        if params is None:
            params = parse_color(DEFAULT_COLORS[role], background=role == "background") or ""
        resolved[role] = _sgr(params)
    return Palette(**resolved)


DEFAULT_PALETTE = build_palette()

__all__ = [
    "COLOR_ROLES",
    "DEFAULT_COLORS",
    "DEFAULT_PALETTE",
    "PLAIN_PALETTE",
    "Palette",
    "build_palette",
    "parse_color",
]
