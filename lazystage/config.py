"""Persistent JSON config: options, color palette, and keymap overrides.

The file lives in the platformdirs user config directory. Reading is
defensive: anything unrecognized or invalid becomes a warning string and the
default value is used.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
import json
import logging
from pathlib import Path

from platformdirs import user_config_dir

from .state.keymap import DEFAULT_KEYMAP
from .ui_theme import COLOR_ROLES, parse_color

_LOG = logging.getLogger(__name__)

APP_NAME = "lazystage"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME

WS_ERROR_HIGHLIGHT_VALUES = frozenset({"none", "default", "all", "old", "new", "context"})


@dataclass(frozen=True)
class Options:
    auto_expand_files: bool = False
    auto_expand_hunks: bool = False
    lookahead_lines: int = 5
    truncate_lines: bool = True
    ws_error_highlight: str = "new"
    sort_branches: str | None = None
    syntax_highlighting: bool = False
    syntax_style: str = "monokai"


@dataclass(frozen=True)
class Config:
    options: Options = field(default_factory=Options)
    colors: dict[str, str] = field(default_factory=dict)
    keymap: dict[str, tuple[str, ...]] = field(default_factory=dict)


def load_config_data(path: Path | None = None) -> tuple[dict[str, object], list[str]]:
    """Load the raw JSON object; a missing file is not a warning."""
    config_path = path if path is not None else CONFIG_PATH
    try:
        text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}, []
    except OSError as exc:
        return {}, [f"Could not read {config_path}: {exc}"]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        return {}, [f"Invalid JSON in {config_path}: {exc}"]
    if not isinstance(data, dict):
        return {}, [f"{config_path} must contain a JSON object"]
    return data, []


def _parse_options(raw: object, warnings: list[str]) -> Options:
    if not isinstance(raw, dict):
        warnings.append("config: 'options' must be an object")
        return Options()

    defaults = Options()
    values: dict[str, object] = {}
    known = {f.name for f in fields(Options)}
    for key, value in raw.items():
        if key not in known:
            warnings.append(f"config: unknown option '{key}'")
            continue
        default = getattr(defaults, key)
        if key == "sort_branches":
            if value is None or (isinstance(value, str) and value.strip()):
                values[key] = value.strip() if isinstance(value, str) else None
            else:
                warnings.append("config: 'sort_branches' must be a string or null")
        elif key == "ws_error_highlight":
            if isinstance(value, str) and value in WS_ERROR_HIGHLIGHT_VALUES:
                values[key] = value
            else:
                warnings.append(f"config: invalid ws_error_highlight {value!r}")
        elif isinstance(default, bool):
            if isinstance(value, bool):
                values[key] = value
            else:
                warnings.append(f"config: option '{key}' must be true or false")
        elif isinstance(default, int):
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                values[key] = value
            else:
                warnings.append(f"config: option '{key}' must be a non-negative integer")
        elif isinstance(value, str) and value:
            values[key] = value
        else:
            warnings.append(f"config: option '{key}' must be a string")
    return Options(**values)


def _parse_colors(raw: object, warnings: list[str]) -> dict[str, str]:
    if not isinstance(raw, dict):
        warnings.append("config: 'colors' must be an object")
        return {}
    colors: dict[str, str] = {}
    for role, value in raw.items():
        if role not in COLOR_ROLES:
            warnings.append(f"config: unknown color role '{role}'")
            continue
        params = parse_color(value, background=role == "background")
        if params is None:
            warnings.append(f"config: invalid color {value!r} for '{role}'")
            continue
        colors[role] = params
    return colors


def _parse_keymap(raw: object, warnings: list[str]) -> dict[str, tuple[str, ...]]:
    if not isinstance(raw, dict):
        warnings.append("config: 'keymap' must be an object")
        return {}
    keymap: dict[str, tuple[str, ...]] = {}
    for action, keys in raw.items():
        if action not in DEFAULT_KEYMAP:
            warnings.append(f"config: unknown key action '{action}'")
            continue
        if isinstance(keys, str):
            keys = [keys]
        if not isinstance(keys, list) or not keys or not all(isinstance(k, str) and k for k in keys):
            warnings.append(f"config: keys for '{action}' must be a non-empty list of strings")
            continue
        keymap[action] = tuple(keys)
    return keymap


def parse_config(data: dict[str, object]) -> tuple[Config, list[str]]:
    warnings: list[str] = []
    options = Options()
    colors: dict[str, str] = {}
    keymap: dict[str, tuple[str, ...]] = {}
    for section, raw in data.items():
        if section == "options":
            options = _parse_options(raw, warnings)
        elif section == "colors":
            colors = _parse_colors(raw, warnings)
        elif section == "keymap":
            keymap = _parse_keymap(raw, warnings)
        else:
            warnings.append(f"config: unknown section '{section}'")
    return Config(options=options, colors=colors, keymap=keymap), warnings


def load_config(path: Path | None = None) -> tuple[Config, list[str]]:
    """Load and validate config, returning it with any warnings."""
    data, warnings = load_config_data(path)
    config, parse_warnings = parse_config(data)
    warnings.extend(parse_warnings)
    for warning in warnings:
        _LOG.warning("%s", warning)
    return config, warnings


__all__ = [
    "CONFIG_PATH",
    "Config",
    "Options",
    "load_config",
    "load_config_data",
    "parse_config",
]
