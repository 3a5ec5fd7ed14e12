"""Logical key actions, default bindings, and the dispatch registry."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

DEFAULT_KEYMAP: dict[str, tuple[str, ...]] = {
    "move_down": ("j", "DOWN"),
    "move_up": ("k", "UP"),
    "move_first": ("g", "K", "HOME"),
    "move_last": ("G", "J", "END"),
    "page_down": ("CTRL_D", "PAGE_DOWN"),
    "page_up": ("CTRL_U", "PAGE_UP"),
    "toggle_expand": ("TAB",),
    "toggle_mark": ("SPACE",),
    "clear_marks": ("ESC",),
    "stage": ("s",),
    "stage_all": ("S",),
    "unstage": ("u",),
    "unstage_all": ("U",),
    "discard": ("x",),
    "pull": ("F",),
    "refresh": ("r",),
    "git_command": (":",),
    "shell_command": ("!",),
    "branch_menu": ("b",),
    "commit_menu": ("c",),
    "push_menu": ("p",),
    "stash_menu": ("z",),
    "quit": ("q",),
    "checkout": ("SPACE", "ENTER"),
    "new_branch": ("n",),
    "back": ("ESC",),
    "confirm_yes": ("y",),
    "confirm_no": ("n", "N", "ESC"),
}

_KEY_ALIASES = {
    "SPACE": " ",
    "ENTER_CR": "ENTER",
    "ENTER_LF": "ENTER",
    "RETURN": "ENTER",
    "ESCAPE": "ESC",
}


def normalize_key(key: str) -> str:
    """Map key-name aliases used in config onto decoder tokens."""
    if len(key) == 1:
        return key
    upper = key.upper()
    return _KEY_ALIASES.get(upper, upper)


@dataclass(frozen=True)
class KeyComboBinding:
    """Mapping from one or more key tokens to a single action callback."""

    combos: tuple[str, ...]
    handler: Callable[[], bool | None]


class KeyComboRegistry:
    """Small key-dispatch table with optional key normalization strategy."""

    def __init__(self, normalize: Callable[[str], str] | None = None) -> None:
        self._normalize = normalize if normalize is not None else normalize_key
        self._handlers: dict[str, Callable[[], bool | None]] = {}

    def register_binding(self, binding: KeyComboBinding) -> KeyComboRegistry:
        """Register one binding, overwriting existing handlers for same combos."""
        for combo in binding.combos:
            self._handlers[self._normalize(combo)] = binding.handler
        return self

    def register_bindings(self, *bindings: KeyComboBinding) -> KeyComboRegistry:
        for binding in bindings:
            self.register_binding(binding)
        return self

    def dispatch(self, key: str) -> bool | None:
        """Invoke bound handler for ``key`` and return its handled result."""
        handler = self._handlers.get(self._normalize(key))
        if handler is None:
            return None
        return handler()


class Keymap:
    """Action name -> key tokens, with per-action overrides from config."""

    def __init__(self, overrides: Mapping[str, tuple[str, ...]] | None = None) -> None:
        self._bindings = dict(DEFAULT_KEYMAP)
        for action, keys in (overrides or {}).items():
            if action in self._bindings:
                self._bindings[action] = tuple(keys)

    def keys(self, action: str) -> tuple[str, ...]:
        return self._bindings.get(action, ())

    def label(self, action: str) -> str:
        keys = self.keys(action)
        return keys[0] if keys else "?"

    def registry(self, handlers: Mapping[str, Callable[[], bool | None]]) -> KeyComboRegistry:
        """Build a registry binding each named action's keys to its handler."""
        registry = KeyComboRegistry()
        for action, handler in handlers.items():
            registry.register_binding(KeyComboBinding(self.keys(action), handler))
        return registry


__all__ = [
    "DEFAULT_KEYMAP",
    "KeyComboBinding",
    "KeyComboRegistry",
    "Keymap",
    "normalize_key",
]
