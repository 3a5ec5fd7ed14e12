"""Interaction state: modes, cursor and viewport, line editing, notices, keymap.

``StateMachine`` lives in ``lazystage.state.machine``; it is not re-exported
here because it depends on ``lazystage.config``, which itself imports the
default keymap from this package.
"""

from .cursor import CursorPath, Expansion, Row, RowKind, Viewport, build_rows
from .keymap import DEFAULT_KEYMAP, KeyComboBinding, KeyComboRegistry, Keymap
from .messages import Message, MessageKind, MessageQueue
from .minibuffer import History, LineEditor
from .mode import Mode, ModeKind, PromptPurpose

__all__ = [
    "CursorPath",
    "DEFAULT_KEYMAP",
    "Expansion",
    "History",
    "KeyComboBinding",
    "KeyComboRegistry",
    "Keymap",
    "LineEditor",
    "Message",
    "MessageKind",
    "MessageQueue",
    "Mode",
    "ModeKind",
    "PromptPurpose",
    "Row",
    "RowKind",
    "Viewport",
    "build_rows",
]
