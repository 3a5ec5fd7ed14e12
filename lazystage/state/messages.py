"""FIFO notice queue shown in the minibuffer, one notice per render."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum

from ..escape import interpret, plain_text, runs_to_ansi, split_lines


class MessageKind(Enum):
    NOTE = "note"
    ERROR = "error"


@dataclass(frozen=True)
class Message:
    """One notice; ``text`` may carry SGR sequences and newlines."""

    text: str
    kind: MessageKind = MessageKind.NOTE

    @property
    def is_error(self) -> bool:
        return self.kind is MessageKind.ERROR

    def lines(self) -> list[str]:
        return self.text.split("\n")


def _last_segment(line, cr):
    segments = [segment for segment in line.split(cr) if segment]
    return segments[-1] if segments else line[:0]


def collapse_carriage_returns(data: bytes | str) -> bytes | str:
    """Keep only what the last ``\\r`` left visible on each line.

    Progress meters (``Counting objects: 10%\\r...``) redraw one line; the
    final state is the only one worth showing.
    """
    cr, lf = ("\r", "\n") if isinstance(data, str) else (b"\r", b"\n")
    if cr not in data:
        return data
    lines = data.replace(cr + lf, lf).split(lf)
    return lf.join(_last_segment(line, cr) for line in lines)


def styled_output(data: bytes | str) -> str:
    """Interpret subprocess output into per-line, self-contained styled text."""
    lines = [runs_to_ansi(runs) for runs in split_lines(interpret(collapse_carriage_returns(data)))]
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)


class MessageQueue:
    """Pending notices; text with no visible characters is never enqueued."""

    def __init__(self) -> None:
        self._items: deque[Message] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def push(self, text: str, kind: MessageKind = MessageKind.NOTE) -> bool:
        if not plain_text(text).strip():
            return False
        self._items.append(Message(text.rstrip("\n"), kind))
        return True

    def note(self, text: str) -> bool:
        return self.push(text, MessageKind.NOTE)

    def error(self, text: str) -> bool:
        return self.push(text, MessageKind.ERROR)

    def push_command_output(self, stdout: bytes | str, stderr: bytes | str, ok: bool = True) -> None:
        """Queue subprocess output: stdout as a note, stderr as a note or an error."""
        self.note(styled_output(stdout))
        err = styled_output(stderr)
        if ok:
            # git writes progress and hints on stderr even when it succeeds.
            self.note(err)
        else:
            self.error(err)

    def peek(self) -> Message | None:
        return self._items[0] if self._items else None

    def pop(self) -> Message | None:
        """Consume the front notice; called once per render."""
        if not self._items:
            return None
        return self._items.popleft()

    def clear(self) -> None:
        self._items.clear()


__all__ = ["Message", "MessageKind", "MessageQueue", "collapse_carriage_returns", "styled_output"]
