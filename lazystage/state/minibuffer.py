"""Single-line text capture with cursor motion and per-prompt history."""

from __future__ import annotations


def _is_word_char(ch: str) -> bool:
    return ch.isalnum()


def word_start_before(text: str, pos: int) -> int:
    """Emacs ``backward-word``: skip separators, then the word before ``pos``."""
    while pos > 0 and not _is_word_char(text[pos - 1]):
        pos -= 1
    while pos > 0 and _is_word_char(text[pos - 1]):
        pos -= 1
    return pos


def word_end_after(text: str, pos: int) -> int:
    """Emacs ``forward-word``: skip separators, then the word after ``pos``."""
    end = len(text)
    while pos < end and not _is_word_char(text[pos]):
        pos += 1
    while pos < end and _is_word_char(text[pos]):
        pos += 1
    return pos


class History:
    """Submitted entries for one prompt kind, oldest first."""

    def __init__(self, limit: int = 200) -> None:
        self.entries: list[str] = []
        self.limit = limit

    def add(self, text: str) -> None:
        if not text.strip():
            return
        if self.entries and self.entries[-1] == text:
            return
        self.entries.append(text)
        if len(self.entries) > self.limit:
            del self.entries[: len(self.entries) - self.limit]


class LineEditor:
    """Editable buffer; ``handle_key`` returns whether the key was consumed.

    ENTER and ESC are left to the owning mode.
    """

    def __init__(self, history: History | None = None, text: str = "") -> None:
        self.text = text
        self.cursor = len(text)
        self.history = history if history is not None else History()
        self._history_pos: int | None = None
        self._draft = ""

    def insert(self, chars: str) -> None:
        self.text = self.text[: self.cursor] + chars + self.text[self.cursor:]
        self.cursor += len(chars)

    def delete_left(self) -> None:
        if self.cursor == 0:
            return
        self.text = self.text[: self.cursor - 1] + self.text[self.cursor:]
        self.cursor -= 1

    def delete_right(self) -> None:
        if self.cursor >= len(self.text):
            return
        self.text = self.text[: self.cursor] + self.text[self.cursor + 1:]

    def move_left(self) -> None:
        self.cursor = max(0, self.cursor - 1)

    def move_right(self) -> None:
        self.cursor = min(len(self.text), self.cursor + 1)

    def move_home(self) -> None:
        self.cursor = 0

    def move_end(self) -> None:
        self.cursor = len(self.text)

    def word_left(self) -> None:
        self.cursor = word_start_before(self.text, self.cursor)

    def word_right(self) -> None:
        self.cursor = word_end_after(self.text, self.cursor)

    def _set_text(self, text: str) -> None:
        self.text = text
        self.cursor = len(text)

    def history_prev(self) -> None:
        entries = self.history.entries
        if not entries:
            return
        if self._history_pos is None:
            self._draft = self.text
            self._history_pos = len(entries) - 1
        elif self._history_pos > 0:
            self._history_pos -= 1
        else:
            return
        self._set_text(entries[self._history_pos])

    def history_next(self) -> None:
        if self._history_pos is None:
            return
        entries = self.history.entries
        if self._history_pos < len(entries) - 1:
            self._history_pos += 1
            self._set_text(entries[self._history_pos])
            return
        self._history_pos = None
        self._set_text(self._draft)

    def submit(self) -> str:
        """Record the text in history and return it."""
        text = self.text
        self.history.add(text)
        self._history_pos = None
        return text

    def handle_key(self, key: str) -> bool:
        action = _EDIT_KEYS.get(key)
        if action is not None:
            action(self)
            return True
        if len(key) == 1 and key.isprintable():
            self.insert(key)
            return True
        return False


_EDIT_KEYS = {
    "LEFT": LineEditor.move_left,
    "CTRL_B": LineEditor.move_left,
    "RIGHT": LineEditor.move_right,
    "CTRL_F": LineEditor.move_right,
    "HOME": LineEditor.move_home,
    "CTRL_A": LineEditor.move_home,
    "END": LineEditor.move_end,
    "CTRL_E": LineEditor.move_end,
    "ALT_LEFT": LineEditor.word_left,
    "ALT_B": LineEditor.word_left,
    "ALT_RIGHT": LineEditor.word_right,
    "ALT_F": LineEditor.word_right,
    "BACKSPACE": LineEditor.delete_left,
    "DELETE": LineEditor.delete_right,
    "CTRL_D": LineEditor.delete_right,
    "UP": LineEditor.history_prev,
    "CTRL_P": LineEditor.history_prev,
    "DOWN": LineEditor.history_next,
    "CTRL_N": LineEditor.history_next,
}

__all__ = ["History", "LineEditor", "word_end_after", "word_start_before"]
