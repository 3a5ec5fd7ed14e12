"""Terminal control helpers for the TUI session.

Owns raw-mode lifecycle and alternate-screen switching, and lets callers
temporarily hand the real terminal to a child process (editor, credential
prompts) with ``suspended()``.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import termios
import tty


class TerminalController:
    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._saved_tty_state = termios.tcgetattr(stdin_fd)
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def enable_tui_mode(self) -> None:
        tty.setraw(self.stdin_fd, termios.TCSAFLUSH)
        # Enter alternate screen and hide cursor.
        os.write(self.stdout_fd, b"\x1b[?1049h\x1b[?25l")
        self._active = True

    def disable_tui_mode(self) -> None:
        # Show cursor and restore the main screen buffer.
        os.write(self.stdout_fd, b"\x1b[0m\x1b[?25h\x1b[?1049l")
        self._active = False
        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)

    def size(self) -> tuple[int, int]:
        """Return ``(columns, lines)``."""
        term = shutil.get_terminal_size((80, 24))
        return term.columns, term.lines

    def write(self, text: str) -> None:
        data = text.encode("utf-8", errors="replace")
        while data:
            written = os.write(self.stdout_fd, data)
            data = data[written:]

    def draw(self, rows: list[str]) -> None:
        """Redraw the whole screen from pre-rendered rows."""
        out = ["\x1b[H"]
        for idx, row in enumerate(rows):
            if idx:
                out.append("\r\n")
            out.append(row)
            out.append("\x1b[0m\x1b[K")
        out.append("\x1b[J")
        self.write("".join(out))

    @contextlib.contextmanager
    def suspended(self):
        """Leave TUI mode for the duration of the block, then re-enter it."""
        if not self._active:
            yield
            return
        self.disable_tui_mode()
        try:
            yield
        finally:
            self.enable_tui_mode()

    @contextlib.contextmanager
    def raw_mode(self):
        try:
            self.enable_tui_mode()
            yield
        finally:
            self.disable_tui_mode()
