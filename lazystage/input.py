"""Low-level terminal input decoding.

Reads raw bytes from stdin and translates them into normalized key tokens:
single printable characters, or names such as ``UP``, ``ENTER``, ``CTRL_D``,
``ALT_LEFT``. Handles ESC-sequence timing and multi-byte UTF-8 input.
"""

from __future__ import annotations

import os
import select

ESC_SEQUENCE_TIMEOUT_MS = 25
_PENDING_BYTES: list[bytes] = []

_SINGLE_BYTE_KEYS = {
    b"\t": "TAB",
    b"\r": "ENTER",
    b"\n": "ENTER",
    b"\x08": "BACKSPACE",
    b"\x7f": "BACKSPACE",
}
_CSI_FINAL_KEYS = {
    b"A": "UP",
    b"B": "DOWN",
    b"C": "RIGHT",
    b"D": "LEFT",
    b"H": "HOME",
    b"F": "END",
    b"Z": "SHIFT_TAB",
}
_CSI_TILDE_KEYS = {
    "1": "HOME",
    "2": "INSERT",
    "3": "DELETE",
    "4": "END",
    "5": "PAGE_UP",
    "6": "PAGE_DOWN",
    "7": "HOME",
    "8": "END",
}
_SS3_KEYS = {
    b"A": "UP",
    b"B": "DOWN",
    b"C": "RIGHT",
    b"D": "LEFT",
    b"H": "HOME",
    b"F": "END",
}


def _read_ready_byte(fd: int, timeout_ms: int) -> bytes | None:
    ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
    if not ready:
        return None
    ch = os.read(fd, 1)
    if not ch:
        return None
    return ch


def _utf8_length(lead: int) -> int:
    if lead >= 0xF0:
        return 4
    if lead >= 0xE0:
        return 3
    if lead >= 0xC0:
        return 2
    return 1


def _read_utf8_char(fd: int, lead: bytes) -> str:
    data = bytearray(lead)
    for _ in range(_utf8_length(lead[0]) - 1):
        part = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if part is None:
            break
        data += part
    return data.decode("utf-8", errors="replace")


def _modified(name: str, modifier: str) -> str:
    # xterm modifier parameter: 2 shift, 3 alt, 5 ctrl (9 is alt on some terminals).
    if modifier in {"3", "9"}:
        return f"ALT_{name}"
    if modifier == "5":
        return f"CTRL_{name}"
    if modifier == "2":
        return f"SHIFT_{name}"
    return name


def _read_csi(fd: int) -> str:
    params = bytearray()
    while True:
        part = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if part is None:
            return "ESC"
        if 0x40 <= part[0] <= 0x7E:
            final = part
            break
        params += part
        if len(params) > 16:
            return "ESC"

    fields = params.decode("ascii", errors="replace").split(";")
    modifier = fields[1] if len(fields) > 1 else ""
    if final == b"~":
        name = _CSI_TILDE_KEYS.get(fields[0])
        return _modified(name, modifier) if name else "UNKNOWN"
    name = _CSI_FINAL_KEYS.get(final)
    if name is None:
        return "UNKNOWN"
    return _modified(name, modifier)


def read_key(fd: int, timeout_ms: int | None = None) -> str:
    """Return the next key token, or ``""`` on timeout or end of input."""
    if _PENDING_BYTES:
        ch = _PENDING_BYTES.pop(0)
    else:
        if timeout_ms is not None:
            ready, _, _ = select.select([fd], [], [], max(0.0, timeout_ms / 1000.0))
            if not ready:
                return ""

        ch = os.read(fd, 1)
        if not ch:
            return ""

    named = _SINGLE_BYTE_KEYS.get(ch)
    if named is not None:
        return named
    if ch == b"\x00":
        return "CTRL_SPACE"
    if ch[0] < 0x1B:
        return f"CTRL_{chr(ch[0] + 0x40)}"
    if ch != b"\x1b":
        if ch[0] < 0x80:
            return ch.decode("ascii", errors="replace")
        return _read_utf8_char(fd, ch)

    # Escape, Alt-prefixed keys, and CSI/SS3 sequences.
    seq = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
    if seq is None:
        return "ESC"
    if seq == b"[":
        return _read_csi(fd)
    if seq == b"O":
        final = _read_ready_byte(fd, ESC_SEQUENCE_TIMEOUT_MS)
        if final is None:
            return "ESC"
        return _SS3_KEYS.get(final, "UNKNOWN")
    if seq in {b"b", b"B"}:
        return "ALT_LEFT"
    if seq in {b"f", b"F"}:
        return "ALT_RIGHT"
    if seq == b"\x7f":
        return "ALT_BACKSPACE"
    _PENDING_BYTES.append(seq)
    return "ESC"
