"""Terminal key input: non-canonical termios mode and key decoding."""

from __future__ import annotations

import logging
import os
import select
import sys
from typing import Optional

logger = logging.getLogger(__name__)

ESCAPE_SEQUENCES = {
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
    "\x1b[H": "home",
    "\x1b[F": "end",
    "\x1bOH": "home",
    "\x1bOF": "end",
    "\x1b[1~": "home",
    "\x1b[7~": "home",
    "\x1b[4~": "end",
    "\x1b[8~": "end",
    "\x1b[2~": "insert",
    "\x1b[3~": "delete",
    "\x1b[5~": "pgup",
    "\x1b[6~": "pgdn",
    "\x1b[Z": "shift-tab",
    "\x1bOP": "f1",
    "\x1bOQ": "f2",
    "\x1bOR": "f3",
    "\x1bOS": "f4",
    "\x1b[11~": "f1",
    "\x1b[12~": "f2",
    "\x1b[13~": "f3",
    "\x1b[14~": "f4",
    "\x1b[15~": "f5",
    "\x1b[17~": "f6",
    "\x1b[18~": "f7",
    "\x1b[19~": "f8",
    "\x1b[20~": "f9",
    "\x1b[21~": "f10",
    "\x1b[23~": "f11",
    "\x1b[24~": "f12",
}

CONTROL_KEYS = {
    "\r": "enter",
    "\n": "enter",
    "\t": "tab",
    "\x7f": "backspace",
    "\x08": "backspace",
    "\x03": "ctrl-c",
    "\x04": "ctrl-d",
    "\x15": "ctrl-u",
    "\x0e": "ctrl-n",
    "\x10": "ctrl-p",
}

_LONGEST_SEQUENCE = max(len(seq) for seq in ESCAPE_SEQUENCES)


def decode_keys(data: bytes) -> list[str]:
    """Split raw terminal input into key names and printable characters."""
    text = data.decode("utf-8", errors="ignore")
    keys: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\x1b":
            matched = None
            for length in range(min(_LONGEST_SEQUENCE, len(text) - i), 1, -1):
                candidate = text[i:i + length]
                if candidate in ESCAPE_SEQUENCES:
                    matched = candidate
                    break
            if matched is not None:
                keys.append(ESCAPE_SEQUENCES[matched])
                i += len(matched)
                continue
            if i + 1 < len(text) and text[i + 1] in "[O":
                # Unknown CSI/SS3 sequence: skip through its final byte.
                j = i + 2
                while j < len(text) and not ("@" <= text[j] <= "~"):
                    j += 1
                i = j + 1
                continue
            keys.append("esc")
            i += 1
            continue
        if ch in CONTROL_KEYS:
            keys.append(CONTROL_KEYS[ch])
        elif ch.isprintable():
            keys.append(ch)
        i += 1
    return keys


class KeyReader:
    """Puts stdin in non-canonical, no-echo mode while active.

    ``ICANON``/``ECHO`` are cleared with ``VMIN=0``/``VTIME=0``; everything
    else is left intact so rich's alternate screen keeps working over SSH.
    """

    def __init__(self, stream=None):
        self._stream = stream or sys.stdin
        self._fd: Optional[int] = None
        self._saved = None

    @property
    def active(self) -> bool:
        return self._saved is not None

    def __enter__(self) -> "KeyReader":
        self.resume()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.suspend()
        return False

    def resume(self) -> None:
        import termios

        if self._saved is not None:
            return
        self._fd = self._stream.fileno()
        saved = termios.tcgetattr(self._fd)
        new = termios.tcgetattr(self._fd)
        new[3] &= ~(termios.ICANON | termios.ECHO)
        new[6][termios.VMIN] = 0
        new[6][termios.VTIME] = 0
        termios.tcsetattr(self._fd, termios.TCSADRAIN, new)
        self._saved = saved

    def suspend(self) -> None:
        import termios

        if self._saved is None or self._fd is None:
            return
        termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved)
        self._saved = None

    def read(self, timeout: float) -> list[str]:
        """Keys typed within ``timeout`` seconds (empty list if none)."""
        if self._fd is None:
            return []
        ready, _, _ = select.select([self._fd], [], [], timeout)
        if not ready:
            return []
        try:
            data = os.read(self._fd, 1024)
        except OSError as exc:
            logger.warning("terminal read failed: %s", exc)
            return []
        return decode_keys(data)
