"""Line-oriented output buffer for PTY sessions."""

from __future__ import annotations

import unicodedata
from collections import deque

from ptybridge.config import DEFAULT_MAX_LINES
from ptybridge.pty.ansi import strip_ansi

BACKSPACE = "\x08"


def _is_control(ch: str) -> bool:
    return unicodedata.category(ch) == "Cc"


class OutputBuffer:
    """Bounded scrollback of completed lines plus one unfinished "carry" line.

    Raw PTY bytes go in through :meth:`push_bytes`; escape sequences are
    stripped, CR/LF commit the carry, backspace edits it and the remaining
    control characters are dropped.  At most ``max_lines`` completed lines
    are kept, oldest evicted first.

    Not thread-safe: one writer (the drain step) and a renderer on the same
    thread.
    """

    def __init__(self, max_lines: int = DEFAULT_MAX_LINES) -> None:
        if max_lines < 1:
            raise ValueError("max_lines must be at least 1")
        self._max_lines = max_lines
        self._lines: deque[str] = deque()
        self._carry: str = ""

    def push_bytes(self, data: bytes) -> None:
        """Decode a raw chunk (invalid UTF-8 becomes U+FFFD) and consume it."""
        self.push_text(data.decode("utf-8", errors="replace"))

    def push_text(self, text: str) -> None:
        for ch in strip_ansi(text):
            if ch == "\n" or ch == "\r":
                self._commit()
            elif ch == BACKSPACE:
                self._carry = self._carry[:-1]
            elif _is_control(ch):
                continue
            else:
                self._carry += ch

    def push_line(self, line: str) -> None:
        """Append an already complete line, bypassing the carry."""
        self._lines.append(line)
        self._evict()

    def _commit(self) -> None:
        self._lines.append(self._carry)
        self._carry = ""
        self._evict()

    def _evict(self) -> None:
        while len(self._lines) > self._max_lines:
            self._lines.popleft()

    def render_text(self, height: int) -> str:
        """The last ``height`` lines, carry included when nonempty."""
        if height <= 0:
            return ""
        tail = list(self._lines)[-height:]
        if self._carry:
            tail = tail[1:] if len(tail) == height else tail
            tail.append(self._carry)
        return "\n".join(tail)

    @property
    def lines(self) -> list[str]:
        """Completed lines, oldest first."""
        return list(self._lines)

    @property
    def carry(self) -> str:
        return self._carry

    @property
    def line_count(self) -> int:
        return len(self._lines)

    @property
    def max_lines(self) -> int:
        return self._max_lines

    def clear(self) -> None:
        self._lines.clear()
        self._carry = ""
