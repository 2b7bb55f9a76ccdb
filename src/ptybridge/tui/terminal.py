"""Local terminal state — everything the TUI does, minus the widgets.

``LocalTerminal`` owns the PTY session, the output buffer and the line
being typed.  The Textual app calls into it once per tick and once per
input event; keeping it free of Textual makes it testable against a real
shell without a screen.
"""

from __future__ import annotations

import logging

from ptybridge.config import shell_name
from ptybridge.errors import PtyIOError
from ptybridge.pty.buffer import OutputBuffer
from ptybridge.pty.session import PtySession

logger = logging.getLogger(__name__)

INTERRUPT = b"\x03"
END_OF_INPUT = b"\x04"
EXIT_COMMAND = b"exit\n"

QUIT_KEY = "ctrl+q"
INTERRUPT_KEY = "ctrl+c"
END_OF_INPUT_KEY = "ctrl+d"

BANNER = (
    "ptybridge local terminal",
    "Ctrl+Q to quit. Ctrl+C sends SIGINT. Ctrl+D sends EOF.",
)

INPUT_PROMPT = "> "


def tail_chars(text: str, max_chars: int) -> str:
    """The last ``max_chars`` characters of ``text``."""
    if max_chars <= 0:
        return ""
    return text[-max_chars:]


class LocalTerminal:
    """One shell session rendered as scrollback plus an input line."""

    def __init__(
        self,
        session: PtySession,
        buffer: OutputBuffer | None = None,
        banner: tuple[str, ...] = BANNER,
    ) -> None:
        self.session = session
        self.buffer = buffer if buffer is not None else OutputBuffer()
        self.input = ""
        self.shell_exited = False
        self.quit_requested = False
        self._last_size: tuple[int, int] | None = None
        for line in banner:
            self.buffer.push_line(line)

    @property
    def shell_name(self) -> str:
        return shell_name(self.session.shell_path)

    # -- per tick ------------------------------------------------------

    def drain_output(self) -> int:
        """Move every chunk available right now into the buffer.

        Returns the number of chunks consumed.  Never blocks.
        """
        count = 0
        while True:
            chunk = self.session.output.try_recv()
            if chunk is None:
                break
            self.buffer.push_bytes(chunk)
            count += 1
        if self.session.output.closed and not self.shell_exited:
            logger.info("Shell %s exited", self.shell_name)
            self.shell_exited = True
        return count

    def sync_size(self, cols: int, rows: int) -> bool:
        """Resize the PTY if the output pane changed size.

        Returns True when a resize was issued.
        """
        if cols <= 0 or rows <= 0 or (cols, rows) == self._last_size:
            return False
        self._last_size = (cols, rows)
        self.session.resize(cols, rows)
        return True

    def render_output(self, height: int) -> str:
        return self.buffer.render_text(max(height, 1))

    def input_line(self, width: int | None = None) -> str:
        if width is None:
            return INPUT_PROMPT + self.input
        return INPUT_PROMPT + tail_chars(self.input, width - len(INPUT_PROMPT))

    @property
    def title(self) -> str:
        title = f"ptybridge | {self.shell_name} | Ctrl+Q Quit"
        if self.shell_exited:
            title += " | Shell exited"
        return title

    # -- input ---------------------------------------------------------

    def handle_key(self, key: str, character: str | None = None) -> None:
        """Apply one key press.

        ``key`` uses Textual's key names (``ctrl+q``, ``enter``,
        ``backspace``...); ``character`` is the printable character, if any.
        """
        if key == QUIT_KEY:
            self.quit_requested = True
        elif key == INTERRUPT_KEY:
            self._send(INTERRUPT)
        elif key == END_OF_INPUT_KEY:
            self._send(END_OF_INPUT)
        elif key == "enter":
            line = self.input + "\n"
            self.input = ""
            self._send(line.encode("utf-8"))
        elif key == "backspace":
            self.input = self.input[:-1]
        elif character and character.isprintable():
            self.input += character

    def handle_paste(self, text: str) -> None:
        self.input += text

    def _send(self, data: bytes) -> None:
        try:
            self.session.send(data)
        except PtyIOError as e:
            logger.debug("Send to shell failed: %s", e)
            self.shell_exited = True

    # -- shutdown ------------------------------------------------------

    def shutdown(self) -> None:
        """Ask the shell to exit, then tear the session down."""
        if not self.shell_exited:
            self._send(EXIT_COMMAND)
        self.session.close()
