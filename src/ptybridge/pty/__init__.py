"""PTY process management — a shell behind a pseudo-terminal.

A session owns the shell process and a reader thread that publishes raw
output chunks on a channel; the output buffer turns those chunks into
ANSI-free scrollback for local rendering.
"""

from ptybridge.pty.ansi import strip_ansi
from ptybridge.pty.buffer import OutputBuffer
from ptybridge.pty.channel import OutputChannel
from ptybridge.pty.session import PtySession, PtyStatus

__all__ = [
    "OutputBuffer",
    "OutputChannel",
    "PtySession",
    "PtyStatus",
    "strip_ansi",
]
