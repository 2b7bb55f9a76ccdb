"""ptybridge — drive an interactive shell over a pseudo-terminal.

The shell can be shown in a local Textual screen or streamed to a remote
WebSocket client.
"""

__version__ = "0.1.0"
