"""Local interactive terminal (Textual)."""

from ptybridge.tui.terminal import LocalTerminal

__all__ = ["LocalTerminal"]
