"""ptybridge exception hierarchy."""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for all ptybridge errors."""


class SpawnError(BridgeError):
    """Raised when a pty cannot be allocated or the shell cannot be started."""


class PtyIOError(BridgeError):
    """Raised when writing to a session fails (the shell is gone)."""


class ProtocolError(BridgeError):
    """Raised when a control frame carries the sentinel but cannot be parsed."""


class AuthError(BridgeError):
    """Raised when a connection presents a missing or wrong credential."""
