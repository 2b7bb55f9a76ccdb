"""Helpers shared by the PTY-backed tests."""

from __future__ import annotations

import os
import sys
import time
from typing import Callable

import pytest

SH = "/bin/sh"

requires_sh = pytest.mark.skipif(
    sys.platform == "win32" or not os.path.exists(SH),
    reason="needs a POSIX /bin/sh and pty support",
)


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()
