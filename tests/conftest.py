"""Shared fixtures for ptybridge tests."""

from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PTYBRIDGE_SHELL",
        "PTYBRIDGE_BIND",
        "PTYBRIDGE_TOKEN",
        "PTYBRIDGE_MAX_LINES",
    ):
        monkeypatch.delenv(name, raising=False)
