"""ANSI escape stripping for terminal output."""

from __future__ import annotations

ESC = "\x1b"


def is_final_byte(ch: str) -> bool:
    """True for characters that terminate an escape sequence (``@`` to ``~``)."""
    return "@" <= ch <= "~"


def strip_ansi(text: str) -> str:
    """Remove escape sequences from ``text``.

    ESC opens a sequence and the first character in ``@``..``~`` closes it;
    everything in between, the closing character included, is dropped.
    ``[`` is itself in that range, so for ``ESC [31m`` only ``ESC [`` goes
    and ``31m`` stays.
    """
    out: list[str] = []
    in_escape = False
    for ch in text:
        if in_escape:
            if is_final_byte(ch):
                in_escape = False
            continue
        if ch == ESC:
            in_escape = True
            continue
        out.append(ch)
    return "".join(out)
