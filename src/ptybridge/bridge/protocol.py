"""Control protocol — resize commands multiplexed into the input stream.

Clients have a single WebSocket for everything.  A text frame whose trimmed
content starts with ``__RESIZE__`` is a control command::

    __RESIZE__ <cols> <rows>

Every other text frame, and every binary frame, is literal shell input.
A frame that carries the sentinel but no valid size is dropped rather than
typed into the shell.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ptybridge.errors import ProtocolError

if TYPE_CHECKING:
    from ptybridge.pty.session import PtySession

logger = logging.getLogger(__name__)

RESIZE_SENTINEL = "__RESIZE__"
_MAX_DIMENSION = 0xFFFF


@dataclass(frozen=True)
class Resize:
    """Terminal size requested by the client."""

    cols: int
    rows: int


class FrameKind(enum.Enum):
    RESIZE = "resize"
    INPUT = "input"
    DISCARD = "discard"


@dataclass(frozen=True)
class Frame:
    """A classified inbound frame."""

    kind: FrameKind
    payload: bytes = b""
    resize: Resize | None = None


def _parse_dimension(token: str) -> int:
    if not (token.isascii() and token.isdigit()):
        raise ProtocolError(f"not an integer: {token!r}")
    value = int(token)
    if not 0 <= value <= _MAX_DIMENSION:
        raise ProtocolError(f"dimension out of range: {value}")
    return value


def parse_resize(text: str) -> Resize | None:
    """Parse a resize command.

    Returns None when ``text`` is not a control frame at all.

    Raises:
        ProtocolError: the sentinel is present but the size is malformed.
    """
    trimmed = text.strip()
    if not trimmed.startswith(RESIZE_SENTINEL):
        return None
    parts = trimmed[len(RESIZE_SENTINEL):].split()
    if len(parts) != 2:
        raise ProtocolError(f"expected '<cols> <rows>' after sentinel, got {parts!r}")
    return Resize(cols=_parse_dimension(parts[0]), rows=_parse_dimension(parts[1]))


def decode_text_frame(text: str) -> Frame:
    try:
        resize = parse_resize(text)
    except ProtocolError as e:
        logger.debug("Discarding malformed control frame: %s", e)
        return Frame(kind=FrameKind.DISCARD)
    if resize is not None:
        return Frame(kind=FrameKind.RESIZE, resize=resize)
    return Frame(kind=FrameKind.INPUT, payload=text.encode("utf-8"))


def decode_binary_frame(data: bytes) -> Frame:
    """Binary frames are never inspected for control commands."""
    return Frame(kind=FrameKind.INPUT, payload=bytes(data))


def encode_resize(cols: int, rows: int) -> str:
    return f"{RESIZE_SENTINEL} {cols} {rows}"


def apply_frame(frame: Frame, session: PtySession) -> None:
    """Act on a decoded frame.

    Raises:
        PtyIOError: forwarding input to the shell failed.
    """
    if frame.kind is FrameKind.RESIZE:
        assert frame.resize is not None
        session.resize(frame.resize.cols, frame.resize.rows)
    elif frame.kind is FrameKind.INPUT:
        session.send(frame.payload)
