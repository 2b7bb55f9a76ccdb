"""Remote bridge — one shell per authenticated WebSocket connection."""

from ptybridge.bridge.auth import authorize, is_authorized
from ptybridge.bridge.connection import BridgeConnection, serve_connection
from ptybridge.bridge.protocol import (
    RESIZE_SENTINEL,
    Frame,
    FrameKind,
    Resize,
    decode_binary_frame,
    decode_text_frame,
    encode_resize,
    parse_resize,
)
from ptybridge.bridge.server import create_app, run_server

__all__ = [
    "RESIZE_SENTINEL",
    "BridgeConnection",
    "Frame",
    "FrameKind",
    "Resize",
    "authorize",
    "create_app",
    "decode_binary_frame",
    "decode_text_frame",
    "encode_resize",
    "is_authorized",
    "parse_resize",
    "run_server",
    "serve_connection",
]
