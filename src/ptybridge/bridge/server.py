"""Remote bridge server — FastAPI app exposing the shell over a WebSocket."""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI, WebSocket

from ptybridge import __version__
from ptybridge.bridge.auth import AUTH_HEADER, authorize
from ptybridge.bridge.connection import CLOSE_POLICY_VIOLATION, serve_connection
from ptybridge.config import ServerConfig
from ptybridge.errors import AuthError

logger = logging.getLogger(__name__)

WS_PATH = "/ws"


def create_app(config: ServerConfig) -> FastAPI:
    """Build the ASGI app.  ``config`` is shared read-only by every connection."""
    if config.open_mode:
        logger.warning(
            "PTYBRIDGE_TOKEN is not set. Server allows all connections."
        )

    app = FastAPI(title="ptybridge", version=__version__)
    app.state.config = config

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.websocket(WS_PATH)
    async def shell_socket(websocket: WebSocket) -> None:
        try:
            authorize(websocket.headers.get(AUTH_HEADER), config.token)
        except AuthError as e:
            client = websocket.client.host if websocket.client else "?"
            logger.warning("Rejected connection from %s: %s", client, e)
            # Closing before accept() turns into an HTTP 403 on the upgrade
            await websocket.close(code=CLOSE_POLICY_VIOLATION)
            return
        await serve_connection(websocket, config)

    return app


def run_server(config: ServerConfig, log_level: str = "info") -> None:
    """Serve until interrupted."""
    app = create_app(config)
    logger.info("ptybridge listening on ws://%s:%d%s", config.host, config.port, WS_PATH)
    uvicorn.run(app, host=config.host, port=config.port, log_level=log_level)
