"""One WebSocket client bridged to one PTY session."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING

from starlette.websockets import WebSocket, WebSocketDisconnect

from ptybridge.bridge.protocol import (
    FrameKind,
    apply_frame,
    decode_binary_frame,
    decode_text_frame,
)
from ptybridge.errors import PtyIOError, SpawnError
from ptybridge.pty.session import PtySession

if TYPE_CHECKING:
    from ptybridge.config import ServerConfig

logger = logging.getLogger(__name__)

# Close codes (RFC 6455)
CLOSE_NORMAL = 1000
CLOSE_POLICY_VIOLATION = 1008
CLOSE_INTERNAL_ERROR = 1011

# Queued after the last output chunk once the shell has exited.
_SHELL_EXITED = object()

_SEND_ERRORS = (WebSocketDisconnect, RuntimeError, OSError)


class BridgeConnection:
    """Pumps bytes between a WebSocket and a PTY session.

    Three tasks run per connection:

    * output pump: session output channel -> outbound queue (binary frames);
    * writer pump: outbound queue -> socket, the only task that writes;
    * receive loop: socket -> protocol codec -> session.

    The connection ends when the client goes away, the socket fails, or the
    shell exits (remaining output is flushed and the socket closed first).
    Teardown always kills and reaps the shell and cancels every task.
    """

    def __init__(self, websocket: WebSocket, session: PtySession) -> None:
        self.id = uuid.uuid4().hex[:8]
        self.websocket = websocket
        self.session = session
        self._outgoing: asyncio.Queue[object] = asyncio.Queue()

    async def run(self) -> None:
        logger.info("Connection %s attached to pid=%d", self.id, self.session.pid)
        output_task = asyncio.create_task(
            self._output_pump(), name=f"output-pump-{self.id}"
        )
        writer_task = asyncio.create_task(
            self._writer_pump(), name=f"writer-pump-{self.id}"
        )
        receive_task = asyncio.create_task(
            self._receive_loop(), name=f"receive-{self.id}"
        )
        tasks = (output_task, writer_task, receive_task)
        try:
            await asyncio.wait(
                {writer_task, receive_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            await self._teardown(tasks)

    async def _output_pump(self) -> None:
        async for chunk in self.session.output:
            await self._outgoing.put(chunk)
        await self._outgoing.put(_SHELL_EXITED)

    async def _writer_pump(self) -> None:
        while True:
            item = await self._outgoing.get()
            try:
                if item is _SHELL_EXITED:
                    logger.info("Connection %s: shell exited", self.id)
                    await self.websocket.close(code=CLOSE_NORMAL)
                    return
                if isinstance(item, bytes):
                    await self.websocket.send_bytes(item)
                else:
                    await self.websocket.send_text(str(item))
            except _SEND_ERRORS as e:
                logger.debug("Connection %s: send failed: %s", self.id, e)
                return

    async def _receive_loop(self) -> None:
        while True:
            try:
                message = await self.websocket.receive()
            except _SEND_ERRORS as e:
                logger.debug("Connection %s: receive failed: %s", self.id, e)
                return

            if message["type"] == "websocket.disconnect":
                logger.info(
                    "Connection %s: client disconnected (code=%s)",
                    self.id,
                    message.get("code"),
                )
                return

            text = message.get("text")
            data = message.get("bytes")
            if text is not None:
                frame = decode_text_frame(text)
            elif data is not None:
                frame = decode_binary_frame(data)
            else:
                continue

            if frame.kind is FrameKind.RESIZE and frame.resize is not None:
                logger.debug(
                    "Connection %s: resize %dx%d",
                    self.id,
                    frame.resize.cols,
                    frame.resize.rows,
                )
            try:
                apply_frame(frame, self.session)
            except PtyIOError as e:
                logger.info("Connection %s: shell input closed: %s", self.id, e)
                return

    async def _teardown(self, tasks: tuple[asyncio.Task, ...]) -> None:
        loop = asyncio.get_running_loop()
        # close() blocks while the child is reaped; keep it off the loop.
        # Submitted before any await so it runs even if we are cancelled.
        closing = loop.run_in_executor(None, self.session.close)
        for task in tasks:
            task.cancel()
        await closing
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Connection %s closed", self.id)


async def serve_connection(websocket: WebSocket, config: ServerConfig) -> None:
    """Accept an authorized socket, spawn its shell and bridge the two."""
    await websocket.accept()
    try:
        session = PtySession.open(
            config.shell,
            args=config.shell_args,
            loop=asyncio.get_running_loop(),
        )
    except SpawnError as e:
        logger.error("Failed to start shell %s: %s", config.shell, e)
        try:
            await websocket.send_text(f"Failed to start shell: {e}")
            await websocket.close(code=CLOSE_INTERNAL_ERROR)
        except _SEND_ERRORS as send_error:
            logger.debug("Could not report spawn failure: %s", send_error)
        return

    await BridgeConnection(websocket, session).run()
