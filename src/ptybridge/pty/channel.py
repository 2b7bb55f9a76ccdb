"""Output channel — hands PTY chunks from the reader thread to a consumer."""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
from typing import AsyncIterator

logger = logging.getLogger(__name__)

# Marker placed after the last chunk.
_CLOSED = None


class OutputChannel:
    """FIFO channel from one producer thread to one consumer.

    The consumer picks its style once:

    * polling: call :meth:`try_recv` from any thread, it never blocks;
    * asyncio: call :meth:`attach_loop` on the event loop thread, then
      ``await recv()`` or ``async for chunk in channel``.

    Chunks are delivered in exactly the order they were published.  After
    the producer calls :meth:`close`, the consumer drains what is left and
    then sees end-of-stream (``closed`` becomes True).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queue: queue.SimpleQueue[bytes | None] = queue.SimpleQueue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._async_queue: asyncio.Queue[bytes | None] | None = None
        self._producer_closed = False
        self._closed = False

    def attach_loop(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Route further chunks to an asyncio queue on ``loop``.

        Must be called from the loop's thread (or pass an explicit loop).
        Anything already queued for polling is moved over first.
        """
        with self._lock:
            self._loop = loop or asyncio.get_running_loop()
            self._async_queue = asyncio.Queue()
            while True:
                try:
                    item = self._queue.get_nowait()
                except queue.Empty:
                    break
                self._async_queue.put_nowait(item)

    # -- producer side -------------------------------------------------

    def publish(self, chunk: bytes) -> None:
        self._put(chunk)

    def close(self) -> None:
        """Signal end-of-stream.  Safe to call more than once."""
        with self._lock:
            if self._producer_closed:
                return
            self._producer_closed = True
        self._put(_CLOSED)

    def _put(self, item: bytes | None) -> None:
        with self._lock:
            if self._async_queue is None or self._loop is None:
                self._queue.put(item)
                return
            try:
                self._loop.call_soon_threadsafe(self._async_queue.put_nowait, item)
            except RuntimeError:
                # Event loop already closed; nobody is listening any more.
                logger.debug("Dropping output chunk: event loop is closed")

    # -- consumer side -------------------------------------------------

    def try_recv(self) -> bytes | None:
        """Next pending chunk, or None if there is none right now."""
        if self._closed:
            return None
        try:
            item = self._queue.get_nowait()
        except queue.Empty:
            return None
        if item is _CLOSED:
            self._closed = True
            return None
        return item

    async def recv(self) -> bytes | None:
        """Wait for the next chunk.  Returns None at end-of-stream."""
        if self._closed:
            return None
        if self._async_queue is None:
            self.attach_loop()
        assert self._async_queue is not None
        item = await self._async_queue.get()
        if item is _CLOSED:
            self._closed = True
            return None
        return item

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.recv()
            if chunk is None:
                return
            yield chunk

    @property
    def closed(self) -> bool:
        """True once the consumer has seen end-of-stream."""
        return self._closed
