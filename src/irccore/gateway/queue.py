"""Buffered event delivery between a connection's reader task and its consumer."""

from __future__ import annotations

import asyncio

from loguru import logger


class EventQueue:
    """Non-blocking put, awaitable get.

    maxsize <= 0 means unbounded. When bounded and full, the oldest queued event is
    dropped (and logged) so the reader never waits on a slow consumer.
    """

    def __init__(self, maxsize: int = 0, *, name: str = "") -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max(maxsize, 0))
        self._name = name
        self.dropped = 0

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    def put(self, evt: object) -> None:
        if self._queue.full():
            oldest = self._queue.get_nowait()
            self.dropped += 1
            logger.warning(
                "Event queue {} full ({}); dropped oldest {}",
                self._name or "<unnamed>",
                self._queue.maxsize,
                type(oldest).__name__,
            )
        self._queue.put_nowait(evt)

    async def get(self) -> object:
        return await self._queue.get()

    def get_nowait(self) -> object:
        return self._queue.get_nowait()

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()
