"""
Bounded single-producer / single-consumer channel of diff batches.

Wraps ``asyncio.Queue`` with an explicit close. ``close()`` never blocks,
so it is safe to call from a ``finally`` block of a cancelled producer, and
a consumer iterating the channel always stops once the channel is closed
and drained.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

T = TypeVar("T")

_CLOSED = object()


class ChannelClosedError(RuntimeError):
    """Raised when sending on a closed channel."""


class BatchChannel(Generic[T]):
    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=capacity)
        self._capacity = capacity
        self._closed = False
        self._marker_queued = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """Number of items buffered but not yet received."""
        size = self._queue.qsize()
        # The close marker occupies a slot when it fits.
        if self._closed and size and self._marker_queued:
            return size - 1
        return size

    async def send(self, item: T) -> None:
        """Enqueue ``item``, waiting while the channel is full."""
        if self._closed:
            raise ChannelClosedError("channel is closed")
        await self._queue.put(item)

    def close(self) -> None:
        """
        Mark the channel complete.

        A consumer blocked on an empty channel is woken. When the channel is
        full no consumer can be blocked, and the closed flag is seen once the
        buffer drains.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
            self._marker_queued = True
        except asyncio.QueueFull:
            self._marker_queued = False

    async def receive(self) -> T:
        """
        Return the next item.

        Raises ``StopAsyncIteration`` once the channel is closed and drained.
        """
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        return await self.receive()
