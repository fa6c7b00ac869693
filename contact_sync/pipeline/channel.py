"""
Bounded, closable FIFO channel for hand-off between pipeline stages.

Producers block while the channel is full, consumers block while it is
empty. Closing wakes everyone: blocked and later producers get
ChannelClosedError, consumers drain what is already buffered and then see
ChannelClosedError.
"""

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

T = TypeVar("T")


class ChannelClosedError(Exception):
    """Raised on put() after close(), and on get() once closed and drained."""


class Channel(Generic[T]):
    def __init__(self, capacity: int, name: str = "channel"):
        if capacity < 1:
            raise ValueError(f"Channel capacity must be positive, got {capacity}")
        self.name = name
        self.capacity = capacity
        self._items: deque[T] = deque()
        self._getters: deque[asyncio.Future] = deque()
        self._putters: deque[asyncio.Future] = deque()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        """Number of items buffered and not yet received."""
        return len(self._items)

    async def put(self, item: T) -> None:
        while not self._closed and len(self._items) >= self.capacity:
            await self._park(self._putters)
        if self._closed:
            raise ChannelClosedError(f"put() on closed channel '{self.name}'")
        self._items.append(item)
        self._wake_one(self._getters)

    async def get(self) -> T:
        while not self._closed and not self._items:
            await self._park(self._getters)
        if not self._items:
            raise ChannelClosedError(f"channel '{self.name}' is closed")
        item = self._items.popleft()
        self._wake_one(self._putters)
        return item

    def close(self) -> None:
        """Signal end-of-stream and wake every parked producer and consumer. Idempotent."""
        if self._closed:
            return
        self._closed = True
        for waiter in (*self._getters, *self._putters):
            if not waiter.done():
                waiter.set_result(None)

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            try:
                item = await self.get()
            except ChannelClosedError:
                return
            yield item

    async def _park(self, waiters: deque) -> None:
        waiter = asyncio.get_running_loop().create_future()
        waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            # Woken but cancelled before resuming: pass the wakeup on
            if waiter.done() and not waiter.cancelled():
                self._wake_one(waiters)
            raise
        finally:
            waiters.remove(waiter)

    @staticmethod
    def _wake_one(waiters: deque) -> None:
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
                return
