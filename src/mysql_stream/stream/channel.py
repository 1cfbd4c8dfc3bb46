"""Single-slot handoff between the replication task and readers."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable
from typing import Generic, TypeVar

from mysql_stream.errors import ChannelClosedError

T = TypeVar("T")


class HandoffChannel(Generic[T]):
    """Depth-one FIFO with a sticky close error.

    At most one item waits for a reader; a second ``put`` suspends until
    the first is taken.  ``close`` releases every suspended caller with the
    close error.  An item already handed over is still delivered before
    ``get`` starts raising.

    Waiters park on bare futures and the slot is only touched by the
    caller's own task, so a cancelled ``get`` never takes an item with it.
    """

    def __init__(self) -> None:
        self._items: deque[T] = deque()
        self._getters: deque[asyncio.Future[None]] = deque()
        self._putters: deque[asyncio.Future[None]] = deque()
        self._error: BaseException | None = None

    @property
    def closed(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> BaseException | None:
        return self._error

    def pending(self) -> int:
        return len(self._items)

    async def put(self, item: T) -> None:
        """Hand *item* over, suspending while a previous item is unread."""
        while True:
            self._raise_if_closed()
            if not self._items:
                break
            await self._park(self._putters, lambda: not self._items)
        self._items.append(item)
        self._wake_next(self._getters)

    async def get(self) -> T:
        """Take the next item, suspending until one arrives or the channel closes."""
        while not self._items:
            self._raise_if_closed()
            await self._park(self._getters, lambda: bool(self._items))
        item = self._items.popleft()
        self._wake_next(self._putters)
        return item

    def close(self, error: BaseException | None = None) -> None:
        """Close the channel; the first close error sticks."""
        if self.closed:
            return
        self._error = error or ChannelClosedError("Channel closed")
        for waiters in (self._getters, self._putters):
            while waiters:
                waiter = waiters.popleft()
                if not waiter.done():
                    waiter.set_result(None)

    def _raise_if_closed(self) -> None:
        if self._error is not None:
            raise self._error

    async def _park(
        self, waiters: deque[asyncio.Future[None]], ready: Callable[[], bool]
    ) -> None:
        waiter = asyncio.get_running_loop().create_future()
        waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            waiter.cancel()
            try:
                waiters.remove(waiter)
            except ValueError:
                # Already woken: pass the wakeup on
                if ready():
                    self._wake_next(waiters)
            raise

    @staticmethod
    def _wake_next(waiters: deque[asyncio.Future[None]]) -> None:
        while waiters:
            waiter = waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
