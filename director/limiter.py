"""FIFO counting semaphore for fan-out of expensive oracle calls."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Deque


class ConcurrencyLimiter:
    """
    Bound the number of in-flight callers.

    ``release`` hands the freed slot straight to the oldest waiter, so no
    late arrival can overtake a queued caller. A waiter cancelled while
    queued is removed; one cancelled after being handed a slot gives it back.
    """

    def __init__(self, max_concurrency: int):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self._in_flight = 0
        self._peak = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    @property
    def peak(self) -> int:
        return self._peak

    def _take(self) -> None:
        self._in_flight += 1
        self._peak = max(self._peak, self._in_flight)

    async def acquire(self) -> None:
        if self._in_flight < self.max_concurrency and not self._waiters:
            self._take()
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was already handed over; pass it on.
                self.release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        if self._in_flight <= 0:
            raise RuntimeError("release() called more times than acquire()")
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # In-flight count is unchanged: the slot moves to the waiter.
                self._peak = max(self._peak, self._in_flight)
                waiter.set_result(None)
                return
        self._in_flight -= 1

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
