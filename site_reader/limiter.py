# site_reader/limiter.py
"""
Launch limiter: a FIFO counting semaphore bounding how many headless
browsers the process runs at once.

One instance is shared by every crawl session of the process; it is passed
explicitly to whoever launches browsers.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from typing import AsyncIterator, Deque, Optional

__all__ = ("LaunchLimiter", "get_default_limiter")

_log = logging.getLogger("SiteReader")


class LaunchLimiter:
    """Counting semaphore with strict first-come, first-served hand-over.

    ``release()`` passes a freed slot straight to the oldest waiter, so a
    newcomer calling ``acquire()`` can never overtake a caller that is
    already suspended.
    """

    def __init__(self, capacity: int = 5) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._active = 0
        self._waiters: Deque[asyncio.Future[None]] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def active(self) -> int:
        """Slots currently held."""
        return self._active

    @property
    def waiting(self) -> int:
        """Callers suspended in ``acquire()``."""
        return sum(1 for f in self._waiters if not f.done())

    def locked(self) -> bool:
        return self._active >= self._capacity

    async def acquire(self) -> None:
        """Occupy one slot, suspending until one is free."""
        if self._active < self._capacity and not self.waiting:
            self._active += 1
            return

        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        _log.debug("Launch limiter full (%d/%d), waiting", self._active, self._capacity)
        try:
            await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                # the slot was handed over right before cancellation
                self.release()
            else:
                with contextlib.suppress(ValueError):
                    self._waiters.remove(fut)
            raise

    def release(self) -> None:
        """Free one slot, handing it to the longest-waiting caller if any."""
        if self._active <= 0:
            raise RuntimeError("LaunchLimiter released more times than acquired")
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_result(None)
                return
        self._active -= 1

    @contextlib.asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        """``async with limiter.permit():`` – acquire, and always release."""
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    async def __aenter__(self) -> LaunchLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()

    def snapshot(self) -> dict:
        return {"active": self.active, "waiting": self.waiting, "capacity": self.capacity}

    def __repr__(self) -> str:
        return f"<LaunchLimiter {self._active}/{self._capacity} waiting={self.waiting}>"


_default: Optional[LaunchLimiter] = None


def get_default_limiter(capacity: int = 5) -> LaunchLimiter:
    """Process-wide limiter used when a caller does not supply its own.

    Created on first use; *capacity* only matters for that first call.
    """
    global _default
    if _default is None:
        _default = LaunchLimiter(capacity)
    return _default
