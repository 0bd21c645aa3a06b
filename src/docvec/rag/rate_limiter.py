"""Global gate for outbound provider calls.

A single RateLimiter instance is constructed by the caller and shared by the
embedding client and the reranker, so every provider call in the process is
bounded to ``max_concurrent_requests`` in flight and dispatched at least
``min_interval_ms`` after the previous one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_REQUESTS = 1
DEFAULT_MIN_INTERVAL_MS = 500


class RateLimiter:
    """Counting semaphore plus minimum spacing between dispatches.

    Waiters are served FIFO: ``asyncio.Semaphore`` and ``asyncio.Lock`` both
    wake waiters in arrival order, and the dispatch lock is held while a
    waiter sleeps out the remaining interval.

    Args:
        max_concurrent_requests: Calls allowed in flight at once.
        min_interval_ms: Minimum gap between two consecutive dispatches.
        clock: Monotonic clock in seconds. Injectable for tests.
        sleep: Coroutine used to wait out the interval. Injectable for tests.
    """

    def __init__(
        self,
        max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS,
        min_interval_ms: float = DEFAULT_MIN_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be >= 1")
        if min_interval_ms < 0:
            raise ValueError("min_interval_ms must be >= 0")
        self.max_concurrent_requests = max_concurrent_requests
        self.min_interval_s = min_interval_ms / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(max_concurrent_requests)
        self._dispatch_lock = asyncio.Lock()
        self._last_dispatch: float | None = None
        self._active = 0
        self._waiting = 0

    @property
    def active_requests(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return self._waiting

    @property
    def last_dispatch(self) -> float | None:
        return self._last_dispatch

    async def acquire(self) -> None:
        """Block until a slot is free and the minimum interval has elapsed."""
        self._waiting += 1
        try:
            await self._semaphore.acquire()
            try:
                async with self._dispatch_lock:
                    await self._wait_for_interval()
                    self._last_dispatch = self._clock()
            except BaseException:
                self._semaphore.release()
                raise
        finally:
            self._waiting -= 1
        self._active += 1
        logger.debug(
            "Rate token acquired (active=%d, waiting=%d)", self._active, self._waiting
        )

    def release(self) -> None:
        """Return a slot to the pool and wake the next waiter.

        Raises:
            RuntimeError: If called without a matching ``acquire()``.
        """
        if self._active <= 0:
            raise RuntimeError("RateLimiter.release() called without a matching acquire()")
        self._active -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """``async with limiter.slot():`` acquires, and always releases."""
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    async def _wait_for_interval(self) -> None:
        if self._last_dispatch is None:
            return
        while True:
            elapsed = self._clock() - self._last_dispatch
            remaining = self.min_interval_s - elapsed
            if remaining <= 0:
                return
            await self._sleep(remaining)
