from __future__ import annotations
import asyncio
import time
from typing import Awaitable, Callable, Optional


class RateLimiter:
    """Keeps consecutive dispatches at least ``1 / requests_per_second`` seconds apart.

    One instance is shared by every caller of a client, whatever provider they target.
    The limiter may be driven from more than one event loop over its lifetime
    (one ``asyncio.run`` per CLI batch, say); the lock is bound to the running loop.
    """

    def __init__(
        self,
        requests_per_second: float = 2.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.min_interval = 1.0 / requests_per_second
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    def _get_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def wait_if_needed(self) -> float:
        """Suspend until the next dispatch is allowed; returns the seconds waited."""
        async with self._get_lock():
            waited = 0.0
            if self._last_call is not None:
                elapsed = self._clock() - self._last_call
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    await self._sleep(waited)
            self._last_call = self._clock()
            return waited
