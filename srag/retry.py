from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class RetryPolicy:
    """Bounded re-execution of an async operation.

    ``max_retries`` counts additional attempts, so an operation that always fails
    runs ``max_retries + 1`` times. The delay is constant unless ``backoff`` > 1.
    ``retry_on`` may veto a retry for a given exception; by default every
    exception is retried.
    """

    def __init__(
        self,
        max_retries: int = 3,
        delay: float = 1.0,
        *,
        backoff: float = 1.0,
        retry_on: Optional[Callable[[BaseException], bool]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if delay < 0:
            raise ValueError("delay must be >= 0")
        if backoff < 1:
            raise ValueError("backoff must be >= 1")
        self.max_retries = max_retries
        self.delay = delay
        self.backoff = backoff
        self.retry_on = retry_on
        self._sleep = sleep
        self._log = logger if logger is not None else logging.getLogger(__name__)

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return self.delay * (self.backoff ** (attempt - 1))

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await operation()
            except Exception as exc:
                give_up = attempt >= attempts or (self.retry_on is not None and not self.retry_on(exc))
                self._log.warning(
                    "Attempt failed",
                    extra={
                        "attempt": attempt,
                        "max_attempts": attempts,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "will_retry": not give_up,
                    },
                )
                if give_up:
                    raise
                await self._sleep(self.delay_for(attempt))
        raise AssertionError("unreachable")
