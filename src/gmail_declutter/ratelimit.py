"""Token-bucket rate limiter shared by every Gmail API caller."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Callable


class TokenBucket:
    """Token bucket refilled at ``rate`` tokens per second.

    ``reserve()`` always takes a token, going into debt when the bucket is
    empty, and returns how long the caller must wait before issuing its
    request.  Waiting callers are therefore spaced ``1 / rate`` seconds apart
    in the order they reserved.  A rate of 0 or less disables limiting.
    """

    def __init__(
        self,
        rate: float,
        capacity: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rate = rate
        self.capacity = capacity if capacity is not None else max(1.0, rate)
        self._clock = clock
        self._tokens = self.capacity
        self._updated = clock()
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.rate > 0

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated = now

    def reserve(self) -> float:
        """Take one token and return the delay in seconds before it is usable."""
        if not self.enabled:
            return 0.0
        with self._lock:
            self._refill(self._clock())
            self._tokens -= 1
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    def acquire(self) -> None:
        """Block the calling thread until a token is available."""
        delay = self.reserve()
        if delay > 0:
            time.sleep(delay)

    async def acquire_async(self) -> None:
        """Suspend the calling coroutine until a token is available."""
        delay = self.reserve()
        if delay > 0:
            await asyncio.sleep(delay)
