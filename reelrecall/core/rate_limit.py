"""
Request Rate Limiting

Provides an in-process fixed-window limiter used to keep outbound calls
(embedding requests in particular) under the provider's request ceiling.

Counters are process-local. Two processes sharing one API key each get the
full budget.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from reelrecall.core.config import settings
from reelrecall.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)


class WindowRateLimiter:
    """
    Fixed-window request limiter.

    Every ``acquire()`` consumes one slot of the current window. When the
    window is full the caller either waits until it resets (``block=True``)
    or gets ``RateLimitExceeded`` immediately.

    Usage:
    ------
    limiter = WindowRateLimiter(max_requests=150, window_seconds=60)
    await limiter.acquire()
    response = await client.embeddings.create(...)
    """

    def __init__(
        self,
        max_requests: int = None,
        window_seconds: float = None,
        block: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            max_requests: Requests allowed per window (default from settings)
            window_seconds: Window length (default from settings)
            block: Wait for the next window instead of raising (default from settings)
            clock: Monotonic time source, replaceable in tests
        """
        self.max_requests = max_requests or settings.EMBEDDING_RATE_LIMIT_REQUESTS
        self.window_seconds = window_seconds or settings.EMBEDDING_RATE_LIMIT_WINDOW_SECONDS
        self.block = settings.EMBEDDING_RATE_LIMIT_BLOCK if block is None else block
        self._clock = clock

        self._window_start = clock()
        self._count = 0
        self._lock = asyncio.Lock()

        if self.max_requests < 1:
            raise ValueError("max_requests must be at least 1")

    def _roll_window(self, now: float) -> None:
        if now - self._window_start >= self.window_seconds:
            self._window_start = now
            self._count = 0

    def remaining(self) -> int:
        """Slots left in the current window."""
        self._roll_window(self._clock())
        return max(0, self.max_requests - self._count)

    def reset_in(self) -> float:
        """Seconds until the current window resets."""
        elapsed = self._clock() - self._window_start
        return max(0.0, self.window_seconds - elapsed)

    async def acquire(self) -> None:
        """
        Take one request slot.

        Raises:
            RateLimitExceeded: Window is full and the limiter is non-blocking
        """
        async with self._lock:
            while True:
                now = self._clock()
                self._roll_window(now)

                if self._count < self.max_requests:
                    self._count += 1
                    return

                wait = self.reset_in()
                if not self.block:
                    raise RateLimitExceeded(
                        f"Rate limit of {self.max_requests} requests per "
                        f"{self.window_seconds:g}s reached",
                        retry_after=wait,
                    )

                logger.warning(
                    f"Rate limit reached ({self.max_requests}/{self.window_seconds:g}s), "
                    f"waiting {wait:.1f}s for window reset"
                )
                # Holding the lock keeps waiters in arrival order
                await asyncio.sleep(wait)
