"""
Tests for WindowRateLimiter.

A fake clock drives the window; blocking waits patch asyncio.sleep so the
tests never actually sleep.
"""

from unittest.mock import AsyncMock, patch

import pytest

from reelrecall.core.exceptions import RateLimitExceeded
from reelrecall.core.rate_limit import WindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.mark.asyncio
class TestWindowRateLimiter:
    """Test fixed-window request limiting."""

    async def test_allows_up_to_max_requests(self):
        limiter = WindowRateLimiter(max_requests=3, window_seconds=60, block=False, clock=FakeClock())

        for _ in range(3):
            await limiter.acquire()

        assert limiter.remaining() == 0

    async def test_non_blocking_raises_with_retry_after(self):
        clock = FakeClock()
        limiter = WindowRateLimiter(max_requests=1, window_seconds=60, block=False, clock=clock)

        await limiter.acquire()
        clock.advance(20)

        with pytest.raises(RateLimitExceeded) as exc_info:
            await limiter.acquire()
        assert exc_info.value.retry_after == pytest.approx(40)

    async def test_window_resets(self):
        clock = FakeClock()
        limiter = WindowRateLimiter(max_requests=1, window_seconds=60, block=False, clock=clock)

        await limiter.acquire()
        clock.advance(60)

        await limiter.acquire()
        assert limiter.remaining() == 0

    async def test_blocking_waits_for_reset(self):
        clock = FakeClock()
        limiter = WindowRateLimiter(max_requests=1, window_seconds=60, block=True, clock=clock)

        async def _sleep(seconds):
            clock.advance(seconds)

        await limiter.acquire()
        clock.advance(15)

        with patch("reelrecall.core.rate_limit.asyncio.sleep", new=AsyncMock(side_effect=_sleep)) as sleep:
            await limiter.acquire()

        sleep.assert_awaited_once()
        assert sleep.await_args.args[0] == pytest.approx(45)

    async def test_reset_in(self):
        clock = FakeClock()
        limiter = WindowRateLimiter(max_requests=5, window_seconds=60, clock=clock)

        clock.advance(10)
        assert limiter.reset_in() == pytest.approx(50)

    async def test_invalid_max_requests(self):
        with pytest.raises(ValueError):
            WindowRateLimiter(max_requests=-1)
