"""Tests for the token-bucket rate limiter."""

import asyncio

from gmail_declutter.ratelimit import TokenBucket


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_burst_up_to_capacity():
    bucket = TokenBucket(rate=2, capacity=2, clock=FakeClock())
    assert bucket.reserve() == 0
    assert bucket.reserve() == 0
    assert bucket.reserve() == 0.5


def test_waiters_are_spaced():
    """Callers past the burst are spaced 1/rate apart in reservation order."""
    bucket = TokenBucket(rate=4, capacity=1, clock=FakeClock())
    delays = [bucket.reserve() for _ in range(4)]
    assert delays == [0, 0.25, 0.5, 0.75]


def test_refill_over_time():
    clock = FakeClock()
    bucket = TokenBucket(rate=1, capacity=1, clock=clock)
    assert bucket.reserve() == 0
    assert bucket.reserve() == 1.0
    clock.now = 5.0
    # Refill is capped at capacity, and the debt is paid back first
    assert bucket.reserve() == 0


def test_disabled_limiter():
    bucket = TokenBucket(rate=0)
    assert not bucket.enabled
    assert all(bucket.reserve() == 0 for _ in range(100))
    bucket.acquire()
    asyncio.run(bucket.acquire_async())
