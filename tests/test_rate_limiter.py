"""Unit tests for the sliding-window rate limiter."""
from __future__ import annotations

import threading

import pytest

from src.exceptions import RateLimitExceededError
from src.rate_limiter import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_max_calls_per_window():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_calls=3, window_seconds=60, clock=clock)

    assert [limiter.try_acquire() for _ in range(4)] == [True, True, True, False]
    assert limiter.remaining() == 0


def test_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_calls=2, window_seconds=60, clock=clock)
    limiter.acquire()
    clock.now = 30
    limiter.acquire()

    clock.now = 59
    assert limiter.try_acquire() is False

    # The first call leaves the window exactly 60s later.
    clock.now = 60
    assert limiter.remaining() == 1
    assert limiter.try_acquire() is True


def test_acquire_raises_when_exhausted():
    limiter = SlidingWindowRateLimiter(max_calls=1, window_seconds=60, clock=FakeClock())
    limiter.acquire()
    with pytest.raises(RateLimitExceededError):
        limiter.acquire()


def test_defaults_match_ten_per_minute():
    limiter = SlidingWindowRateLimiter()
    assert limiter.max_calls == 10
    assert limiter.window_seconds == 60.0


@pytest.mark.parametrize("kwargs", [{"max_calls": 0}, {"window_seconds": 0}])
def test_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(**kwargs)


def test_concurrent_acquisitions_never_exceed_budget():
    limiter = SlidingWindowRateLimiter(max_calls=10, window_seconds=60, clock=FakeClock())
    granted: list[bool] = []
    lock = threading.Lock()

    def _worker() -> None:
        ok = limiter.try_acquire()
        with lock:
            granted.append(ok)

    threads = [threading.Thread(target=_worker) for _ in range(25)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert granted.count(True) == 10
