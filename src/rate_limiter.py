"""Process-wide sliding-window limiter for remote completion calls."""
from __future__ import annotations

import collections
import logging
import threading
import time
from typing import Callable, Deque

from src.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Allow at most ``max_calls`` acquisitions per rolling ``window_seconds``.

    Timestamps of granted calls are kept in a deque; expired ones are dropped
    on every check. All state changes happen under a single lock so the
    limiter can be shared by concurrent turns.
    """

    def __init__(
        self,
        max_calls: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_calls <= 0:
            raise ValueError("max_calls must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: Deque[float] = collections.deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._calls and self._calls[0] <= cutoff:
            self._calls.popleft()

    def try_acquire(self) -> bool:
        """Record a call and return *True*, or return *False* if over budget."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._calls) >= self.max_calls:
                return False
            self._calls.append(now)
            return True

    def acquire(self) -> None:
        """Like :meth:`try_acquire` but raise when the budget is exhausted."""
        if not self.try_acquire():
            logger.debug(
                "Rate limit of %d calls per %.0fs reached",
                self.max_calls,
                self.window_seconds,
            )
            raise RateLimitExceededError(
                f"Rate limit of {self.max_calls} calls per "
                f"{self.window_seconds:g}s exceeded"
            )

    def remaining(self) -> int:
        """Return how many calls are still available in the current window."""
        with self._lock:
            self._prune(self._clock())
            return self.max_calls - len(self._calls)
