"""Lightweight task scheduler for non-blocking timed callbacks.

A single daemon thread sleeps until the next task is due and hands it to
the shared ThreadPoolExecutor, so timers never block the Bolt listener
threads.

• schedule() runs a callable once after a delay and returns a task id.
• schedule_repeating() runs a callable every *interval* seconds until
  cancelled; the session-cache sweep uses it.
• cancel() drops a pending task.
• shutdown() stops the dispatcher thread.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)


class _ScheduledItem:
    """Internal container for a scheduled callback."""

    __slots__ = ("run_at", "task_id", "callback", "args", "kwargs", "interval")

    def __init__(
        self,
        run_at: float,
        task_id: int,
        callback: Callable[..., Any],
        args: Tuple[Any, ...],
        kwargs: dict[str, Any],
        interval: Optional[float] = None,
    ) -> None:
        self.run_at = run_at
        self.task_id = task_id
        self.callback = callback
        self.args = args
        self.kwargs = kwargs
        self.interval = interval

    # Heap ordering by run_at then task_id ensures stability.
    def __lt__(self, other: "_ScheduledItem") -> bool:  # type: ignore[override]
        return (self.run_at, self.task_id) < (other.run_at, other.task_id)


class Scheduler:
    """A minimal, thread-safe scheduler for delayed and periodic callbacks."""

    def __init__(
        self,
        executor: ThreadPoolExecutor,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._executor = executor
        self._clock = clock
        self._lock = threading.Condition()
        self._queue: list[_ScheduledItem] = []
        self._cancelled: set[int] = set()
        self._task_counter = itertools.count()
        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True, name="scheduler")
        self._thread.start()
        logger.info("Scheduler started.")

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def schedule(
        self,
        delay_seconds: float,
        callback: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> int:
        """Schedule *callback* to be executed once after *delay_seconds*.

        Returns a unique integer task id.
        """
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")
        return self._push(delay_seconds, callback, args, kwargs, None)

    def schedule_repeating(
        self,
        interval_seconds: float,
        callback: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> int:
        """Run *callback* every *interval_seconds*, first after one interval."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        return self._push(interval_seconds, callback, args, kwargs, interval_seconds)

    def cancel(self, task_id: int) -> bool:
        """Cancel a pending task; returns ``False`` if it is unknown."""
        with self._lock:
            if not any(item.task_id == task_id for item in self._queue):
                return False
            self._cancelled.add(task_id)
            self._lock.notify()
        return True

    def pending(self) -> int:
        with self._lock:
            return sum(1 for item in self._queue if item.task_id not in self._cancelled)

    def shutdown(self) -> None:
        """Stop the scheduler and wait for the background thread to finish."""
        with self._lock:
            self._running = False
            self._lock.notify()
        self._thread.join()
        logger.info("Scheduler shut down.")

    # ------------------------------------------------------------------
    # Internal loop
    # ------------------------------------------------------------------
    def _push(
        self,
        delay: float,
        callback: Callable[..., Any],
        args: Tuple[Any, ...],
        kwargs: dict[str, Any],
        interval: Optional[float],
    ) -> int:
        task_id = next(self._task_counter)
        item = _ScheduledItem(self._clock() + delay, task_id, callback, args, kwargs, interval)
        with self._lock:
            heapq.heappush(self._queue, item)
            self._lock.notify()
        return task_id

    def _run(self) -> None:  # noqa: D401 – simple private method
        """Background thread: dispatch tasks when due."""
        while True:
            with self._lock:
                while self._running and not self._queue:
                    self._lock.wait()
                if not self._running:
                    break
                next_item = self._queue[0]
                if next_item.task_id in self._cancelled:
                    heapq.heappop(self._queue)
                    self._cancelled.discard(next_item.task_id)
                    continue
                delay = next_item.run_at - self._clock()
                if delay > 0:
                    # Sleep until due or until new task arrives / shutdown.
                    self._lock.wait(timeout=delay)
                    continue
                heapq.heappop(self._queue)
                if next_item.interval is not None:
                    next_item.run_at += next_item.interval
                    heapq.heappush(self._queue, next_item)
            # Submit outside the lock to avoid deadlocks.
            try:
                self._executor.submit(next_item.callback, *next_item.args, **next_item.kwargs)
            except Exception:  # pragma: no cover – log and keep going
                logger.exception(
                    "Error submitting scheduled task %s", next_item.task_id
                )
