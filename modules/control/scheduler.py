"""
Deferred callbacks driven by the frame clock.

The pipeline advances the scheduler with each frame's timestamp, so
timers fire inside the single per-frame callback and never on another
thread.
"""

import heapq
import itertools
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class TimerHandle:
    """Cancellable reference to a scheduled callback."""

    __slots__ = ("deadline", "callback", "cancelled", "fired")

    def __init__(self, deadline: float, callback: Callable[[], None]):
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def __repr__(self):
        state = "pending" if self.pending else ("fired" if self.fired else "cancelled")
        return f"TimerHandle(deadline={self.deadline:.0f}, {state})"


class FrameScheduler:
    """Single-threaded timer queue keyed on millisecond timestamps."""

    def __init__(self, start_ms: float = 0.0):
        self._now = start_ms
        self._queue = []
        self._counter = itertools.count()

    @property
    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self._now + max(0.0, delay_ms), callback)
        heapq.heappush(self._queue, (handle.deadline, next(self._counter), handle))
        return handle

    def advance(self, now_ms: float) -> int:
        """Move the clock forward and run every callback that came due.

        The clock never moves backwards. Returns the number of callbacks run.
        """
        if now_ms > self._now:
            self._now = now_ms

        fired = 0
        while self._queue and self._queue[0][0] <= self._now:
            _, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            handle.fired = True
            fired += 1
            try:
                handle.callback()
            except Exception as e:
                logger.error("Timer callback failed: %s", e)
        return fired

    @property
    def pending_count(self) -> int:
        return sum(1 for _, _, h in self._queue if h.pending)

    def clear(self):
        for _, _, handle in self._queue:
            handle.cancel()
        self._queue.clear()
