from __future__ import annotations

import heapq
import itertools
from typing import Callable, List, Tuple


class ScheduledTask:
    """Handle for a scheduled callback; :meth:`cancel` prevents any further calls."""

    def __init__(self, due: float, callback: Callable[[], None], interval: float | None = None):
        self.due = due
        self.callback = callback
        self.interval = interval
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """Timers on the simulated clock.

    Tasks fire inside :meth:`advance`, in due-time order (ties by insertion).
    Repeating tasks are re-armed after each call unless cancelled meanwhile.
    """

    def __init__(self):
        self.now = 0.0
        self._queue: List[Tuple[float, int, ScheduledTask]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask(self.now + max(0.0, delay), callback)
        self._push(task)
        return task

    def call_every(self, interval: float, callback: Callable[[], None], *, first_delay: float | None = None) -> ScheduledTask:
        if interval <= 0:
            raise ValueError("interval must be positive")
        delay = interval if first_delay is None else first_delay
        task = ScheduledTask(self.now + max(0.0, delay), callback, interval)
        self._push(task)
        return task

    def advance(self, dt: float) -> int:
        """Move the clock forward by ``dt`` and run everything now due.

        Returns the number of callbacks run.
        """
        self.now += dt
        fired = 0
        while self._queue and self._queue[0][0] <= self.now + 1e-9:
            _, _, task = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            task.callback()
            fired += 1
            if task.interval is not None and not task.cancelled:
                task.due += task.interval
                self._push(task)
        return fired

    def cancel_all(self) -> None:
        for _, _, task in self._queue:
            task.cancel()
        self._queue.clear()

    def pending(self) -> int:
        return sum(1 for _, _, t in self._queue if not t.cancelled)

    def _push(self, task: ScheduledTask) -> None:
        heapq.heappush(self._queue, (task.due, next(self._counter), task))
