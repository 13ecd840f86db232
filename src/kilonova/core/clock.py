"""Simulation clock and recurring side-effect tasks.

A ``RecurringTask`` is due whenever simulation time reaches its
``next_time``. Due times are computed as ``start_time + count * interval``
rather than accumulated, so long runs do not drift.
"""

from __future__ import annotations

import time as _time
from dataclasses import dataclass, field


@dataclass
class RunClock:
    """Simulation time, iteration count and end time."""

    time: float
    iteration: int = 0
    final_time: float = 0.0

    @property
    def finished(self) -> bool:
        return self.time >= self.final_time

    def advance(self, dt: float, to_time: float | None = None) -> None:
        """Step forward by dt, or land exactly on ``to_time`` when given."""
        self.time = to_time if to_time is not None else self.time + dt
        self.iteration += 1


@dataclass
class RecurringTask:
    """A task (output, reporting) performed at a fixed simulation-time cadence.

    Attributes:
        interval: Simulation time between occurrences [s].
        start_time: Time of the first occurrence [s].
        count: Occurrences so far, including earlier runs of a restarted job.
        count_this_run: Occurrences since this process started.
    """

    interval: float
    start_time: float = 0.0
    count: int = 0
    count_this_run: int = 0
    _last_performed: float = field(default_factory=_time.perf_counter, repr=False)

    @property
    def next_time(self) -> float:
        return self.start_time + self.count * self.interval

    def is_due(self, time: float) -> bool:
        return self.next_time <= time

    def advance(self) -> float:
        """Mark the task performed; return wall seconds since the last time."""
        now = _time.perf_counter()
        seconds = now - self._last_performed
        self.count += 1
        self.count_this_run += 1
        self._last_performed = now
        return seconds

    def skip_to(self, time: float) -> None:
        """Advance the count so the next occurrence is after ``time``."""
        while self.next_time <= time:
            self.count += 1
