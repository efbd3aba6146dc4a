"""Cooperative, cancellable delayed callbacks driven by a monotonic clock."""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Callback = Callable[[], None]


@dataclass(eq=False)
class TimerHandle:
    """One scheduled callback."""

    due_at: float
    callback: Callback
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        """Prevent the callback from running if it has not run yet."""
        self.cancelled = True

    @property
    def active(self) -> bool:
        """Whether the callback is still waiting to run."""
        return not (self.cancelled or self.fired)


@dataclass
class Scheduler:
    """Single-threaded timer queue.

    Nothing runs on its own: the owner calls ``run_due`` between input events,
    so a fired callback never interleaves with another transition.
    """

    clock: Clock = time.monotonic
    _queue: list[tuple[float, int, TimerHandle]] = field(default_factory=list, init=False, repr=False)
    _counter: itertools.count[int] = field(default_factory=itertools.count, init=False, repr=False)

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        """Schedule ``callback`` to run ``delay`` seconds from now."""
        handle = TimerHandle(due_at=self.clock() + max(0.0, delay), callback=callback)
        heapq.heappush(self._queue, (handle.due_at, next(self._counter), handle))
        return handle

    def run_due(self) -> int:
        """Run every active callback whose due time has passed. Returns the count run."""
        ran = 0
        while self._queue:
            due_at, _, handle = self._queue[0]
            if due_at > self.clock():
                break
            heapq.heappop(self._queue)
            if not handle.active:
                continue
            handle.fired = True
            handle.callback()
            ran += 1
        return ran

    def next_delay(self) -> float | None:
        """Seconds until the next active callback, or None when idle."""
        self._drop_inactive()
        if not self._queue:
            return None
        return max(0.0, self._queue[0][0] - self.clock())

    @property
    def pending(self) -> int:
        """Number of active callbacks still queued."""
        return sum(1 for _, _, handle in self._queue if handle.active)

    def _drop_inactive(self) -> None:
        while self._queue and not self._queue[0][2].active:
            heapq.heappop(self._queue)


class TimerGroup:
    """Timers owned by one lifetime, such as a stage or a puzzle.

    Closing the group cancels everything it scheduled and refuses new timers,
    so a callback from a superseded stage can never touch current state.
    """

    def __init__(self, scheduler: Scheduler, name: str = "") -> None:
        self.scheduler = scheduler
        self.name = name
        self._handles: list[TimerHandle] = []
        self.closed = False

    def call_later(self, delay: float, callback: Callback) -> TimerHandle | None:
        """Schedule a callback tied to this group's lifetime."""
        if self.closed:
            logger.debug("Ignoring timer scheduled on closed group %s", self.name)
            return None
        self._handles = [handle for handle in self._handles if handle.active]
        handle = self.scheduler.call_later(delay, callback)
        self._handles.append(handle)
        return handle

    def cancel_all(self) -> None:
        """Cancel every pending timer but keep the group usable."""
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()

    def close(self) -> None:
        """Cancel pending timers and reject further scheduling."""
        self.cancel_all()
        self.closed = True

    @property
    def pending(self) -> int:
        """Number of active timers owned by this group."""
        return sum(1 for handle in self._handles if handle.active)
