"""Cancellable deferred calls driven by an injectable clock.

The editor runs cooperatively: nothing fires on a background thread. Callers
schedule work with :meth:`DeferredScheduler.call_later` and the owner of the
loop (the editor session, once per request) calls
:meth:`DeferredScheduler.run_pending` to execute whatever has come due. Tests
pass their own clock and advance it explicitly.
"""
from __future__ import annotations

import heapq
import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional


@dataclass(order=True)
class TimerHandle:
    due: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class DeferredScheduler:
    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.monotonic
        self._queue: List[TimerHandle] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._clock()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        if delay < 0:
            raise ValueError("delay must not be negative")
        handle = TimerHandle(due=self.now() + delay, sequence=next(self._counter), callback=callback)
        heapq.heappush(self._queue, handle)
        return handle

    def run_pending(self) -> int:
        """Run every live timer due at the current clock reading.

        Timers scheduled by a callback are picked up in the same pass when
        they are already due. Returns how many callbacks ran.
        """

        ran = 0
        while self._queue:
            head = self._queue[0]
            if head.cancelled:
                heapq.heappop(self._queue)
                continue
            if head.due > self.now():
                break
            heapq.heappop(self._queue)
            head.cancelled = True
            head.callback()
            ran += 1
        return ran

    def pending(self) -> int:
        return sum(1 for handle in self._queue if not handle.cancelled)

    def next_due(self) -> Optional[float]:
        live = [handle.due for handle in self._queue if not handle.cancelled]
        return min(live) if live else None


__all__ = ["DeferredScheduler", "TimerHandle"]
