from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable


@dataclass(order=True)
class ScheduledCall:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)
    fired: bool = field(default=False, compare=False)

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)


class ManualScheduler:
    """
    Virtual-time scheduler: callbacks run only when ``advance`` moves the
    clock past their due time. A renderer's frame loop or a test drives it.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[ScheduledCall] = []
        self._seq = itertools.count()

    @property
    def pending(self) -> int:
        return sum(1 for call in self._queue if call.active)

    def schedule(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        if delay < 0:
            raise ValueError(f"Negative delay: {delay}")
        call = ScheduledCall(due=self.now + delay, seq=next(self._seq), callback=callback)
        heapq.heappush(self._queue, call)
        return call

    def cancel(self, call: ScheduledCall) -> None:
        call.cancelled = True

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running due callbacks in order. Returns how many ran."""
        target = self.now + max(0.0, seconds)
        ran = 0
        while self._queue and self._queue[0].due <= target:
            call = heapq.heappop(self._queue)
            if not call.active:
                continue
            self.now = call.due
            call.fired = True
            call.callback()
            ran += 1
        self.now = target
        return ran
