"""One-shot cancelable timers.

Two schedulers share one shape: ``call_later(delay, callback)`` returns
a handle with ``cancel()``.

- :class:`AsyncioScheduler` delegates to ``loop.call_later``.
- :class:`ManualScheduler` keeps a heap of due times against a
  :class:`ManualClock` and fires callbacks from :meth:`advance`.

Callbacks run one at a time on the caller's thread; no callback is
interleaved with another.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from collections.abc import Callable
from typing import Protocol

from routekeeper.infrastructure.clock import ManualClock

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Timers on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(max(0.0, delay), callback)


class _ManualTimer:
    __slots__ = ("callback", "cancelled", "due_ms")

    def __init__(self, due_ms: int, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual-time scheduler driven by :meth:`advance`."""

    def __init__(self, clock: ManualClock) -> None:
        self._clock = clock
        self._heap: list[tuple[int, int, _ManualTimer]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        due = self._clock.now_ms() + max(0, int(delay * 1000))
        timer = _ManualTimer(due, callback)
        heapq.heappush(self._heap, (due, next(self._seq), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of armed, uncancelled timers."""
        return sum(1 for _, _, t in self._heap if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every timer that falls due.

        Each due timer fires with the clock set to its own due time, in
        due order. Returns the number of callbacks run.
        """
        target = self._clock.now_ms() + int(seconds * 1000)
        fired = 0
        while self._heap and self._heap[0][0] <= target:
            due, _, timer = heapq.heappop(self._heap)
            if timer.cancelled:
                continue
            self._clock.set(max(due, self._clock.now_ms()))
            timer.callback()
            fired += 1
        self._clock.set(target)
        return fired
