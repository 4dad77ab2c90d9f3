# Clock and one-shot timer abstraction shared by the guard components.
# Production code runs on SystemClock; tests drive ManualClock forward by hand.

import asyncio
import heapq
import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol
from utils.logger import get_logger

log = get_logger()


class Clock(Protocol):
    def now(self) -> int:
        """Current time in milliseconds since the epoch."""
        ...

    def call_later(self, delay_ms: int, callback: Callable[[], None]):
        """Run callback once after delay_ms. Fire-and-forget."""
        ...


class SystemClock:
    """Wall clock backed by time.time(); timers go through the running asyncio loop."""

    def now(self) -> int:
        return int(time.time() * 1000)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Optional[asyncio.TimerHandle]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.warning(f"[Clock] No running event loop, timer of {delay_ms}ms was not scheduled")
            return None
        return loop.call_later(max(delay_ms, 0) / 1000, callback)


@dataclass(order=True)
class _Timer:
    due: int
    seq: int
    callback: Callable[[], None] = field(compare=False)


class ManualClock:
    """
    Virtual clock for tests.
    Time only moves when advance()/set() is called; due timers fire in order,
    each one seeing now() equal to its own due time.
    """
    def __init__(self, start: int = 0):
        self._now = start
        self._timers: List[_Timer] = []
        self._seq = itertools.count()

    def now(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _Timer:
        timer = _Timer(self._now + max(delay_ms, 0), next(self._seq), callback)
        heapq.heappush(self._timers, timer)
        return timer

    def advance(self, ms: int):
        self.set(self._now + ms)

    def set(self, target: int):
        if target < self._now:
            raise ValueError("ManualClock cannot move backwards")

        while self._timers and self._timers[0].due <= target:
            timer = heapq.heappop(self._timers)
            self._now = timer.due
            timer.callback()

        self._now = target

    @property
    def pending(self) -> int:
        return len(self._timers)
