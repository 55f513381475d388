"""
Tick Schedulers for Playback
============================

Injectable timer abstraction that drives the playback controller.

CONTRACT:
- schedule(delay_ms, callback) arms exactly one future callback
- the returned handle's cancel() is always safe, pending or not
- callbacks run on the scheduler owner's thread/loop, never concurrently

GUARANTEES:
- ManualScheduler never reads system time: same calls -> same firings
- AsyncioScheduler runs ticks on the event loop (cooperative, single thread)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, List, Optional
import asyncio
import heapq
import itertools
import logging

logger = logging.getLogger(__name__)


TickCallback = Callable[[], None]


class TickHandle:
    """A pending tick that may be cancelled."""

    def cancel(self) -> None:
        raise NotImplementedError

    @property
    def cancelled(self) -> bool:
        raise NotImplementedError


class TickScheduler:
    """Base scheduler interface."""

    def schedule(self, delay_ms: float, callback: TickCallback) -> TickHandle:
        raise NotImplementedError


# =============================================================================
# MANUAL (LOGICAL TIME)
# =============================================================================

@dataclass
class ManualTick(TickHandle):
    due_ms: float
    callback: TickCallback
    _cancelled: bool = False
    _fired: bool = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired


@dataclass
class ManualScheduler(TickScheduler):
    """
    Scheduler on a logical clock advanced explicitly by the caller.

    Ticks scheduled while advancing are honored in the same advance()
    call if they fall due before its end.
    """
    now_ms: float = 0.0
    _queue: List = field(default_factory=list)
    _counter: itertools.count = field(default_factory=itertools.count)
    fired_count: int = 0

    def schedule(self, delay_ms: float, callback: TickCallback) -> ManualTick:
        tick = ManualTick(due_ms=self.now_ms + max(0.0, delay_ms), callback=callback)
        heapq.heappush(self._queue, (tick.due_ms, next(self._counter), tick))
        return tick

    @property
    def pending_count(self) -> int:
        return sum(1 for _, _, tick in self._queue if not tick.cancelled and not tick.fired)

    def next_due_ms(self) -> Optional[float]:
        self._drop_cancelled()
        if not self._queue:
            return None
        return self._queue[0][0]

    def _drop_cancelled(self) -> None:
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)

    def advance(self, delta_ms: float) -> int:
        """Move logical time forward, firing every tick that falls due. Returns ticks fired."""
        target = self.now_ms + delta_ms
        fired = 0
        while True:
            self._drop_cancelled()
            if not self._queue or self._queue[0][0] > target:
                break
            due_ms, _, tick = heapq.heappop(self._queue)
            self.now_ms = due_ms
            tick._fired = True
            fired += 1
            self.fired_count += 1
            tick.callback()
        self.now_ms = target
        return fired

    def run_until_idle(self, max_ticks: int = 100_000) -> int:
        """Fire ticks in due order until none remain."""
        fired = 0
        while fired < max_ticks:
            due = self.next_due_ms()
            if due is None:
                break
            fired += self.advance(due - self.now_ms)
        return fired


# =============================================================================
# ASYNCIO (EVENT LOOP)
# =============================================================================

class AsyncioTick(TickHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(TickScheduler):
    """Schedules ticks with loop.call_later on a single event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, delay_ms: float, callback: TickCallback) -> AsyncioTick:
        handle = self.loop.call_later(max(0.0, delay_ms) / 1000.0, callback)
        return AsyncioTick(handle)
