"""
Scheduler Tests
===============

INVARIANTS TESTED:
1. ManualScheduler fires ticks in due order on logical time only
2. Cancelled ticks never fire
3. Ticks scheduled from a callback fire within the same advance if due
"""

import asyncio

from backend.temporal.clock import AsyncioScheduler, ManualScheduler


class TestManualScheduler:

    def test_fires_in_due_order(self):
        scheduler = ManualScheduler()
        fired = []
        scheduler.schedule(300, lambda: fired.append("late"))
        scheduler.schedule(100, lambda: fired.append("early"))
        assert scheduler.advance(50) == 0
        assert scheduler.advance(250) == 2
        assert fired == ["early", "late"]
        assert scheduler.now_ms == 300

    def test_cancelled_tick_skipped(self):
        scheduler = ManualScheduler()
        fired = []
        tick = scheduler.schedule(10, lambda: fired.append(1))
        tick.cancel()
        tick.cancel()
        assert scheduler.advance(100) == 0
        assert fired == []
        assert scheduler.pending_count == 0

    def test_rescheduling_callback(self):
        scheduler = ManualScheduler()
        fired = []

        def tick():
            fired.append(scheduler.now_ms)
            if len(fired) < 5:
                scheduler.schedule(100, tick)

        scheduler.schedule(100, tick)
        scheduler.advance(350)
        assert fired == [100, 200, 300]
        scheduler.run_until_idle()
        assert fired == [100, 200, 300, 400, 500]
        assert scheduler.next_due_ms() is None

    def test_negative_delay_fires_immediately(self):
        scheduler = ManualScheduler(now_ms=1000)
        tick = scheduler.schedule(-5, lambda: None)
        assert tick.due_ms == 1000
        assert scheduler.advance(0) == 1
        assert tick.fired


class TestAsyncioScheduler:

    def test_call_later_on_loop(self):
        fired = []

        async def main():
            scheduler = AsyncioScheduler()
            scheduler.schedule(1, lambda: fired.append("a"))
            cancelled = scheduler.schedule(1, lambda: fired.append("b"))
            cancelled.cancel()
            assert cancelled.cancelled
            await asyncio.sleep(0.05)

        asyncio.run(main())
        assert fired == ["a"]
