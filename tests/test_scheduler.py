"""
Tests for the frame/timer schedulers and callback groups.
"""

from __future__ import annotations

import asyncio

import pytest

from mosaicwall.exceptions import SchedulerClosedError
from mosaicwall.scheduler import AsyncioScheduler, CallbackGroup, VirtualScheduler


class TestVirtualScheduler:
    def test_frames_at_fixed_interval(self):
        sched = VirtualScheduler(frame_interval_ms=10)
        seen = []

        def step(ts):
            seen.append(ts)
            if len(seen) < 3:
                sched.request_frame(step)

        sched.request_frame(step)
        sched.advance(100)
        assert seen == [10, 20, 30]
        assert sched.now() == 100

    def test_timers_in_due_order(self):
        sched = VirtualScheduler()
        order = []
        sched.call_later(30, lambda: order.append("c"))
        sched.call_later(10, lambda: order.append("a"))
        sched.call_later(20, lambda: order.append("b"))
        sched.advance(25)
        assert order == ["a", "b"]
        sched.advance(5)
        assert order == ["a", "b", "c"]

    def test_same_due_keeps_insertion_order(self):
        sched = VirtualScheduler()
        order = []
        sched.call_later(5, lambda: order.append(1))
        sched.call_later(5, lambda: order.append(2))
        sched.advance(5)
        assert order == [1, 2]

    def test_cancelled_never_runs(self):
        sched = VirtualScheduler()
        ran = []
        handle = sched.call_later(10, lambda: ran.append(True))
        sched.cancel(handle)
        sched.advance(50)
        assert ran == []
        assert sched.pending() == 0

    def test_callback_sees_its_due_time(self):
        sched = VirtualScheduler()
        stamps = []
        sched.call_later(42, lambda: stamps.append(sched.now()))
        sched.advance(100)
        assert stamps == [42]

    def test_run_until_idle(self):
        sched = VirtualScheduler()
        ran = []
        sched.call_later(1000, lambda: ran.append(1))
        sched.run_until_idle()
        assert ran == [1]

    def test_run_until_idle_limit(self):
        sched = VirtualScheduler(frame_interval_ms=10)

        def forever(ts):
            sched.request_frame(forever)

        sched.request_frame(forever)
        sched.run_until_idle(limit_ms=100)
        assert sched.now() == pytest.approx(100)


class TestAsyncioScheduler:
    def test_timer_and_frame(self):
        async def run():
            sched = AsyncioScheduler(frame_interval_ms=1)
            done = asyncio.get_running_loop().create_future()
            seen = []
            sched.call_later(1, lambda: seen.append("timer"))
            sched.request_frame(lambda ts: (seen.append("frame"), done.set_result(True)))
            await asyncio.wait_for(done, timeout=2)
            await asyncio.sleep(0.01)
            return seen

        seen = asyncio.run(run())
        assert set(seen) == {"timer", "frame"}

    def test_cancel(self):
        async def run():
            sched = AsyncioScheduler()
            ran = []
            handle = sched.call_later(5, lambda: ran.append(True))
            sched.cancel(handle)
            await asyncio.sleep(0.02)
            return ran

        assert asyncio.run(run()) == []


class TestCallbackGroup:
    def test_close_cancels_everything(self):
        sched = VirtualScheduler(frame_interval_ms=10)
        group = CallbackGroup(sched)
        ran = []
        group.call_later(5, lambda: ran.append("timer"))
        group.request_frame(lambda ts: ran.append("frame"))
        assert len(group) == 2
        group.close()
        sched.advance(100)
        assert ran == []
        assert len(group) == 0
        assert sched.pending() == 0

    def test_refuses_work_after_close(self):
        group = CallbackGroup(VirtualScheduler())
        group.close()
        with pytest.raises(SchedulerClosedError):
            group.call_later(1, lambda: None)
        with pytest.raises(SchedulerClosedError):
            group.request_frame(lambda ts: None)

    def test_close_is_idempotent(self):
        group = CallbackGroup(VirtualScheduler())
        group.close()
        group.close()
        assert group.closed

    def test_fired_handles_are_forgotten(self):
        sched = VirtualScheduler()
        group = CallbackGroup(sched)
        group.call_later(1, lambda: None)
        sched.advance(2)
        assert len(group) == 0

    def test_close_from_inside_callback(self):
        sched = VirtualScheduler()
        group = CallbackGroup(sched)
        ran = []

        def first():
            ran.append("first")
            group.close()

        group.call_later(1, first)
        group.call_later(2, lambda: ran.append("second"))
        sched.advance(10)
        assert ran == ["first"]

    def test_cancel_single(self):
        sched = VirtualScheduler()
        group = CallbackGroup(sched)
        ran = []
        handle = group.call_later(1, lambda: ran.append("a"))
        group.call_later(1, lambda: ran.append("b"))
        group.cancel(handle)
        group.cancel(None)
        sched.advance(5)
        assert ran == ["b"]
