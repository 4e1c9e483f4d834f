"""
Cooperative frame and timer scheduling.

The engine never sleeps or blocks: it asks a ``Scheduler`` for a callback
on the next display refresh (``request_frame``) or after a delay
(``call_later``).  Two implementations are provided:

``VirtualScheduler``
    A manual clock.  Time only moves when ``advance`` is called, and frame
    callbacks fire at a fixed interval.  Used for headless rendering and
    for deterministic tests.

``AsyncioScheduler``
    Delegates to an asyncio event loop for live displays.

All times are in milliseconds.  A generation pass never talks to the
scheduler directly; it goes through a ``CallbackGroup`` that owns every
handle it created so the whole set can be cancelled in one call.
"""

from __future__ import annotations

import abc
import asyncio
import heapq
import itertools
import logging
from typing import Any, Callable, Optional

from mosaicwall.exceptions import SchedulerClosedError

logger = logging.getLogger(__name__)

FrameCallback = Callable[[float], None]
TimerCallback = Callable[[], None]


class Handle:
    """Cancellable reference to one scheduled callback."""

    _ids = itertools.count()

    def __init__(self, due: float, callback: Callable[..., None], is_frame: bool) -> None:
        self.id = next(self._ids)
        self.due = due
        self.callback = callback
        self.is_frame = is_frame
        self.cancelled = False
        self.native: Any = None

    def __lt__(self, other: Handle) -> bool:
        return (self.due, self.id) < (other.due, other.id)

    def __repr__(self) -> str:
        kind = "frame" if self.is_frame else "timer"
        state = " cancelled" if self.cancelled else ""
        return f"<Handle {self.id} {kind} due={self.due:.1f}{state}>"


class Scheduler(abc.ABC):
    """Abstract interface every scheduler must implement."""

    name: str = "abstract"

    @abc.abstractmethod
    def now(self) -> float:
        """Current time in milliseconds."""

    @abc.abstractmethod
    def request_frame(self, callback: FrameCallback) -> Handle:
        """Call ``callback(timestamp_ms)`` on the next display refresh."""

    @abc.abstractmethod
    def call_later(self, delay_ms: float, callback: TimerCallback) -> Handle:
        """Call ``callback()`` once after *delay_ms*."""

    def cancel(self, handle: Handle) -> None:
        handle.cancelled = True


# ---------------------------------------------------------------------------
# Virtual clock
# ---------------------------------------------------------------------------

class VirtualScheduler(Scheduler):
    """Manual-clock scheduler with a fixed frame interval."""

    name = "virtual"

    def __init__(self, frame_interval_ms: float = 1000.0 / 60.0,
                 start_ms: float = 0.0) -> None:
        self.frame_interval_ms = frame_interval_ms
        self._now = start_ms
        self._queue: list[Handle] = []

    def now(self) -> float:
        return self._now

    def request_frame(self, callback: FrameCallback) -> Handle:
        handle = Handle(self._now + self.frame_interval_ms, callback, is_frame=True)
        heapq.heappush(self._queue, handle)
        return handle

    def call_later(self, delay_ms: float, callback: TimerCallback) -> Handle:
        handle = Handle(self._now + max(0.0, delay_ms), callback, is_frame=False)
        heapq.heappush(self._queue, handle)
        return handle

    def pending(self) -> int:
        """Number of callbacks still due to run."""
        return sum(1 for h in self._queue if not h.cancelled)

    def _run_next(self, until: float) -> bool:
        while self._queue and self._queue[0].due <= until:
            handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = handle.due
            if handle.is_frame:
                handle.callback(handle.due)
            else:
                handle.callback()
            return True
        return False

    def advance(self, ms: float) -> None:
        """Move the clock forward, running every callback that falls due."""
        target = self._now + ms
        while self._run_next(target):
            pass
        self._now = target

    def run_until_idle(self, limit_ms: float = 600_000.0) -> None:
        """Run until nothing is pending, or *limit_ms* of virtual time passed."""
        deadline = self._now + limit_ms
        while self.pending() and self._run_next(deadline):
            pass
        if self.pending():
            self._now = max(self._now, deadline)


# ---------------------------------------------------------------------------
# asyncio
# ---------------------------------------------------------------------------

class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop."""

    name = "asyncio"

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None,
                 frame_interval_ms: float = 1000.0 / 60.0) -> None:
        self.loop = loop or asyncio.get_running_loop()
        self.frame_interval_ms = frame_interval_ms

    def now(self) -> float:
        return self.loop.time() * 1000.0

    def request_frame(self, callback: FrameCallback) -> Handle:
        handle = Handle(self.now() + self.frame_interval_ms, callback, is_frame=True)
        handle.native = self.loop.call_later(
            self.frame_interval_ms / 1000.0, lambda: callback(self.now()))
        return handle

    def call_later(self, delay_ms: float, callback: TimerCallback) -> Handle:
        handle = Handle(self.now() + delay_ms, callback, is_frame=False)
        handle.native = self.loop.call_later(max(0.0, delay_ms) / 1000.0, callback)
        return handle

    def cancel(self, handle: Handle) -> None:
        handle.cancelled = True
        if handle.native is not None:
            handle.native.cancel()


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------

class CallbackGroup:
    """Every frame callback and timer belonging to one generation pass.

    ``close`` cancels all outstanding handles at once; afterwards the group
    refuses new work and no callback of the group runs again.
    """

    def __init__(self, scheduler: Scheduler) -> None:
        self.scheduler = scheduler
        self._live: dict[int, Handle] = {}
        self.closed = False

    def now(self) -> float:
        return self.scheduler.now()

    def __len__(self) -> int:
        return len(self._live)

    def _check_open(self) -> None:
        if self.closed:
            raise SchedulerClosedError("Callback group is closed.")

    def request_frame(self, callback: FrameCallback) -> Handle:
        self._check_open()
        box: list[Handle] = []

        def run(timestamp: float) -> None:
            self._live.pop(box[0].id, None)
            if not self.closed:
                callback(timestamp)

        handle = self.scheduler.request_frame(run)
        box.append(handle)
        self._live[handle.id] = handle
        return handle

    def call_later(self, delay_ms: float, callback: TimerCallback) -> Handle:
        self._check_open()
        box: list[Handle] = []

        def run() -> None:
            self._live.pop(box[0].id, None)
            if not self.closed:
                callback()

        handle = self.scheduler.call_later(delay_ms, run)
        box.append(handle)
        self._live[handle.id] = handle
        return handle

    def cancel(self, handle: Handle | None) -> None:
        if handle is None:
            return
        self._live.pop(handle.id, None)
        self.scheduler.cancel(handle)

    def close(self) -> None:
        """Cancel everything and refuse further scheduling. Idempotent."""
        if self.closed:
            return
        self.closed = True
        for handle in list(self._live.values()):
            self.scheduler.cancel(handle)
        if self._live:
            logger.debug("Cancelled %d pending callbacks", len(self._live))
        self._live.clear()
