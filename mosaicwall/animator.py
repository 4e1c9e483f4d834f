"""
Frame loop for the staged reveal.

``RevealAnimation`` schedules one callback per display refresh through the
pass's ``CallbackGroup``.  The first frame fixes the start time; each later
frame computes the elapsed time, updates the phase and redraws.  Once the
elapsed time reaches the timeline's total the settle pass runs exactly once
and the animation ends in ``Phase.EXPORTED``.

Any exception raised while drawing marks the animation failed and is
re-raised after the ``on_failed`` hook (which the engine uses to close the
callback group) has run.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from PIL import Image

from mosaicwall.export import compose_settled
from mosaicwall.renderer import FrameRenderer
from mosaicwall.scheduler import CallbackGroup, Handle
from mosaicwall.types import Phase

logger = logging.getLogger(__name__)

FrameHook = Callable[[float, Image.Image], None]

_FINISHED = (Phase.EXPORTED, Phase.CANCELLED)


class RevealAnimation:
    """Drives one pass's reveal on a callback group."""

    def __init__(self, group: CallbackGroup, renderer: FrameRenderer,
                 on_frame: Optional[FrameHook] = None,
                 on_settled: Optional[Callable[[Image.Image], None]] = None,
                 on_failed: Optional[Callable[[BaseException], None]] = None) -> None:
        self.group = group
        self.renderer = renderer
        self.timeline = renderer.timeline
        self.surface = renderer.new_surface()
        self.on_frame = on_frame
        self.on_settled = on_settled
        self.on_failed = on_failed

        self.phase = Phase.IDLE
        self.start_time: float | None = None
        self.elapsed = 0.0
        self.frames_drawn = 0
        self.failed = False
        self.settled: Image.Image | None = None
        self._handle: Handle | None = None

    @property
    def finished(self) -> bool:
        return self.phase in _FINISHED or self.failed

    def start(self) -> None:
        if self.phase is not Phase.IDLE:
            raise RuntimeError(f"Animation already started (phase {self.phase.value}).")
        logger.debug("Reveal starting, total %.0f ms", self.timeline.total_duration)
        self._handle = self.group.request_frame(self._step)

    def cancel(self) -> None:
        if self.finished:
            return
        self.phase = Phase.CANCELLED
        self.group.cancel(self._handle)
        self._handle = None
        logger.debug("Reveal cancelled at %.0f ms", self.elapsed)

    def _step(self, timestamp: float) -> None:
        self._handle = None
        if self.finished:
            return
        try:
            if self.start_time is None:
                self.start_time = timestamp
            self.elapsed = timestamp - self.start_time

            if self.elapsed >= self.timeline.total_duration:
                self._settle(timestamp)
                return

            self.phase = self.timeline.phase_at(self.elapsed)
            self.renderer.draw_frame(self.surface, self.elapsed)
            self.frames_drawn += 1
            if self.on_frame is not None:
                self.on_frame(timestamp, self.surface)
            self._handle = self.group.request_frame(self._step)
        except Exception as exc:
            self._fail(exc)
            raise

    def _settle(self, timestamp: float) -> None:
        self.phase = Phase.SETTLE
        self.settled = compose_settled(self.renderer)
        self.surface.paste(self.settled)
        if self.on_frame is not None:
            self.on_frame(timestamp, self.surface)
        self.phase = Phase.EXPORTED
        logger.info("Reveal settled after %d frames (%.0f ms)",
                    self.frames_drawn, self.elapsed)
        if self.on_settled is not None:
            self.on_settled(self.settled)

    def _fail(self, exc: BaseException) -> None:
        self.failed = True
        self.phase = Phase.CANCELLED
        logger.error("Reveal failed at %.0f ms: %s", self.elapsed, exc)
        if self.on_failed is not None:
            self.on_failed(exc)
        else:
            self.group.close()
