"""
Tests for per-frame rendering and the reveal frame loop.
"""

from __future__ import annotations

import random

import pytest

from mosaicwall.animator import RevealAnimation
from mosaicwall.config import LayoutConfig, StyleConfig
from mosaicwall.layout import generate_layout
from mosaicwall.renderer import FrameRenderer
from mosaicwall.scheduler import CallbackGroup, VirtualScheduler
from mosaicwall.thumbnails import ThumbnailCache
from mosaicwall.timeline import Timeline
from mosaicwall.types import Phase

from conftest import FAST_TIMING, make_loaded


@pytest.fixture
def renderer(mask):
    layout = generate_layout(make_loaded(4, vip=(3,)), mask,
                             LayoutConfig(target_count=80, max_attempts=10_000),
                             random.Random(0))
    cache = ThumbnailCache.build(layout.pool, layout.base_size)
    timeline = Timeline(FAST_TIMING)
    states = timeline.prepare(layout.placements, random.Random(0))
    return FrameRenderer(mask, layout, cache, timeline, states, StyleConfig())


def _animation(renderer, **hooks):
    sched = VirtualScheduler(frame_interval_ms=FAST_TIMING.frame_interval_ms)
    group = CallbackGroup(sched)
    return sched, group, RevealAnimation(group, renderer, **hooks)


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------

class TestFrameRenderer:
    def test_state_count_must_match(self, renderer):
        with pytest.raises(ValueError):
            FrameRenderer(renderer.mask, renderer.layout, renderer.cache,
                          renderer.timeline, renderer.states[:-1])

    def test_nothing_drawn_before_first_group(self, renderer):
        surface = renderer.new_surface()
        assert renderer.draw_frame(surface, 0) == 0

    def test_only_started_groups_drawn(self, renderer):
        surface = renderer.new_surface()
        tl = renderer.timeline
        drawn_mid = renderer.draw_frame(surface, tl.dot_start - 1)
        drawn_end = renderer.draw_frame(surface, tl.total_duration)
        assert drawn_end == len(renderer.layout.placements)
        assert drawn_mid == len(renderer.layout.tiles)

    def test_background_cleared(self, renderer):
        surface = renderer.new_surface()
        renderer.draw_frame(surface, renderer.timeline.total_duration)
        renderer.clear(surface)
        assert surface.getpixel((0, 0)) == (4, 29, 64, 255)
        assert surface.getcolors(1) is not None


# ---------------------------------------------------------------------------
# Frame loop
# ---------------------------------------------------------------------------

class TestRevealAnimation:
    def test_runs_to_exported(self, renderer):
        settled = []
        sched, group, anim = _animation(renderer, on_settled=settled.append)
        anim.start()
        sched.advance(renderer.timeline.total_duration + 200)
        assert anim.phase is Phase.EXPORTED
        assert len(settled) == 1
        assert settled[0].size == renderer.size
        assert anim.frames_drawn > 0
        assert len(group) == 0

    def test_phases_progress(self, renderer):
        phases = []
        sched, _, anim = _animation(renderer,
                                    on_frame=lambda ts, surf: phases.append(anim.phase))
        anim.start()
        sched.advance(renderer.timeline.total_duration + 200)
        seen = list(dict.fromkeys(phases))
        assert seen[0] is Phase.INTRO
        assert Phase.REVEAL_G1 in seen and Phase.REVEAL_VIP in seen
        order = [p for p in Phase if p in seen]
        assert seen == order

    def test_cannot_start_twice(self, renderer):
        _, _, anim = _animation(renderer)
        anim.start()
        with pytest.raises(RuntimeError):
            anim.start()

    def test_cancel_stops_frames(self, renderer):
        frames = []
        sched, group, anim = _animation(renderer, on_frame=lambda ts, s: frames.append(ts))
        anim.start()
        sched.advance(300)
        count = len(frames)
        anim.cancel()
        sched.advance(5000)
        assert len(frames) == count
        assert anim.phase is Phase.CANCELLED
        assert anim.settled is None

    def test_group_close_stops_frames(self, renderer):
        frames = []
        sched, group, anim = _animation(renderer, on_frame=lambda ts, s: frames.append(ts))
        anim.start()
        sched.advance(200)
        group.close()
        count = len(frames)
        sched.advance(5000)
        assert len(frames) == count

    def test_exception_cancels_then_propagates(self, renderer):
        def boom(ts, surface):
            raise RuntimeError("draw failed")

        sched, group, anim = _animation(renderer, on_frame=boom)
        anim.start()
        with pytest.raises(RuntimeError, match="draw failed"):
            sched.advance(100)
        assert anim.failed
        assert group.closed
        assert sched.pending() == 0

    def test_on_failed_hook(self, renderer):
        failures = []

        def boom(ts, surface):
            raise RuntimeError("draw failed")

        sched, group, anim = _animation(renderer, on_frame=boom,
                                        on_failed=failures.append)
        anim.start()
        with pytest.raises(RuntimeError):
            sched.advance(100)
        assert len(failures) == 1
        assert isinstance(failures[0], RuntimeError)
