"""
Reveal timeline.

One continuous clock drives the whole reveal::

    0 .. intro              INTRO      title fades/slides in
    G1 start .. +group      REVEAL_G1  first glyph's tiles fly in
    .. +pause               PAUSE_1
    G2 / PAUSE_2 / G3 / PAUSE_3
    dot start .. +dot       REVEAL_VIP the VIP dot drops in
    .. +trailing            SETTLE     hold, then the settle pass runs

Offsets are closed-form, so the total duration does not depend on how many
tiles were placed.  Each tile's motion is precomputed once as an
``AnimationState`` (scatter origin and duration jitter) and evaluated each
frame by ``tile_pose``.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Sequence

from mosaicwall.config import TimingConfig
from mosaicwall.easing import clamp01, ease_out_back, ease_out_cubic, ease_out_elastic
from mosaicwall.types import AnimationState, LETTER_GROUPS, Phase, TileGroup, TilePlacement

_REVEAL_PHASES = (Phase.REVEAL_G1, Phase.REVEAL_G2, Phase.REVEAL_G3)
_PAUSE_PHASES = (Phase.PAUSE_1, Phase.PAUSE_2, Phase.PAUSE_3)


@dataclass(frozen=True)
class TilePose:
    x: float
    y: float
    opacity: float
    progress: float

    @property
    def landed(self) -> bool:
        return self.progress >= 1.0


@dataclass(frozen=True)
class Timeline:
    timing: TimingConfig = TimingConfig()

    @property
    def group_span(self) -> float:
        return self.timing.group_ms + self.timing.pause_ms

    def group_start(self, group: TileGroup) -> float:
        if group is TileGroup.VIP:
            return self.timing.intro_ms + len(LETTER_GROUPS) * self.group_span
        return self.timing.intro_ms + LETTER_GROUPS.index(group) * self.group_span

    @property
    def dot_start(self) -> float:
        return self.group_start(TileGroup.VIP)

    @property
    def total_duration(self) -> float:
        """intro + 3 x (group + pause) + dot + trailing."""
        return self.dot_start + self.timing.dot_ms + self.timing.trailing_ms

    def phase_at(self, elapsed: float) -> Phase:
        if elapsed < 0:
            return Phase.IDLE
        if elapsed < self.timing.intro_ms:
            return Phase.INTRO
        for group, reveal, pause in zip(LETTER_GROUPS, _REVEAL_PHASES, _PAUSE_PHASES):
            start = self.group_start(group)
            if elapsed < start + self.timing.group_ms:
                return reveal
            if elapsed < start + self.group_span:
                return pause
        if elapsed < self.dot_start + self.timing.dot_ms:
            return Phase.REVEAL_VIP
        return Phase.SETTLE

    def has_started(self, group: TileGroup, elapsed: float) -> bool:
        return elapsed >= self.group_start(group)

    # -- Per-tile motion ---------------------------------------------------

    def prepare(self, placements: Sequence[TilePlacement],
                rng: random.Random) -> list[AnimationState]:
        """Draw a scatter origin and duration jitter for every placement."""
        t = self.timing
        states = []
        for p in placements:
            if p.is_dot:
                states.append(AnimationState(origin=(p.center[0], p.center[1] - t.drop_height)))
                continue
            angle = rng.random() * math.pi * 2
            dist = rng.uniform(t.scatter_min, t.scatter_max)
            origin = (p.center[0] + math.cos(angle) * dist,
                      p.center[1] + math.sin(angle) * dist)
            jitter = rng.uniform(-t.jitter_ms, t.jitter_ms)
            states.append(AnimationState(origin=origin, duration_jitter_ms=jitter))
        return states

    def tile_duration(self, placement: TilePlacement, state: AnimationState) -> float:
        if placement.is_dot:
            return self.timing.dot_ms
        return max(1.0, self.timing.group_ms + state.duration_jitter_ms)

    def tile_pose(self, placement: TilePlacement, state: AnimationState,
                  elapsed: float) -> TilePose | None:
        """Interpolated position and opacity, or None before the group starts."""
        t = elapsed - self.group_start(placement.group)
        if t < 0:
            return None
        progress = clamp01(t / self.tile_duration(placement, state))
        eased = ease_out_elastic(progress) if placement.is_dot else ease_out_back(progress)
        ox, oy = state.origin
        tx, ty = placement.center
        return TilePose(
            x=ox + (tx - ox) * eased,
            y=oy + (ty - oy) * eased,
            opacity=min(progress * 1.5, 1.0),
            progress=progress,
        )

    # -- Title -------------------------------------------------------------

    def title_pose(self, elapsed: float) -> tuple[float, float]:
        """(opacity, slide fraction) of the title; the fraction runs -1 -> 0."""
        fade = self.timing.title_fade_ms
        progress = 1.0 if fade <= 0 else clamp01(elapsed / fade)
        eased = ease_out_cubic(progress)
        return eased, -(1.0 - eased)
