"""
Pointer hover and auto-spotlight over a settled mosaic.

Coordinates come in three spaces:

    client    pointer / viewport pixels (what a display reports)
    display   the rectangle the surface occupies on screen, in client space
    surface   the mosaic's own pixel grid (placements live here)

``map_pointer`` and ``tile_screen_rect`` convert between them.  Hit-testing
walks placements in reverse insertion order so the last-drawn tile (the
VIP dot) wins overlaps.

The controller owns at most one ``ActiveSpotlight``.  Its auto timer and
the nested expand/collapse timers all live in the pass's ``CallbackGroup``
and die with it.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Callable, Optional, Sequence

from mosaicwall.config import InteractionConfig
from mosaicwall.easing import clamp01, ease_in_out_cubic
from mosaicwall.scheduler import CallbackGroup, Handle
from mosaicwall.types import ActiveSpotlight, HoverEvent, Rect, SpotlightEvent, TilePlacement

logger = logging.getLogger(__name__)

Listener = Callable[[object], None]


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def surface_size_for(display_w: float, display_h: float, device_pixel_ratio: float = 1.0,
                     max_ratio: float = 2.0) -> tuple[int, int]:
    """Backing surface size for a display area, capping the pixel ratio."""
    ratio = min(device_pixel_ratio or 1.0, max_ratio)
    return int(math.floor(display_w * ratio)), int(math.floor(display_h * ratio))


def map_pointer(client_x: float, client_y: float, display_rect: Rect,
                surface_size: tuple[int, int]) -> tuple[float, float]:
    """Client coordinates to surface coordinates."""
    if display_rect.w <= 0 or display_rect.h <= 0:
        return (-1.0, -1.0)
    scale_x = surface_size[0] / display_rect.w
    scale_y = surface_size[1] / display_rect.h
    return ((client_x - display_rect.x) * scale_x,
            (client_y - display_rect.y) * scale_y)


def _hits(placement: TilePlacement, x: float, y: float) -> bool:
    dx = x - placement.center[0]
    dy = y - placement.center[1]
    half = placement.size / 2
    if placement.is_dot:
        return dx * dx + dy * dy <= half * half
    cos = math.cos(-placement.rotation)
    sin = math.sin(-placement.rotation)
    local_x = dx * cos - dy * sin
    local_y = dx * sin + dy * cos
    return -half <= local_x <= half and -half <= local_y <= half


def hit_test(placements: Sequence[TilePlacement], x: float,
             y: float) -> TilePlacement | None:
    """Topmost placement under surface point (x, y), or None."""
    for placement in reversed(placements):
        if _hits(placement, x, y):
            return placement
    return None


def tile_screen_rect(placement: TilePlacement, display_rect: Rect,
                     surface_size: tuple[int, int]) -> Rect:
    """Unrotated bounding box of *placement* in client coordinates."""
    scale_x = display_rect.w / surface_size[0]
    scale_y = display_rect.h / surface_size[1]
    w = placement.size * scale_x
    h = placement.size * scale_y
    return Rect(
        x=display_rect.x + placement.center[0] * scale_x - w / 2,
        y=display_rect.y + placement.center[1] * scale_y - h / 2,
        w=w,
        h=h,
    )


def spotlight_target_rect(image_size: tuple[int, int], viewport: tuple[float, float],
                          fraction: float = 0.35) -> Rect:
    """Aspect-preserving rect centered in *viewport*, at most *fraction* of it."""
    img_w, img_h = image_size
    if img_w <= 0 or img_h <= 0:
        raise ValueError(f"Image has no area: {image_size}")
    view_w, view_h = viewport
    scale = min(view_w * fraction / img_w, view_h * fraction / img_h)
    w = img_w * scale
    h = img_h * scale
    return Rect(x=(view_w - w) / 2, y=(view_h - h) / 2, w=w, h=h)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class InteractionController:
    """Hover preview and periodic auto-spotlight for one generation pass."""

    def __init__(self, group: CallbackGroup, placements: Sequence[TilePlacement],
                 surface_size: tuple[int, int], display_rect: Rect,
                 viewport: tuple[float, float],
                 config: InteractionConfig = InteractionConfig(),
                 rng: Optional[random.Random] = None,
                 emit: Optional[Listener] = None) -> None:
        self.group = group
        self.placements = list(placements)
        self.surface_size = surface_size
        self.display_rect = display_rect
        self.viewport = viewport
        self.config = config
        self.rng = rng or random.Random()
        self.emit = emit or (lambda event: None)

        self.hovered: TilePlacement | None = None
        self.spotlight: ActiveSpotlight | None = None
        self.spotlight_count = 0
        self.last_interaction: float | None = None
        self.running = False

        self._auto_handle: Handle | None = None
        self._spot_handles: list[Handle] = []
        self._transition_start = 0.0
        self._transition_ms = 0.0
        self._transition_from: Rect | None = None
        self._transition_to: Rect | None = None

    # -- Lifecycle ---------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self._schedule_auto()

    def stop(self) -> None:
        self.running = False
        self.group.cancel(self._auto_handle)
        self._auto_handle = None
        self._drop_spotlight(emit=False)

    # -- Pointer -----------------------------------------------------------

    def pointer_move(self, client_x: float, client_y: float) -> TilePlacement | None:
        self.last_interaction = self.group.now()
        x, y = map_pointer(client_x, client_y, self.display_rect, self.surface_size)
        found = hit_test(self.placements, x, y)
        if found is not None:
            self.hovered = found
            self.emit(HoverEvent(found.reference, (client_x, client_y)))
            if self.spotlight is not None:
                logger.debug("Hover preempts spotlight on %s", self.spotlight.placement.reference)
                self._drop_spotlight(emit=True)
        elif self.hovered is not None:
            self.hovered = None
            self.emit(HoverEvent(None))
        return found

    def pointer_leave(self) -> None:
        self.last_interaction = self.group.now()
        self.hovered = None
        self.emit(HoverEvent(None))

    def hover_preview_rect(self, client_x: float, client_y: float) -> Rect:
        """Where a display should draw the hover preview for a pointer position."""
        off = self.config.hover_offset
        size = self.config.hover_preview_size
        return Rect(client_x + off, client_y + off, size, size)

    # -- Auto spotlight ----------------------------------------------------

    def _schedule_auto(self) -> None:
        delay = self.rng.uniform(self.config.auto_period_min_ms,
                                 self.config.auto_period_max_ms)
        self._auto_handle = self.group.call_later(delay, self._auto_fire)

    def _recently_active(self) -> bool:
        if self.last_interaction is None:
            return False
        return self.group.now() - self.last_interaction < self.config.debounce_ms

    def _auto_fire(self) -> None:
        self._auto_handle = None
        if not self.running:
            return
        self._schedule_auto()
        if not self.placements or self._recently_active():
            return
        if self.spotlight is not None and self.spotlight.expanded:
            return
        self.trigger_spotlight()

    def _pick(self) -> TilePlacement:
        if self.spotlight_count == 0:
            dot = next((p for p in self.placements if p.is_dot), None)
            if dot is not None:
                return dot
        return self.placements[self.rng.randrange(len(self.placements))]

    def trigger_spotlight(self, placement: TilePlacement | None = None) -> ActiveSpotlight:
        """Start a spotlight now, replacing any collapsing one."""
        if self.spotlight is not None:
            self._drop_spotlight(emit=True)
        placement = placement or self._pick()
        self.spotlight_count += 1

        origin = tile_screen_rect(placement, self.display_rect, self.surface_size)
        target = spotlight_target_rect(placement.source.size, self.viewport,
                                       self.config.spotlight_fraction)
        self.spotlight = ActiveSpotlight(placement=placement, origin_rect=origin,
                                         target_rect=target)
        self._set_transition(origin, origin, 0.0)
        self._emit_spotlight()
        logger.debug("Spotlight #%d on %s", self.spotlight_count, placement.reference)

        cfg = self.config
        self._spot_handles = [
            self.group.call_later(cfg.expand_delay_ms, self._expand),
            self.group.call_later(cfg.hold_ms, self._collapse),
        ]
        return self.spotlight

    def _expand(self) -> None:
        spot = self.spotlight
        if spot is None:
            return
        spot.expanded = True
        self._set_transition(spot.origin_rect, spot.target_rect,
                             max(0.0, self.config.hold_ms - self.config.expand_delay_ms))
        self._emit_spotlight()

    def _collapse(self) -> None:
        spot = self.spotlight
        if spot is None:
            return
        current = self.current_spotlight_rect()
        spot.expanded = False
        self._set_transition(current or spot.target_rect, spot.origin_rect,
                             self.config.collapse_ms)
        self._emit_spotlight()
        self._spot_handles.append(
            self.group.call_later(self.config.collapse_ms, self._finish))

    def _finish(self) -> None:
        self._drop_spotlight(emit=True)

    def _drop_spotlight(self, emit: bool) -> None:
        for handle in self._spot_handles:
            self.group.cancel(handle)
        self._spot_handles = []
        spot = self.spotlight
        self.spotlight = None
        self._transition_from = self._transition_to = None
        if spot is not None and emit:
            self.emit(SpotlightEvent(spot.placement.reference, spot.origin_rect,
                                     spot.target_rect, expanded=False, finished=True))

    def _emit_spotlight(self) -> None:
        spot = self.spotlight
        self.emit(SpotlightEvent(spot.placement.reference, spot.origin_rect,
                                 spot.target_rect, expanded=spot.expanded))

    # -- Animated rect -----------------------------------------------------

    def _set_transition(self, start: Rect, end: Rect, duration_ms: float) -> None:
        self._transition_start = self.group.now()
        self._transition_ms = duration_ms
        self._transition_from = start
        self._transition_to = end

    def current_spotlight_rect(self) -> Rect | None:
        """Screen rect of the spotlight right now, eased between its endpoints."""
        if self.spotlight is None or self._transition_from is None:
            return None
        if self._transition_ms <= 0:
            return self._transition_to
        t = clamp01((self.group.now() - self._transition_start) / self._transition_ms)
        return self._transition_from.lerp(self._transition_to, ease_in_out_cubic(t))
