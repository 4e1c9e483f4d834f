"""
Core data structures used throughout the mosaic engine.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass

from PIL import Image


class TileGroup(enum.Enum):
    """Reveal group a placement belongs to (one per logotype glyph, plus the dot)."""
    G1 = "g1"
    G2 = "g2"
    G3 = "g3"
    VIP = "vip"


LETTER_GROUPS = (TileGroup.G1, TileGroup.G2, TileGroup.G3)


class Phase(enum.Enum):
    """States of the reveal timeline."""
    IDLE = "idle"
    INTRO = "intro"
    REVEAL_G1 = "reveal_g1"
    PAUSE_1 = "pause_1"
    REVEAL_G2 = "reveal_g2"
    PAUSE_2 = "pause_2"
    REVEAL_G3 = "reveal_g3"
    PAUSE_3 = "pause_3"
    REVEAL_VIP = "reveal_vip"
    SETTLE = "settle"
    EXPORTED = "exported"
    CANCELLED = "cancelled"


class GenerationStatus(enum.Enum):
    """Status signal reported to collaborators for a generation pass."""
    NO_INPUT = "no_input"
    RUNNING = "running"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class SourceImage:
    """One supplied image: an opaque locator plus the VIP flag."""
    reference: str
    is_vip: bool = False


@dataclass(frozen=True, eq=False)
class LoadedImage:
    """A SourceImage whose pixels were fetched successfully.

    ``order`` is the position in the caller's supplied list, which decides
    "most recent" for the VIP dot rule.
    """
    source: SourceImage
    image: Image.Image
    order: int

    @property
    def reference(self) -> str:
        return self.source.reference

    @property
    def is_vip(self) -> bool:
        return self.source.is_vip

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle, top-left origin."""
    x: float
    y: float
    w: float
    h: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.w / 2, self.y + self.h / 2)

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.w and self.y <= py <= self.y + self.h

    def lerp(self, other: Rect, t: float) -> Rect:
        """Interpolate between this rect and *other*; t=0 is self."""
        return Rect(
            x=self.x + (other.x - self.x) * t,
            y=self.y + (other.y - self.y) * t,
            w=self.w + (other.w - self.w) * t,
            h=self.h + (other.h - self.h) * t,
        )


@dataclass(frozen=True)
class TilePlacement:
    """One tile of the mosaic at its rest position.

    ``thumbnail_key`` indexes the thumbnail cache (the pool index); the dot
    placement has none because it always draws its full-resolution source.
    """
    center: tuple[float, float]
    size: float
    rotation: float
    group: TileGroup
    source: LoadedImage
    thumbnail_key: int | None = None
    is_dot: bool = False

    @property
    def radius(self) -> float:
        return self.size / 2

    @property
    def reference(self) -> str:
        return self.source.reference

    def distance_to(self, other: TilePlacement) -> float:
        return math.hypot(self.center[0] - other.center[0],
                          self.center[1] - other.center[1])


@dataclass(frozen=True)
class AnimationState:
    """Per-tile animation inputs, computed once when the timeline is scheduled."""
    origin: tuple[float, float]
    duration_jitter_ms: float = 0.0


@dataclass
class ActiveSpotlight:
    """The single transient enlarged preview owned by the interaction layer."""
    placement: TilePlacement
    origin_rect: Rect
    target_rect: Rect
    expanded: bool = False


# ---------------------------------------------------------------------------
# Events produced for collaborators
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HoverEvent:
    """Hover preview; ``reference`` is None when the preview is cleared."""
    reference: str | None
    pointer_position: tuple[float, float] | None = None


@dataclass(frozen=True)
class SpotlightEvent:
    reference: str
    origin_rect: Rect
    target_rect: Rect
    expanded: bool
    finished: bool = False


@dataclass(frozen=True)
class StatusEvent:
    status: GenerationStatus
    detail: str = ""


@dataclass(frozen=True)
class CueEvent:
    """Presentation cue released through the gesture gate (e.g. a chime)."""
    name: str
