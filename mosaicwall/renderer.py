"""
Per-frame drawing of the reveal.

Each frame is drawn from scratch onto the pass's RGBA surface:

    1. Clear to the background colour
    2. Title text with its own fade/slide
    3. One pass over every placement whose group has started

In-flight letter tiles use the pre-blurred thumbnail; landed tiles use the
sharp one.  The VIP dot is drawn from its full-resolution source with a
circular clip.
"""

from __future__ import annotations

import logging
from typing import Sequence

from PIL import Image, ImageColor, ImageDraw

from mosaicwall.config import StyleConfig, resolve_font
from mosaicwall.drawable import Drawable
from mosaicwall.layout import LayoutResult
from mosaicwall.mask import GlyphMask
from mosaicwall.thumbnails import ThumbnailCache
from mosaicwall.timeline import Timeline
from mosaicwall.types import AnimationState, TilePlacement

logger = logging.getLogger(__name__)

_MIN_VISIBLE_OPACITY = 0.01
_TITLE_LETTER_SPACING = 0.2     # em


class FrameRenderer:
    """Draws timeline frames for one generation pass."""

    def __init__(self, mask: GlyphMask, layout: LayoutResult, cache: ThumbnailCache,
                 timeline: Timeline, states: Sequence[AnimationState],
                 style: StyleConfig = StyleConfig(), font_path: str | None = None) -> None:
        if len(states) != len(layout.placements):
            raise ValueError("One animation state is required per placement.")
        self.mask = mask
        self.layout = layout
        self.cache = cache
        self.timeline = timeline
        self.states = list(states)
        self.style = style
        self.size = (mask.width, mask.height)
        self._background = ImageColor.getcolor(style.background, "RGBA")
        self._title_font = None
        if style.show_title and style.title:
            self._title_font = resolve_font(mask.font_size * style.title_size_fraction,
                                            font_path)
        self._dot_drawable = Drawable.source(layout.dot.source.image)

    def new_surface(self) -> Image.Image:
        return Image.new("RGBA", self.size, self._background)

    def clear(self, surface: Image.Image) -> None:
        surface.paste(self._background, (0, 0) + self.size)

    # -- Title -------------------------------------------------------------

    def draw_title(self, surface: Image.Image, opacity: float = 1.0,
                   offset_y: float = 0.0) -> None:
        if self._title_font is None or opacity <= 0:
            return
        font = self._title_font
        text = self.style.title
        spacing = font.size * _TITLE_LETTER_SPACING
        advances = [font.getlength(ch) for ch in text]
        total = sum(advances) + spacing * (len(text) - 1)
        x = (self.size[0] - total) / 2
        y = self.size[1] * self.style.title_y_fraction + offset_y

        layer = Image.new("RGBA", self.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        r, g, b = ImageColor.getrgb(self.style.title_color)[:3]
        fill = (r, g, b, int(round(255 * min(opacity, 1.0))))
        for ch, advance in zip(text, advances):
            draw.text((x, y), ch, font=font, fill=fill, anchor="lt")
            x += advance + spacing
        surface.alpha_composite(layer)

    # -- Tiles -------------------------------------------------------------

    def draw_dot(self, surface: Image.Image, placement: TilePlacement,
                 center: tuple[float, float], opacity: float = 1.0) -> None:
        self._dot_drawable.draw(surface, center, placement.size, opacity=opacity,
                                circular=True)

    def draw_frame(self, surface: Image.Image, elapsed: float) -> int:
        """Draw the frame at *elapsed* ms. Returns the number of tiles drawn."""
        self.clear(surface)
        title_opacity, slide = self.timeline.title_pose(elapsed)
        self.draw_title(surface, title_opacity, slide * self.style.title_slide_px)

        drawn = 0
        for placement, state in zip(self.layout.placements, self.states):
            pose = self.timeline.tile_pose(placement, state, elapsed)
            if pose is None or pose.opacity <= _MIN_VISIBLE_OPACITY:
                continue
            if placement.is_dot:
                self.draw_dot(surface, placement, (pose.x, pose.y), pose.opacity)
            else:
                edge = max(1, int(round(placement.size)))
                drawable = self.cache.drawable(placement.thumbnail_key, edge,
                                               blurred=not pose.landed)
                drawable.draw(surface, (pose.x, pose.y), placement.size,
                              opacity=pose.opacity, rotation=placement.rotation)
            drawn += 1
        return drawn
