"""
Drawable tagged variant.

A tile is drawn either from a prepared square raster (a cached thumbnail)
or from a full-resolution source that is cover-cropped at draw time (the
VIP dot).  Both go through the same ``draw`` so callers never inspect the
payload type.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass

from PIL import Image, ImageDraw, ImageOps


class DrawableKind(enum.Enum):
    RASTER = "raster"   # Pre-cropped square bitmap, scaled to fit.
    SOURCE = "source"   # Original image, center-cropped to the target box.


def paste_clipped(surface: Image.Image, tile: Image.Image, left: int, top: int) -> None:
    """Alpha-composite *tile* onto *surface*, clipping at the surface edges."""
    sw, sh = surface.size
    tw, th = tile.size
    x0, y0 = max(left, 0), max(top, 0)
    x1, y1 = min(left + tw, sw), min(top + th, sh)
    if x1 <= x0 or y1 <= y0:
        return
    if (x0, y0, x1, y1) != (left, top, left + tw, top + th):
        tile = tile.crop((x0 - left, y0 - top, x1 - left, y1 - top))
    surface.alpha_composite(tile, dest=(x0, y0))


def circle_mask(edge: int) -> Image.Image:
    mask = Image.new("L", (edge, edge), 0)
    ImageDraw.Draw(mask).ellipse((0, 0, edge - 1, edge - 1), fill=255)
    return mask


def with_opacity(tile: Image.Image, opacity: float) -> Image.Image:
    if opacity >= 1.0:
        return tile
    alpha = tile.getchannel("A").point(lambda v: int(v * opacity))
    tile = tile.copy()
    tile.putalpha(alpha)
    return tile


@dataclass(frozen=True, eq=False)
class Drawable:
    kind: DrawableKind
    payload: Image.Image

    @classmethod
    def raster(cls, image: Image.Image) -> Drawable:
        return cls(DrawableKind.RASTER, image)

    @classmethod
    def source(cls, image: Image.Image) -> Drawable:
        return cls(DrawableKind.SOURCE, image)

    def render(self, edge: int) -> Image.Image:
        """Return an RGBA square of *edge* pixels."""
        edge = max(1, edge)
        if self.kind is DrawableKind.RASTER:
            tile = self.payload
            if tile.size != (edge, edge):
                tile = tile.resize((edge, edge), Image.LANCZOS)
        else:
            tile = ImageOps.fit(self.payload, (edge, edge), method=Image.LANCZOS)
        return tile if tile.mode == "RGBA" else tile.convert("RGBA")

    def draw(self, surface: Image.Image, center: tuple[float, float], size: float,
             opacity: float = 1.0, rotation: float = 0.0,
             circular: bool = False) -> None:
        """Draw centered at *center*, *size* pixels across.

        ``rotation`` is in radians, clockwise on screen.
        """
        if opacity <= 0.0:
            return
        edge = max(1, int(round(size)))
        tile = self.render(edge)
        if circular:
            tile = tile.copy()
            alpha = Image.new("L", tile.size, 0)
            alpha.paste(tile.getchannel("A"), mask=circle_mask(edge))
            tile.putalpha(alpha)
        if rotation:
            tile = tile.rotate(-math.degrees(rotation), resample=Image.BICUBIC,
                               expand=True)
        tile = with_opacity(tile, opacity)
        left = int(round(center[0] - tile.width / 2))
        top = int(round(center[1] - tile.height / 2))
        paste_clipped(surface, tile, left, top)
