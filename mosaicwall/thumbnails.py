"""
Thumbnail cache builder.

Per-frame drawing of thousands of tiles cannot afford to crop and scale
the full-resolution sources every time, so each pool image is prepared
once per generation pass:

    1. Center-crop to a square
    2. Scale to ``thumbnail_scale`` x the base tile edge (oversampled so the
       later downscale stays smooth)
    3. Optionally bake a blurred copy for in-flight tiles

Entries are keyed by pool index and discarded wholesale when the pass is
replaced.  Resized copies requested by the renderer are memoized per
(key, edge, blurred).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from PIL import Image, ImageFilter, ImageOps

from mosaicwall.config import StyleConfig
from mosaicwall.drawable import Drawable
from mosaicwall.types import LoadedImage

logger = logging.getLogger(__name__)


def crop_square(img: Image.Image, edge: int) -> Image.Image:
    """Center-crop *img* to a square and scale it to *edge* pixels."""
    rgba = img.convert("RGBA") if img.mode != "RGBA" else img
    return ImageOps.fit(rgba, (edge, edge), method=Image.LANCZOS,
                        centering=(0.5, 0.5))


def blur_thumbnail(img: Image.Image, radius: float = 2.0) -> Image.Image:
    return img.filter(ImageFilter.GaussianBlur(radius=radius))


@dataclass
class ThumbnailEntry:
    sharp: Image.Image
    blurred: Image.Image | None = None


class ThumbnailCache:
    """Square thumbnails for every pool image of one generation pass."""

    def __init__(self) -> None:
        self._entries: list[ThumbnailEntry] = []
        self._scaled: dict[tuple[int, int, bool], Image.Image] = {}
        self.edge = 0

    @classmethod
    def build(cls, pool: Sequence[LoadedImage], base_size: float,
              style: StyleConfig = StyleConfig()) -> ThumbnailCache:
        cache = cls()
        cache.edge = max(1, math.ceil(base_size * style.thumbnail_scale))
        for loaded in pool:
            sharp = crop_square(loaded.image, cache.edge)
            blurred = None
            if style.blur_in_flight:
                blurred = blur_thumbnail(sharp, style.thumbnail_blur_radius)
            cache._entries.append(ThumbnailEntry(sharp=sharp, blurred=blurred))
        logger.debug("Built %d thumbnails at %dpx (blur=%s)", len(cache._entries),
                     cache.edge, style.blur_in_flight)
        return cache

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def has_blur(self) -> bool:
        return bool(self._entries) and self._entries[0].blurred is not None

    def thumbnail(self, key: int, blurred: bool = False) -> Image.Image:
        entry = self._entries[key]
        if blurred and entry.blurred is not None:
            return entry.blurred
        return entry.sharp

    def scaled(self, key: int, edge: int, blurred: bool = False) -> Image.Image:
        """Thumbnail *key* resized to *edge* pixels, memoized."""
        blurred = blurred and self.has_blur
        cache_key = (key, edge, blurred)
        img = self._scaled.get(cache_key)
        if img is None:
            img = self.thumbnail(key, blurred).resize((edge, edge), Image.LANCZOS)
            self._scaled[cache_key] = img
        return img

    def drawable(self, key: int, edge: int, blurred: bool = False) -> Drawable:
        return Drawable.raster(self.scaled(key, max(1, edge), blurred))

    def clear(self) -> None:
        self._entries.clear()
        self._scaled.clear()
