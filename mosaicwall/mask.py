"""
Glyph mask builder.

Rasterizes the logotype into an 8-bit alpha surface that defines where
ordinary tiles may be placed:

    text  -->  [fit font size]  -->  [draw glyphs]  -->  [soft halo]  -->  mask

The font size is found with one proportional correction and a single
re-measurement rather than a search: measure at the output height, scale
down to the width target, re-measure, then clamp to the height target.
Glyphs are drawn one at a time with negative tracking so the mask also
knows where each letter starts; those starts become the letter-group
boundaries used to tag placements.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageChops, ImageDraw, ImageFilter

from mosaicwall.config import MaskConfig, resolve_font
from mosaicwall.exceptions import MaskError
from mosaicwall.types import LETTER_GROUPS, TileGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DotAnchor:
    """Fixed position of the VIP dot, derived from glyph metrics."""
    x: float
    y: float
    radius: float


@dataclass(frozen=True)
class GlyphMetrics:
    font_size: float
    widths: tuple[float, ...]
    gap: float

    @property
    def total_width(self) -> float:
        return sum(self.widths) + self.gap * (len(self.widths) - 1)


def measure_glyphs(text: str, size: float, tracking: float,
                   font_path: str | None = None) -> GlyphMetrics:
    """Per-glyph advance widths at *size*, with tracking applied as a gap."""
    font = resolve_font(size, font_path)
    widths = tuple(float(font.getlength(ch)) for ch in text)
    return GlyphMetrics(font_size=size, widths=widths, gap=-size * tracking)


def fit_font_size(text: str, width: int, height: int,
                  config: MaskConfig) -> GlyphMetrics:
    """One coarse proportional correction plus a single re-measure."""
    target_w = width * config.fill_width
    target_h = height * config.fill_height

    size = float(height)
    metrics = measure_glyphs(text, size, config.tracking, config.font_path)
    if metrics.total_width > target_w and metrics.total_width > 0:
        size = size * (target_w / metrics.total_width)

    metrics = measure_glyphs(text, size, config.tracking, config.font_path)

    if size > target_h:
        size = target_h
        metrics = measure_glyphs(text, size, config.tracking, config.font_path)
    return metrics


@dataclass(frozen=True, eq=False)
class GlyphMask:
    """Read-only alpha surface over the output dimensions."""
    text: str
    width: int
    height: int
    image: Image.Image          # mode "L"
    alpha: np.ndarray           # (height, width) uint8 view of ``image``
    metrics: GlyphMetrics
    glyph_starts: tuple[float, ...]
    baseline_y: float
    dot: DotAnchor

    @property
    def font_size(self) -> float:
        return self.metrics.font_size

    @property
    def group_boundaries(self) -> tuple[float, ...]:
        """x coordinates where the second and later glyphs start."""
        return self.glyph_starts[1:]

    def alpha_at(self, x: float, y: float) -> int:
        """Mask alpha at a point; zero outside the surface."""
        ix = int(np.floor(x))
        iy = int(np.floor(y))
        if ix < 0 or iy < 0 or ix >= self.width or iy >= self.height:
            return 0
        return int(self.alpha[iy, ix])

    def contains(self, x: float, y: float, threshold: int = 128) -> bool:
        return self.alpha_at(x, y) > threshold

    def group_for_x(self, x: float) -> TileGroup:
        for boundary, group in zip(self.group_boundaries, LETTER_GROUPS):
            if x < boundary:
                return group
        return LETTER_GROUPS[len(self.group_boundaries)]

    def coverage(self, threshold: int = 128) -> float:
        """Fraction of pixels above *threshold*."""
        return float(np.count_nonzero(self.alpha > threshold)) / (self.width * self.height)


def build_glyph_mask(width: int, height: int,
                     config: MaskConfig = MaskConfig()) -> GlyphMask:
    """Render the logotype mask for a *width* x *height* output."""
    if width <= 0 or height <= 0:
        raise MaskError(f"Cannot build a mask for a {width}x{height} surface.")
    text = config.text
    if len(text) != len(LETTER_GROUPS):
        raise MaskError(f"Logotype must have {len(LETTER_GROUPS)} glyphs, got {text!r}.")

    metrics = fit_font_size(text, width, height, config)
    font = resolve_font(metrics.font_size, config.font_path)

    surface = Image.new("L", (width, height), 0)
    draw = ImageDraw.Draw(surface)
    baseline_y = height * config.baseline_fraction
    cursor = (width - metrics.total_width) / 2

    starts = []
    for ch, advance in zip(text, metrics.widths):
        starts.append(cursor)
        draw.text((cursor, baseline_y), ch, font=font, fill=255, anchor="lm")
        cursor += advance + metrics.gap

    if config.soft_edges:
        radius = width * config.edge_blur_fraction
        if radius >= 0.5:
            halo = surface.filter(ImageFilter.GaussianBlur(radius=radius))
            surface = ImageChops.lighter(surface, halo)

    dot_index = config.dot_glyph_index
    dot = DotAnchor(
        x=starts[dot_index] + metrics.widths[dot_index] / 2,
        y=baseline_y - metrics.font_size * config.dot_offset_fraction,
        radius=metrics.font_size * config.dot_radius_fraction,
    )

    alpha = np.asarray(surface, dtype=np.uint8)
    logger.debug("Mask %dx%d: font %.1fpx, coverage %.3f", width, height,
                 metrics.font_size, float(np.count_nonzero(alpha > 128)) / alpha.size)
    return GlyphMask(
        text=text, width=width, height=height, image=surface, alpha=alpha,
        metrics=metrics, glyph_starts=tuple(starts), baseline_y=baseline_y,
        dot=dot,
    )
