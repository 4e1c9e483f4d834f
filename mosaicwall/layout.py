"""
Tile layout generator.

Scatter strategy (bounded rejection sampling):

    1. sample a uniform point in the output bounds
    2. reject if mask alpha <= threshold
    3. size = base * uniform(jitter_min, jitter_max)
    4. reject if closer than packing * (r_new + r_old) to any accepted tile
    5. accept; source round-robin over the pool; group from mask boundaries
    6. stop at target_count or when max_attempts is spent

The attempt ceiling bounds the worst case at O(max_attempts * placed); a
mosaic that runs out of attempts is accepted sparser than requested and the
shortfall is reported as ``LayoutResult.fill_ratio``.

The grid strategy places one tile per grid cell whose center is inside the
mask.  Both strategies reserve a single dot placement at the mask's dot
anchor, appended last so it wins hit-test ties.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from mosaicwall.config import LayoutConfig, LayoutStrategy
from mosaicwall.exceptions import LayoutError
from mosaicwall.mask import GlyphMask
from mosaicwall.types import LoadedImage, TileGroup, TilePlacement

logger = logging.getLogger(__name__)


@dataclass
class LayoutResult:
    placements: list[TilePlacement]
    pool: list[LoadedImage]
    base_size: float
    target_count: int
    attempts: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def tiles(self) -> list[TilePlacement]:
        """Ordinary (non-dot) placements."""
        return [p for p in self.placements if not p.is_dot]

    @property
    def dot(self) -> TilePlacement:
        return next(p for p in self.placements if p.is_dot)

    @property
    def fill_ratio(self) -> float:
        """Accepted ordinary tiles relative to the requested count."""
        if self.target_count <= 0:
            return 1.0
        return len(self.tiles) / self.target_count


# ---------------------------------------------------------------------------
# Pool and dot selection
# ---------------------------------------------------------------------------

def select_pool(images: Sequence[LoadedImage]) -> tuple[list[LoadedImage], bool]:
    """Images eligible for ordinary tiles.

    Returns ``(pool, fell_back)``.  VIP images are excluded while any
    non-VIP image exists; with only VIP images the whole set is used so the
    mosaic is not empty, which lets VIP faces appear outside the dot.
    """
    regular = [img for img in images if not img.is_vip]
    if regular:
        return regular, False
    return list(images), bool(images)


def choose_dot_source(images: Sequence[LoadedImage],
                      pool: Sequence[LoadedImage]) -> LoadedImage:
    """The most recent VIP image, else the first pool image."""
    vips = [img for img in images if img.is_vip]
    if vips:
        return max(vips, key=lambda img: img.order)
    return pool[0]


def _dot_placement(mask: GlyphMask, source: LoadedImage) -> TilePlacement:
    return TilePlacement(
        center=(mask.dot.x, mask.dot.y),
        size=mask.dot.radius * 2,
        rotation=0.0,
        group=TileGroup.VIP,
        source=source,
        thumbnail_key=None,
        is_dot=True,
    )


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def _scatter(mask: GlyphMask, pool: Sequence[LoadedImage], base_size: float,
             config: LayoutConfig, rng: random.Random) -> tuple[list[TilePlacement], int]:
    width, height = mask.width, mask.height
    target = config.target_count
    xs = np.empty(target, dtype=np.float64)
    ys = np.empty(target, dtype=np.float64)
    radii = np.empty(target, dtype=np.float64)
    max_rot = math.radians(config.max_rotation_deg)

    placements: list[TilePlacement] = []
    attempts = 0
    while len(placements) < target and attempts < config.max_attempts:
        attempts += 1
        cx = rng.random() * width
        cy = rng.random() * height

        if mask.alpha_at(cx, cy) <= config.alpha_threshold:
            continue

        size = base_size * rng.uniform(config.size_jitter_min, config.size_jitter_max)
        radius = size / 2

        n = len(placements)
        if n:
            dx = xs[:n] - cx
            dy = ys[:n] - cy
            min_dist = (radii[:n] + radius) * config.packing_factor
            if np.any(dx * dx + dy * dy < min_dist * min_dist):
                continue

        rotation = rng.uniform(-max_rot, max_rot) if max_rot else 0.0
        key = n % len(pool)
        placements.append(TilePlacement(
            center=(cx, cy),
            size=size,
            rotation=rotation,
            group=mask.group_for_x(cx),
            source=pool[key],
            thumbnail_key=key,
        ))
        xs[n], ys[n], radii[n] = cx, cy, radius
    return placements, attempts


def _grid(mask: GlyphMask, pool: Sequence[LoadedImage],
          config: LayoutConfig) -> tuple[list[TilePlacement], int]:
    cell = config.grid_cell
    cols = math.ceil(mask.width / cell)
    rows = math.ceil(mask.height / cell)
    placements: list[TilePlacement] = []
    attempts = 0
    for row in range(rows):
        for col in range(cols):
            if len(placements) >= config.target_count:
                return placements, attempts
            cx = col * cell + cell / 2
            cy = row * cell + cell / 2
            if cx >= mask.width or cy >= mask.height:
                continue
            attempts += 1
            if mask.alpha_at(cx, cy) <= config.alpha_threshold:
                continue
            key = (col * 31 + row * 17) % len(pool)
            placements.append(TilePlacement(
                center=(cx, cy),
                size=float(cell),
                rotation=0.0,
                group=mask.group_for_x(cx),
                source=pool[key],
                thumbnail_key=key,
            ))
    return placements, attempts


def generate_layout(images: Sequence[LoadedImage], mask: GlyphMask,
                    config: LayoutConfig = LayoutConfig(),
                    rng: random.Random | None = None) -> LayoutResult:
    """Place tiles for one generation pass."""
    if not images:
        raise LayoutError("Cannot lay out a mosaic without images.")
    rng = rng or random.Random()

    pool, fell_back = select_pool(images)
    warnings = []
    if fell_back:
        msg = ("No non-VIP images supplied; VIP images are used for ordinary "
               "tiles as well as the dot.")
        logger.warning(msg)
        warnings.append(msg)

    base_size = mask.font_size / config.base_size_divisor
    if config.strategy is LayoutStrategy.GRID:
        base_size = float(config.grid_cell)
        placements, attempts = _grid(mask, pool, config)
    else:
        placements, attempts = _scatter(mask, pool, base_size, config, rng)

    placements.append(_dot_placement(mask, choose_dot_source(images, pool)))

    result = LayoutResult(placements=placements, pool=list(pool),
                          base_size=base_size, target_count=config.target_count,
                          attempts=attempts, warnings=warnings)
    if result.fill_ratio < 1.0:
        msg = (f"Placed {len(result.tiles)}/{config.target_count} tiles "
               f"after {attempts} attempts (fill ratio {result.fill_ratio:.2f}).")
        logger.info(msg)
        warnings.append(msg)
    return result
