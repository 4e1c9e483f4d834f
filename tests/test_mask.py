"""
Tests for the glyph mask builder.
"""

from __future__ import annotations

import numpy as np
import pytest

from mosaicwall.config import MaskConfig
from mosaicwall.exceptions import MaskError
from mosaicwall.mask import build_glyph_mask, fit_font_size, measure_glyphs
from mosaicwall.types import TileGroup


class TestFontFitting:
    def test_gap_is_negative_tracking(self):
        m = measure_glyphs("Jıo", 100, 0.05)
        assert m.gap == pytest.approx(-5.0)
        assert len(m.widths) == 3
        assert m.total_width == pytest.approx(sum(m.widths) - 10.0)

    def test_wide_surface_is_height_bound(self):
        cfg = MaskConfig()
        metrics = fit_font_size(cfg.text, 4000, 200, cfg)
        assert metrics.font_size <= 200 * cfg.fill_height + 1e-6

    def test_narrow_surface_is_width_bound(self):
        cfg = MaskConfig()
        metrics = fit_font_size(cfg.text, 300, 1000, cfg)
        # One correction plus one re-measure: close to the target, not exact.
        assert metrics.total_width <= 300 * cfg.fill_width * 1.1
        assert metrics.font_size < 1000


class TestGlyphMask:
    def test_zero_area_rejected(self):
        with pytest.raises(MaskError):
            build_glyph_mask(0, 100)
        with pytest.raises(MaskError):
            build_glyph_mask(100, -1)

    def test_needs_three_glyphs(self):
        with pytest.raises(MaskError):
            build_glyph_mask(200, 100, MaskConfig(text="ab"))

    def test_buffer_shape(self, mask):
        assert mask.alpha.shape == (mask.height, mask.width)
        assert mask.alpha.dtype == np.uint8
        assert mask.image.mode == "L"
        assert mask.image.size == (mask.width, mask.height)

    def test_has_coverage(self, mask):
        assert 0.0 < mask.coverage() < 1.0

    def test_alpha_outside_is_zero(self, mask):
        assert mask.alpha_at(-1, 10) == 0
        assert mask.alpha_at(10, -0.5) == 0
        assert mask.alpha_at(mask.width, 0) == 0
        assert mask.alpha_at(0, mask.height + 3) == 0

    def test_contains_matches_alpha(self, mask):
        ys, xs = np.nonzero(mask.alpha > 200)
        x, y = int(xs[0]), int(ys[0])
        assert mask.contains(x + 0.5, y + 0.5)
        assert not mask.contains(0, 0)

    def test_group_boundaries(self, mask):
        bounds = mask.group_boundaries
        assert len(bounds) == 2
        assert 0 < bounds[0] < bounds[1] < mask.width

    def test_group_for_x(self, mask):
        b1, b2 = mask.group_boundaries
        assert mask.group_for_x(0) is TileGroup.G1
        assert mask.group_for_x(b1 - 0.5) is TileGroup.G1
        assert mask.group_for_x(b1 + 0.5) is TileGroup.G2
        assert mask.group_for_x(b2 + 0.5) is TileGroup.G3
        assert mask.group_for_x(mask.width + 100) is TileGroup.G3

    def test_dot_anchor(self, mask):
        dot = mask.dot
        assert dot.radius == pytest.approx(mask.font_size * 0.1)
        assert dot.y == pytest.approx(mask.baseline_y - mask.font_size * 0.38)
        b1, b2 = mask.group_boundaries
        assert b1 <= dot.x <= b2 + mask.metrics.widths[1]

    def test_baseline_fraction(self, mask):
        assert mask.baseline_y == pytest.approx(mask.height * 0.7)

    def test_soft_edges_widen_mask(self):
        hard = build_glyph_mask(400, 240, MaskConfig(soft_edges=False))
        soft = build_glyph_mask(400, 240, MaskConfig(soft_edges=True))
        assert soft.coverage(threshold=0) >= hard.coverage(threshold=0)
        assert np.all(soft.alpha >= hard.alpha)

    def test_deterministic(self):
        a = build_glyph_mask(300, 180)
        b = build_glyph_mask(300, 180)
        assert np.array_equal(a.alpha, b.alpha)
