"""
Tests for the thumbnail cache and the Drawable variant.
"""

from __future__ import annotations

import math

from PIL import Image

from mosaicwall.config import StyleConfig
from mosaicwall.drawable import Drawable, DrawableKind, circle_mask, paste_clipped, with_opacity
from mosaicwall.thumbnails import ThumbnailCache, blur_thumbnail, crop_square

from conftest import make_image, make_loaded


class TestCropSquare:
    def test_landscape_center_crop(self):
        img = Image.new("RGB", (200, 100), (255, 0, 0))
        img.paste((0, 0, 255), (0, 0, 20, 100))      # blue strip on the left
        out = crop_square(img, 30)
        assert out.size == (30, 30)
        assert out.mode == "RGBA"
        # The blue strip is cropped away.
        assert out.getpixel((0, 15))[:3] == (255, 0, 0)

    def test_portrait(self):
        out = crop_square(Image.new("RGB", (50, 300)), 16)
        assert out.size == (16, 16)

    def test_blur_keeps_size_and_softens_edge(self):
        img = Image.new("RGBA", (40, 20), (0, 0, 0, 255))
        img.paste((255, 255, 255, 255), (20, 0, 40, 20))
        out = blur_thumbnail(img, radius=2.0)
        assert out.size == (40, 20)
        assert 0 < out.getpixel((20, 10))[0] < 255
        assert out.getpixel((0, 10))[0] == 0


class TestThumbnailCache:
    def test_build_edge(self):
        cache = ThumbnailCache.build(make_loaded(3), base_size=10.2)
        assert len(cache) == 3
        assert cache.edge == math.ceil(10.2 * 3)
        assert cache.thumbnail(0).size == (cache.edge, cache.edge)

    def test_blur_variant(self):
        cache = ThumbnailCache.build(make_loaded(2), base_size=10)
        assert cache.has_blur
        assert cache.thumbnail(1, blurred=True) is not cache.thumbnail(1)

    def test_blur_disabled(self):
        cache = ThumbnailCache.build(make_loaded(2), base_size=10,
                                     style=StyleConfig(blur_in_flight=False))
        assert not cache.has_blur
        assert cache.thumbnail(0, blurred=True) is cache.thumbnail(0)
        assert cache.scaled(0, 8, blurred=True) is cache.scaled(0, 8)

    def test_scaled_is_memoized(self):
        cache = ThumbnailCache.build(make_loaded(2), base_size=10)
        a = cache.scaled(0, 12)
        assert a.size == (12, 12)
        assert cache.scaled(0, 12) is a
        assert cache.scaled(0, 12, blurred=True) is not a

    def test_drawable_is_raster(self):
        cache = ThumbnailCache.build(make_loaded(1), base_size=10)
        d = cache.drawable(0, 0)
        assert d.kind is DrawableKind.RASTER
        assert d.payload.size == (1, 1)

    def test_clear(self):
        cache = ThumbnailCache.build(make_loaded(2), base_size=10)
        cache.scaled(0, 5)
        cache.clear()
        assert len(cache) == 0


class TestDrawable:
    def test_paste_clipped_off_surface(self):
        surface = Image.new("RGBA", (10, 10), (0, 0, 0, 255))
        tile = Image.new("RGBA", (6, 6), (255, 255, 255, 255))
        paste_clipped(surface, tile, -3, -3)
        assert surface.getpixel((0, 0)) == (255, 255, 255, 255)
        assert surface.getpixel((3, 3)) == (0, 0, 0, 255)
        paste_clipped(surface, tile, 50, 50)   # fully outside: no-op

    def test_circle_mask(self):
        m = circle_mask(21)
        assert m.getpixel((10, 10)) == 255
        assert m.getpixel((0, 0)) == 0

    def test_with_opacity(self):
        tile = Image.new("RGBA", (2, 2), (10, 20, 30, 200))
        half = with_opacity(tile, 0.5)
        assert half.getpixel((0, 0))[3] == 100
        assert with_opacity(tile, 1.0) is tile

    def test_source_cover_crop(self):
        d = Drawable.source(make_image((200, 100, 50), size=(80, 40)))
        out = d.render(16)
        assert out.size == (16, 16)
        assert out.mode == "RGBA"

    def test_draw_centered(self):
        surface = Image.new("RGBA", (40, 40), (0, 0, 0, 255))
        Drawable.raster(Image.new("RGBA", (10, 10), (255, 0, 0, 255))).draw(
            surface, (20, 20), 10)
        assert surface.getpixel((20, 20)) == (255, 0, 0, 255)
        assert surface.getpixel((5, 5)) == (0, 0, 0, 255)

    def test_draw_circular_clips_corners(self):
        surface = Image.new("RGBA", (40, 40), (0, 0, 0, 255))
        Drawable.source(Image.new("RGB", (30, 30), (0, 255, 0))).draw(
            surface, (20, 20), 20, circular=True)
        assert surface.getpixel((20, 20)) == (0, 255, 0, 255)
        assert surface.getpixel((11, 11)) == (0, 0, 0, 255)

    def test_zero_opacity_draws_nothing(self):
        surface = Image.new("RGBA", (20, 20), (0, 0, 0, 255))
        Drawable.raster(Image.new("RGBA", (4, 4), (255, 255, 255, 255))).draw(
            surface, (10, 10), 4, opacity=0.0)
        assert surface.getcolors(1) == [(400, (0, 0, 0, 255))]

    def test_rotation_expands(self):
        surface = Image.new("RGBA", (40, 40), (0, 0, 0, 255))
        Drawable.raster(Image.new("RGBA", (10, 10), (255, 255, 255, 255))).draw(
            surface, (20, 20), 10, rotation=math.pi / 4)
        # A 45 degree square reaches further along the axes than half its edge.
        assert surface.getpixel((25, 20))[0] > 0
