"""
Shared fixtures for the mosaicwall test suite.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest
from PIL import Image

from mosaicwall.config import LayoutConfig, MaskConfig, MosaicConfig, StyleConfig, TimingConfig
from mosaicwall.mask import build_glyph_mask
from mosaicwall.types import LoadedImage, SourceImage

# Small surfaces and short timelines keep the suite fast.
SURFACE = (400, 240)

FAST_TIMING = TimingConfig(
    intro_ms=100.0,
    group_ms=200.0,
    pause_ms=100.0,
    dot_ms=200.0,
    trailing_ms=100.0,
    jitter_ms=50.0,
    title_fade_ms=100.0,
    frame_interval_ms=50.0,
)

_PALETTE = [
    (230, 57, 70), (241, 250, 238), (168, 218, 220), (69, 123, 157),
    (29, 53, 87), (255, 183, 3), (251, 133, 0), (2, 48, 71),
]


def make_image(color: tuple[int, int, int], size: tuple[int, int] = (64, 48)) -> Image.Image:
    """A solid image with a darker left half so crops are distinguishable."""
    img = Image.new("RGB", size, color)
    dark = tuple(c // 2 for c in color)
    img.paste(dark, (0, 0, size[0] // 2, size[1]))
    return img


def make_loaded(n: int = 6, vip: tuple[int, ...] = ()) -> list[LoadedImage]:
    """*n* loaded images; indices in *vip* are flagged VIP."""
    return [
        LoadedImage(
            source=SourceImage(f"img-{i}.png", is_vip=i in vip),
            image=make_image(_PALETTE[i % len(_PALETTE)]),
            order=i,
        )
        for i in range(n)
    ]


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory(prefix="mosaicwall_test_") as d:
        yield Path(d)


@pytest.fixture(scope="session")
def mask():
    return build_glyph_mask(*SURFACE, MaskConfig())


@pytest.fixture
def loaded_images():
    return make_loaded(6)


@pytest.fixture
def small_layout_config():
    return LayoutConfig(target_count=250, max_attempts=20_000)


@pytest.fixture
def fast_config():
    return MosaicConfig(
        layout=LayoutConfig(target_count=150, max_attempts=10_000),
        timing=FAST_TIMING,
        style=StyleConfig(thumbnail_blur_radius=1.0),
        seed=42,
    )


@pytest.fixture
def image_files(tmp_dir):
    """Six small JPEGs on disk."""
    paths = []
    for i, color in enumerate(_PALETTE[:6]):
        path = tmp_dir / f"photo_{i}.jpg"
        make_image(color).save(str(path), format="JPEG")
        paths.append(path)
    return paths
