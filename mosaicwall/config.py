"""
Runtime configuration and font discovery.

Every tunable of the engine lives in one of the section dataclasses below,
grouped under ``MosaicConfig``.  Defaults reproduce the event display; a
YAML file can override any subset::

    layout:
      target_count: 3000
      packing_factor: 0.75
    timing:
      group_ms: 1200
    seed: 7

This module also locates a heavy sans-serif TrueType face for the logotype
and exposes it to the mask builder and the title renderer.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, fields, replace
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from PIL import ImageFont

from mosaicwall.exceptions import ConfigError

logger = logging.getLogger(__name__)


class LayoutStrategy(enum.Enum):
    """How ordinary tiles are distributed inside the mask."""
    SCATTER = "scatter"     # Bounded rejection sampling (organic).
    GRID = "grid"           # One tile per mask-covered grid cell.


@dataclass(frozen=True)
class MaskConfig:
    """Glyph mask geometry."""
    text: str = "Jıo"           # Three glyphs; the middle one is dotless.
    fill_width: float = 0.85
    fill_height: float = 0.85
    tracking: float = 0.05           # Negative gap, fraction of font size
    baseline_fraction: float = 0.7   # Vertical middle of the glyphs
    soft_edges: bool = True
    edge_blur_fraction: float = 0.01
    dot_glyph_index: int = 1
    dot_offset_fraction: float = 0.38
    dot_radius_fraction: float = 0.1
    font_path: str | None = None


@dataclass(frozen=True)
class LayoutConfig:
    """Tile placement."""
    strategy: LayoutStrategy = LayoutStrategy.SCATTER
    target_count: int = 5000
    max_attempts: int = 100_000
    alpha_threshold: int = 128
    packing_factor: float = 0.7
    size_jitter_min: float = 0.85
    size_jitter_max: float = 1.25
    base_size_divisor: float = 14.0  # base tile edge = font size / divisor
    max_rotation_deg: float = 0.0
    grid_cell: int = 12


@dataclass(frozen=True)
class TimingConfig:
    """Reveal timeline, all durations in milliseconds."""
    intro_ms: float = 300.0
    group_ms: float = 1500.0
    pause_ms: float = 600.0
    dot_ms: float = 1200.0
    trailing_ms: float = 1000.0
    jitter_ms: float = 200.0         # Letter tiles get uniform(-j, +j)
    scatter_min: float = 300.0
    scatter_max: float = 500.0
    drop_height: float = 600.0
    title_fade_ms: float = 800.0
    frame_interval_ms: float = 1000.0 / 60.0


@dataclass(frozen=True)
class InteractionConfig:
    """Hover preview and auto-spotlight."""
    spotlight_fraction: float = 0.35
    debounce_ms: float = 2000.0
    auto_period_min_ms: float = 4000.0
    auto_period_max_ms: float = 6000.0
    expand_delay_ms: float = 50.0
    hold_ms: float = 1200.0
    collapse_ms: float = 600.0
    hover_offset: float = 15.0
    hover_preview_size: float = 200.0


@dataclass(frozen=True)
class StyleConfig:
    """Colours, title and thumbnail rendering."""
    background: str = "#041d40"
    show_title: bool = True
    title: str = "HAMNE BANAYA"
    title_color: str = "white"
    title_size_fraction: float = 0.15   # Of the logotype font size
    title_y_fraction: float = 0.05      # Of the output height
    title_slide_px: float = 40.0
    thumbnail_scale: float = 3.0
    blur_in_flight: bool = True
    thumbnail_blur_radius: float = 2.0


@dataclass(frozen=True)
class MosaicConfig:
    """Top-level configuration for one engine."""
    mask: MaskConfig = field(default_factory=MaskConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    interaction: InteractionConfig = field(default_factory=InteractionConfig)
    style: StyleConfig = field(default_factory=StyleConfig)
    seed: int | None = None


_SECTIONS = {
    "mask": MaskConfig,
    "layout": LayoutConfig,
    "timing": TimingConfig,
    "interaction": InteractionConfig,
    "style": StyleConfig,
}


def _build_section(name: str, cls: type, values: Any) -> Any:
    if not isinstance(values, dict):
        raise ConfigError(f"Section {name!r} must be a mapping, got {type(values).__name__}.")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown keys in section {name!r}: {', '.join(unknown)}")
    values = dict(values)
    if cls is LayoutConfig and "strategy" in values:
        try:
            values["strategy"] = LayoutStrategy(values["strategy"])
        except ValueError:
            raise ConfigError(f"Unknown layout strategy {values['strategy']!r}.") from None
    return cls(**values)


def config_from_dict(data: dict[str, Any]) -> MosaicConfig:
    """Build a MosaicConfig from a plain mapping (as parsed from YAML)."""
    config = MosaicConfig()
    unknown = sorted(set(data) - set(_SECTIONS) - {"seed"})
    if unknown:
        raise ConfigError(f"Unknown configuration sections: {', '.join(unknown)}")
    overrides: dict[str, Any] = {}
    for name, cls in _SECTIONS.items():
        if name in data:
            overrides[name] = _build_section(name, cls, data[name] or {})
    if "seed" in data:
        seed = data["seed"]
        if seed is not None and not isinstance(seed, int):
            raise ConfigError(f"seed must be an integer, got {seed!r}.")
        overrides["seed"] = seed
    config = replace(config, **overrides)
    validate_config(config)
    return config


def load_config(path: Path | str) -> MosaicConfig:
    """Read a YAML configuration file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping.")
    return config_from_dict(data)


def validate_config(config: MosaicConfig) -> None:
    """Reject values the engine cannot honour."""
    if len(config.mask.text) != 3:
        raise ConfigError(
            f"Logotype must have exactly three glyphs, got {config.mask.text!r}."
        )
    if not 0 <= config.mask.dot_glyph_index < len(config.mask.text):
        raise ConfigError("dot_glyph_index is outside the logotype.")
    if not 0 < config.layout.packing_factor < 1:
        raise ConfigError("packing_factor must lie strictly between 0 and 1.")
    if config.layout.target_count < 0 or config.layout.max_attempts < 0:
        raise ConfigError("target_count and max_attempts must be non-negative.")
    if not 0 <= config.layout.alpha_threshold <= 255:
        raise ConfigError("alpha_threshold must be within 0..255.")
    if config.timing.scatter_min > config.timing.scatter_max:
        raise ConfigError("scatter_min exceeds scatter_max.")
    if config.interaction.auto_period_min_ms > config.interaction.auto_period_max_ms:
        raise ConfigError("auto_period_min_ms exceeds auto_period_max_ms.")
    if config.timing.frame_interval_ms <= 0:
        raise ConfigError("frame_interval_ms must be positive.")


# ---------------------------------------------------------------------------
# Font discovery
# ---------------------------------------------------------------------------

# Heavy sans-serif faces, tried in order.  Pillow searches the platform font
# directories for bare file names.
FONT_CANDIDATES = (
    "Arial Black.ttf",
    "ariblk.ttf",
    "Arial Bold.ttf",
    "arialbd.ttf",
    "DejaVuSans-Bold.ttf",
    "LiberationSans-Bold.ttf",
    "FreeSansBold.ttf",
    "Helvetica-Bold.ttf",
)


@lru_cache(maxsize=1)
def _discover_font_file() -> str | None:
    for name in FONT_CANDIDATES:
        try:
            ImageFont.truetype(name, 12)
        except OSError:
            continue
        return name
    return None


def resolve_font(size: float, font_path: str | None = None) -> ImageFont.FreeTypeFont:
    """Return the logotype face at *size* pixels.

    An explicit *font_path* must exist.  Otherwise the first available
    candidate is used, falling back to Pillow's bundled scalable font.
    """
    size = max(1, int(round(size)))
    if font_path is not None:
        try:
            return ImageFont.truetype(font_path, size)
        except OSError as exc:
            raise ConfigError(f"Font {font_path!r} could not be loaded: {exc}") from exc
    name = _discover_font_file()
    if name is not None:
        return ImageFont.truetype(name, size)
    logger.warning("No heavy sans-serif font found; using Pillow's default font.")
    return ImageFont.load_default(size=size)
