"""
mosaicwall -- Logotype photo mosaic with a staged reveal.

Lays photo tiles inside a glyph-shaped mask, animates them in letter by
letter, and exports the settled composition.
"""

__version__ = "0.1.0"

from mosaicwall.config import MosaicConfig, load_config
from mosaicwall.engine import MosaicEngine
from mosaicwall.scheduler import AsyncioScheduler, VirtualScheduler
from mosaicwall.types import (
    GenerationStatus,
    HoverEvent,
    LoadedImage,
    Phase,
    SourceImage,
    SpotlightEvent,
    StatusEvent,
    TileGroup,
    TilePlacement,
)

__all__ = [
    "AsyncioScheduler",
    "GenerationStatus",
    "HoverEvent",
    "LoadedImage",
    "MosaicConfig",
    "MosaicEngine",
    "Phase",
    "SourceImage",
    "SpotlightEvent",
    "StatusEvent",
    "TileGroup",
    "TilePlacement",
    "VirtualScheduler",
    "load_config",
]
