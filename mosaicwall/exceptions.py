"""
Custom exception hierarchy for mosaicwall.

All mosaicwall exceptions inherit from MosaicWallError so callers can catch
the entire family with a single except clause.
"""

from __future__ import annotations


class MosaicWallError(Exception):
    """Base exception for all mosaicwall errors."""


class ConfigError(MosaicWallError):
    """Raised when a configuration file or value is invalid."""


class ImageLoadError(MosaicWallError):
    """Raised when a single source image cannot be fetched or decoded."""

    def __init__(self, message: str, reference: str = "") -> None:
        super().__init__(message)
        self.reference = reference


class MaskError(MosaicWallError):
    """Raised when the glyph mask cannot be built."""


class LayoutError(MosaicWallError):
    """Raised when tile layout is requested with unusable inputs."""


class ExportError(MosaicWallError):
    """Raised when an export is requested before the settle pass has run."""


class SchedulerClosedError(MosaicWallError):
    """Raised when work is scheduled on a callback group that was closed."""
