"""
Parallel source-image fetching.

Every reference is fetched concurrently on a thread pool (fire all, await
all).  ``http://`` and ``https://`` references are downloaded with httpx;
anything else is treated as a local path.  An image that cannot be fetched
or decoded is logged and left out; the survivors keep their position in
the supplied order, which the VIP dot rule depends on.
"""

from __future__ import annotations

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Sequence

import httpx
from PIL import Image, ImageOps

from mosaicwall.exceptions import ImageLoadError
from mosaicwall.types import LoadedImage, SourceImage

logger = logging.getLogger(__name__)

_URL_SCHEMES = ("http://", "https://")


def decode_image(data: bytes, reference: str) -> Image.Image:
    """Decode *data*, apply EXIF orientation and return an RGBA image."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageLoadError(f"Cannot decode {reference}: {exc}", reference) from exc
    img = ImageOps.exif_transpose(img)
    if img.width == 0 or img.height == 0:
        raise ImageLoadError(f"Image {reference} has no area", reference)
    return img.convert("RGBA")


class ImageLoader:
    """Fetches SourceImages into LoadedImages.

    Use as a context manager, or call ``close`` to release the HTTP client.
    """

    def __init__(self, max_workers: int = 8, timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None) -> None:
        self.max_workers = max(1, max_workers)
        self._client = httpx.Client(timeout=timeout, follow_redirects=True,
                                    transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ImageLoader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def read_bytes(self, reference: str) -> bytes:
        if reference.startswith(_URL_SCHEMES):
            try:
                response = self._client.get(reference)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise ImageLoadError(f"Cannot download {reference}: {exc}", reference) from exc
            return response.content
        try:
            return Path(reference).expanduser().read_bytes()
        except OSError as exc:
            raise ImageLoadError(f"Cannot read {reference}: {exc}", reference) from exc

    def fetch(self, source: SourceImage) -> Image.Image:
        return decode_image(self.read_bytes(source.reference), source.reference)

    def _fetch_or_none(self, source: SourceImage) -> Image.Image | None:
        try:
            return self.fetch(source)
        except ImageLoadError as exc:
            logger.warning("Skipping image: %s", exc)
            return None

    def load_all(self, sources: Sequence[SourceImage]) -> list[LoadedImage]:
        """Fetch all *sources* in parallel; failures are excluded."""
        if not sources:
            return []
        workers = min(self.max_workers, len(sources))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            images = list(pool.map(self._fetch_or_none, sources))

        loaded = [
            LoadedImage(source=source, image=image, order=order)
            for order, (source, image) in enumerate(zip(sources, images))
            if image is not None
        ]
        skipped = len(sources) - len(loaded)
        if skipped:
            logger.warning("%d of %d images could not be loaded", skipped, len(sources))
        logger.info("Loaded %d images (%d VIP)", len(loaded),
                    sum(1 for img in loaded if img.is_vip))
        return loaded


def load_images(sources: Sequence[SourceImage], max_workers: int = 8,
                timeout: float = 10.0) -> list[LoadedImage]:
    """Convenience wrapper around a short-lived ``ImageLoader``."""
    with ImageLoader(max_workers=max_workers, timeout=timeout) as loader:
        return loader.load_all(sources)
