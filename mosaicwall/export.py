"""
Settled composition and output encoding.

The settle pass redraws every ordinary tile at its exact rest position from
the sharp thumbnails into an offscreen buffer, clips that buffer by the
glyph mask (alpha multiply), and composites it over the background and
title.  The VIP dot is drawn last, on top, from its full-resolution source.

Encoders turn the settled image into PNG bytes, base64 text or a data URL,
or a file with reproducibility metadata in PNG text chunks.  A
``FrameRecorder`` can also capture the reveal frame by frame, and
``assemble_animation`` writes the capture as an animated GIF or APNG.
"""

from __future__ import annotations

import base64
import enum
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence

import numpy as np
from PIL import Image, ImageChops
from PIL.PngImagePlugin import PngInfo

from mosaicwall.exceptions import ExportError

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "mosaic.png"
SOFTWARE = "mosaicwall"


# ---------------------------------------------------------------------------
# Settle pass
# ---------------------------------------------------------------------------

def compose_settled(renderer) -> Image.Image:
    """Final still of a generation pass, drawn from *renderer*'s resources."""
    mask = renderer.mask
    tiles = Image.new("RGBA", renderer.size, (0, 0, 0, 0))
    for placement in renderer.layout.tiles:
        edge = max(1, int(round(placement.size)))
        drawable = renderer.cache.drawable(placement.thumbnail_key, edge, blurred=False)
        drawable.draw(tiles, placement.center, placement.size,
                      rotation=placement.rotation)

    clipped = ImageChops.multiply(tiles.getchannel("A"), mask.image)
    tiles.putalpha(clipped)

    out = renderer.new_surface()
    renderer.draw_title(out)
    out.alpha_composite(tiles)
    dot = renderer.layout.dot
    renderer.draw_dot(out, dot, dot.center)
    return out


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------

def _png_info(metadata: Mapping[str, Any] | None) -> PngInfo | None:
    if not metadata:
        return None
    info = PngInfo()
    for key, value in metadata.items():
        if value is None:
            continue
        info.add_text(str(key), str(value))
    return info


def encode_png(image: Image.Image, metadata: Mapping[str, Any] | None = None) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG", pnginfo=_png_info(metadata))
    return buf.getvalue()


def encode_base64(image: Image.Image, metadata: Mapping[str, Any] | None = None) -> str:
    return base64.b64encode(encode_png(image, metadata)).decode("ascii")


def to_data_url(image: Image.Image) -> str:
    """``data:image/png;base64,...`` for embedding in a page."""
    return "data:image/png;base64," + encode_base64(image)


def save_png(image: Image.Image, path: Path | str | None = None,
             metadata: Mapping[str, Any] | None = None) -> Path:
    """Write *image* as PNG.  A directory *path* gets the default file name."""
    output = Path(path) if path is not None else Path(DEFAULT_FILENAME)
    if output.is_dir():
        output = output / DEFAULT_FILENAME
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        image.save(str(output), format="PNG", pnginfo=_png_info(metadata))
    except OSError as exc:
        raise ExportError(f"Cannot write {output}: {exc}") from exc
    logger.info("Wrote %s (%dx%d)", output, image.width, image.height)
    return output


def settled_metadata(title: str, placement_count: int,
                     seed: int | None = None) -> dict[str, str]:
    """PNG text chunks recorded with every export."""
    meta = {
        "Title": title,
        "Software": SOFTWARE,
        "Placements": str(placement_count),
    }
    if seed is not None:
        meta["Seed"] = str(seed)
    return meta


# ---------------------------------------------------------------------------
# Animated preview
# ---------------------------------------------------------------------------

class AnimationFormat(enum.Enum):
    GIF = "gif"
    APNG = "apng"

    @classmethod
    def from_path(cls, path: Path | str) -> AnimationFormat:
        suffix = Path(path).suffix.lower()
        if suffix == ".gif":
            return cls.GIF
        if suffix in (".png", ".apng"):
            return cls.APNG
        raise ExportError(f"Unsupported animation extension {suffix!r} (use .gif or .png).")


@dataclass
class RecordedFrame:
    image: Image.Image
    delay_ms: int


@dataclass
class FrameRecorder:
    """Frame hook that keeps a downscaled copy of every *every*-th frame.

    Pass an instance as ``on_frame`` to ``RevealAnimation``.
    """
    every: int = 1
    scale: float = 1.0
    timestamps: list[float] = field(default_factory=list)
    images: list[Image.Image] = field(default_factory=list)
    _seen: int = field(default=0, init=False, repr=False)

    def _prepare(self, image: Image.Image) -> Image.Image:
        frame = image.copy()
        if self.scale != 1.0:
            size = (max(1, int(frame.width * self.scale)),
                    max(1, int(frame.height * self.scale)))
            frame = frame.resize(size, Image.LANCZOS)
        return frame

    def __call__(self, timestamp: float, surface: Image.Image) -> None:
        index = self._seen
        self._seen += 1
        if index % max(1, self.every):
            return
        self.add(surface, timestamp)

    def add(self, image: Image.Image, timestamp: float) -> None:
        """Append a frame directly, e.g. the settled still."""
        self.timestamps.append(timestamp)
        self.images.append(self._prepare(image))

    def __len__(self) -> int:
        return len(self.images)

    def frames(self, last_delay_ms: int = 1000) -> list[RecordedFrame]:
        """Recorded images with display durations from the timestamp deltas."""
        out = []
        for i, image in enumerate(self.images):
            if i + 1 < len(self.timestamps):
                delay = int(round(self.timestamps[i + 1] - self.timestamps[i]))
            else:
                delay = last_delay_ms
            out.append(RecordedFrame(image=image, delay_ms=max(10, delay)))
        return out


def _rmse(img_a: Image.Image, img_b: Image.Image) -> float:
    """Root mean square error between two images, normalized to [0, 1]."""
    if img_a.size != img_b.size:
        return 1.0
    a = np.asarray(img_a.convert("RGBA"), dtype=np.float64)
    b = np.asarray(img_b.convert("RGBA"), dtype=np.float64)
    return float(np.sqrt(np.mean((a - b) ** 2)) / 255.0)


def merge_still_frames(frames: Sequence[RecordedFrame],
                       threshold: float = 0.002) -> list[RecordedFrame]:
    """Merge consecutive near-identical frames, summing their durations."""
    merged: list[RecordedFrame] = []
    for frame in frames:
        if merged and _rmse(merged[-1].image, frame.image) < threshold:
            merged[-1].delay_ms += frame.delay_ms
        else:
            merged.append(RecordedFrame(image=frame.image, delay_ms=frame.delay_ms))
    return merged


def assemble_animation(frames: Sequence[RecordedFrame], path: Path | str,
                       fmt: AnimationFormat | None = None, loop: int = 0,
                       deduplicate: bool = True) -> Path:
    """Write *frames* as an animated GIF or APNG."""
    if not frames:
        raise ExportError("No frames were recorded.")
    output = Path(path)
    fmt = fmt or AnimationFormat.from_path(output)
    if deduplicate:
        frames = merge_still_frames(frames)
    durations = [f.delay_ms for f in frames]
    output.parent.mkdir(parents=True, exist_ok=True)

    try:
        if fmt is AnimationFormat.GIF:
            images = [f.image.convert("RGB").quantize(colors=256,
                                                      dither=Image.Dither.FLOYDSTEINBERG)
                      for f in frames]
            images[0].save(
                str(output),
                format="GIF",
                save_all=True,
                append_images=images[1:],
                duration=durations,
                loop=loop,
                optimize=True,
                disposal=2,
            )
        else:
            images = [f.image.convert("RGBA") for f in frames]
            images[0].save(
                str(output),
                format="PNG",
                save_all=True,
                append_images=images[1:],
                duration=durations,
                loop=loop,
                default_image=False,
            )
    except OSError as exc:
        raise ExportError(f"Cannot write {output}: {exc}") from exc

    logger.info("Wrote %d-frame %s animation to %s", len(frames), fmt.value, output)
    return output
