"""
CLI command for rendering a mosaic from a set of photos.

Usage:
    mosaicwall render photos/*.jpg --vip guest.jpg -o mosaic.png
    mosaicwall render photos/*.jpg --size 1280x720 --seed 7 --animation reveal.gif
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from ..config import LayoutStrategy, MosaicConfig, load_config
from ..engine import MosaicEngine
from ..exceptions import MosaicWallError
from ..export import FrameRecorder, assemble_animation
from ..scheduler import VirtualScheduler
from ..types import GenerationStatus, SourceImage, StatusEvent


_STRATEGY_MAP = {
    "scatter": LayoutStrategy.SCATTER,
    "grid": LayoutStrategy.GRID,
}


def parse_size(text: str) -> tuple[int, int]:
    """``"1920x1080"`` -> ``(1920, 1080)``."""
    try:
        w, h = text.lower().split("x")
        return int(w), int(h)
    except ValueError:
        raise argparse.ArgumentTypeError(f"size must look like 1920x1080, got {text!r}") from None


def _format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def build_config(args: argparse.Namespace) -> MosaicConfig:
    config = load_config(args.config) if args.config else MosaicConfig()
    if args.seed is not None:
        config = replace(config, seed=args.seed)
    layout = config.layout
    if args.strategy:
        layout = replace(layout, strategy=_STRATEGY_MAP[args.strategy])
    if args.tiles is not None:
        layout = replace(layout, target_count=args.tiles)
    style = config.style
    if args.no_title:
        style = replace(style, show_title=False)
    return replace(config, layout=layout, style=style)


def cmd_render(args: argparse.Namespace) -> int:
    """Main handler for ``mosaicwall render``."""
    try:
        config = build_config(args)
    except MosaicWallError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    sources = [SourceImage(ref) for ref in args.images]
    sources += [SourceImage(ref, is_vip=True) for ref in args.vip]
    if not sources:
        print("Error: no images given.", file=sys.stderr)
        return 1

    interval = config.timing.frame_interval_ms
    scheduler = VirtualScheduler(frame_interval_ms=interval)
    recorder = None
    if args.animation:
        every = max(1, round((1000.0 / args.fps) / interval)) if args.fps > 0 else 1
        recorder = FrameRecorder(every=every, scale=args.animation_scale)

    engine = MosaicEngine(scheduler, config, size=args.size, on_frame=recorder)
    statuses: list[StatusEvent] = []
    engine.subscribe(lambda e: statuses.append(e) if isinstance(e, StatusEvent) else None)

    print(f"Loading {len(sources)} images ...")
    try:
        gen = engine.load_and_generate(sources)
    except MosaicWallError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if gen is None:
        print("Error: no usable images.", file=sys.stderr)
        return 1

    layout = gen.layout
    print(f"Placed {len(layout.tiles)}/{layout.target_count} tiles "
          f"(fill {layout.fill_ratio:.0%}), animating {gen.timeline.total_duration / 1000:.1f}s ...")
    limit = gen.timeline.total_duration + 10 * interval
    while engine.status is GenerationStatus.RUNNING and scheduler.now() <= limit:
        scheduler.advance(interval)
    if engine.status is not GenerationStatus.COMPLETE:
        detail = statuses[-1].detail if statuses else ""
        print(f"Error: reveal did not complete ({engine.status.value}) {detail}", file=sys.stderr)
        engine.teardown()
        return 1

    try:
        output = engine.save(args.output)
        print(f"Done! {output} ({_format_size(output.stat().st_size)})")
        if recorder is not None:
            anim = assemble_animation(recorder.frames(last_delay_ms=2000), Path(args.animation))
            print(f"Animation: {len(recorder)} frames -> {anim} "
                  f"({_format_size(anim.stat().st_size)})")
    except MosaicWallError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        engine.teardown()
    return 0


def build_render_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the ``render`` subcommand and its arguments."""
    p = subparsers.add_parser(
        "render",
        help="Render photos into a logotype mosaic",
        description="Lay photos out inside the logotype, run the reveal and save the settled PNG.",
    )
    p.add_argument(
        "images", nargs="*", default=[],
        help="Image paths or http(s) URLs, in upload order",
    )
    p.add_argument(
        "--vip", action="append", default=[], metavar="IMAGE",
        help="VIP image; the last one given fills the dot (repeatable)",
    )
    p.add_argument(
        "--size", type=parse_size, default=(1920, 1080),
        help="Output size WIDTHxHEIGHT (default: 1920x1080)",
    )
    p.add_argument(
        "--seed", type=int, default=None,
        help="Random seed for a reproducible layout",
    )
    p.add_argument(
        "--config", default=None,
        help="YAML configuration file",
    )
    p.add_argument(
        "--strategy", choices=["scatter", "grid"], default=None,
        help="Tile layout strategy (default: from config, scatter)",
    )
    p.add_argument(
        "--tiles", type=int, default=None,
        help="Target number of tiles (default: from config, 5000)",
    )
    p.add_argument(
        "--no-title", action="store_true",
        help="Do not draw the title text",
    )
    p.add_argument(
        "-o", "--output", default="mosaic.png",
        help="Output PNG path (default: mosaic.png)",
    )
    p.add_argument(
        "--animation", default=None,
        help="Also write the reveal as .gif or .png (APNG)",
    )
    p.add_argument(
        "--fps", type=int, default=20,
        help="Frames per second of the recorded animation (default: 20)",
    )
    p.add_argument(
        "--animation-scale", type=float, default=0.5,
        help="Scale factor for animation frames (default: 0.5)",
    )
    p.set_defaults(func=cmd_render)
