"""Main CLI entry point for mosaicwall."""

from __future__ import annotations

import argparse
import logging
import sys

from .render_cli import build_render_parser


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="mosaicwall",
        description="Logotype photo mosaic with a staged reveal",
    )
    parser.add_argument("--version", action="version", version="mosaicwall 0.1.0")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="More log output (-v info, -vv debug)")
    subparsers = parser.add_subparsers(dest="command")
    build_render_parser(subparsers)
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.command is None:
        parser.print_help()
        return 0
    return args.func(args)


def cli_entry() -> None:
    sys.exit(main())
