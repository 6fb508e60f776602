"""Command-line entry point.

Subcommands:
    palette IMAGE                       print representative colors
    scan PROJECT --color R,G,B ...      add points where any color matches
    grow PROJECT --seed X,Y             flood-fill from a seed pixel
    export PROJECT --format F --output  write labeled points

``scan`` and ``grow`` need a calibrated project (three location points
with origin, X-axis and Y-axis roles) and save it back atomically.

Usage:
    pointmapper palette plot.png --max-colors 6
    pointmapper scan session.yaml --color 255,0,0 --color #0000FF --density 7
    pointmapper grow session.yaml --seed 120,48 --density 10
    pointmapper export session.yaml --format csv --output points.csv
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from pointmapper.core.export import ExportFormat
from pointmapper.imaging import PixelBuffer
from pointmapper.session import Session, SessionError, load_session, save_session
from pointmapper.utils import fs, validators
from pointmapper.utils.color import Color
from pointmapper.utils.logging_config import action_context, push_context, setup_logging

logger = logging.getLogger(__name__)


def parse_color(text: str) -> Color:
    try:
        return Color.parse(text)
    except (TypeError, ValueError) as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def parse_seed(text: str) -> Tuple[int, int]:
    parts = text.split(',')
    if len(parts) != 2:
        raise argparse.ArgumentTypeError(f"Expected 'X,Y', got {text!r}")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected integer 'X,Y', got {text!r}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pointmapper",
        description="Calibrate image pixels to real coordinates and annotate points",
    )
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML (pointmapper.v1)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("palette", help="Print representative colors of an image")
    p.add_argument("image", type=Path)
    p.add_argument("--max-colors", type=int, default=None)
    p.add_argument("--stride", type=int, default=None, help="Sampling grid step (px)")

    p = sub.add_parser("scan", help="Add recognition points on matching grid pixels")
    p.add_argument("project", type=Path)
    p.add_argument("--color", type=parse_color, action="append", required=True,
                   help="Target color 'R,G,B' or '#RRGGBB' (repeatable)")
    p.add_argument("--density", type=int, default=None, help="1 (sparse) .. 10 (dense)")

    p = sub.add_parser("grow", help="Add recognition points by region growth")
    p.add_argument("project", type=Path)
    p.add_argument("--seed", type=parse_seed, required=True, help="Seed pixel 'X,Y'")
    p.add_argument("--color", type=parse_color, default=None,
                   help="Target color (default: the seed pixel's color)")
    p.add_argument("--density", type=int, default=None, help="1 (sparse) .. 10 (dense)")

    p = sub.add_parser("export", help="Write recognition points")
    p.add_argument("project", type=Path)
    p.add_argument("--format", dest="fmt", choices=[f.key for f in ExportFormat], default="json")
    p.add_argument("--output", type=Path, default=None,
                   help="Output file (default: the format's file name)")

    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_palette(args: argparse.Namespace, settings: validators.SettingsV1) -> int:
    session = Session(settings, buffer=PixelBuffer.from_file(args.image))
    for color in session.extract_palette(args.max_colors, args.stride):
        print(f"{color.to_hex()}  {color}")
    return 0


def cmd_scan(args: argparse.Namespace, settings: validators.SettingsV1) -> int:
    session = load_session(args.project, settings)
    result = session.apply_colors(args.color, args.density)
    if result is None:
        logger.error("Project %s is not calibrated", args.project)
        return 1

    save_session(args.project, session)
    suffix = " (truncated at cap)" if result.truncated else ""
    print(f"Added {len(result)} points{suffix}")
    return 0


def cmd_grow(args: argparse.Namespace, settings: validators.SettingsV1) -> int:
    session = load_session(args.project, settings)
    result = session.grow_region(args.seed, args.color, args.density)
    if result is None:
        logger.error("Project %s is not calibrated", args.project)
        return 1

    save_session(args.project, session)
    suffix = " (truncated at cap)" if result.truncated else ""
    print(f"Added {len(result)} points{suffix}")
    return 0


def cmd_export(args: argparse.Namespace, settings: validators.SettingsV1) -> int:
    session = load_session(args.project, settings, load_image=False)
    fmt = ExportFormat.from_key(args.fmt)
    output = args.output or Path(fmt.filename)

    if not session.calibrated:
        logger.warning("Project %s is not calibrated; real coordinates are (0, 0)", args.project)
    fs.atomic_write_text(output, session.export(fmt))
    print(f"Wrote {len(session.store.recognition_points)} points to {output} ({fmt.mime_type})")
    return 0


COMMANDS = {
    "palette": cmd_palette,
    "scan": cmd_scan,
    "grow": cmd_grow,
    "export": cmd_export,
}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint; returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        settings = validators.load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log = settings.logging
    setup_logging(
        log_level="DEBUG" if args.verbose else log.log_level,
        log_file=log.log_file,
        json=log.json_format,
        color=log.color,
        quiet_libs=["PIL"],
    )
    push_context(app="cli")

    try:
        with action_context(command=args.command):
            return COMMANDS[args.command](args, settings)
    except (SessionError, ValueError, FileNotFoundError, RuntimeError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
