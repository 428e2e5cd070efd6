"""CLI option models and parser helpers."""

from __future__ import annotations

import argparse
from enum import StrEnum


class LogFormat(StrEnum):
    """CLI log formatter mode."""

    READABLE = "readable"
    JSON = "json"


def parse_size(value: str) -> tuple[int, int]:
    """Parse ``WIDTHxHEIGHT`` into a (width, height) tuple."""
    try:
        width, height = (int(part) for part in value.lower().split("x"))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {value!r}") from e
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError(f"Size must be positive: {value!r}")
    return width, height


def build_arg_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="glyph-recorder",
        description="Recognize glyph sequences drawn on a puzzle panel",
    )
    parser.add_argument("--config", type=str, default=None, help="YAML config file")
    parser.add_argument(
        "--log-format",
        type=str,
        default=LogFormat.READABLE.value,
        choices=[fmt.value for fmt in LogFormat],
        help="Terminal log format",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level override",
    )
    subparsers = parser.add_subparsers(dest="command")

    calibrate_parser = subparsers.add_parser(
        "calibrate", help="Detect the 11 anchor points on a screenshot"
    )
    calibrate_parser.add_argument("image", type=str, help="Screenshot showing the empty panel")
    calibrate_parser.add_argument(
        "--write", type=str, default=None, metavar="CONFIG", help="Store the points in a config"
    )

    classify_parser = subparsers.add_parser("classify", help="Classify a single screenshot")
    classify_parser.add_argument("image", type=str, help="Screenshot to classify")

    replay_parser = subparsers.add_parser(
        "replay", help="Run auto capture over a directory of recorded frames"
    )
    replay_parser.add_argument("directory", type=str, help="Directory of frames, played in name order")
    replay_parser.add_argument(
        "--max-seconds", type=float, default=60.0, help="Give up after N seconds"
    )

    render_parser = subparsers.add_parser("render", help="Draw a glyph onto a synthetic panel")
    render_parser.add_argument("glyph", type=str, help="Glyph name")
    render_parser.add_argument("output", type=str, help="Output image file")
    render_parser.add_argument(
        "--size", type=parse_size, default=(400, 460), help="Image size as WIDTHxHEIGHT"
    )
    render_parser.add_argument("--hexagons", type=int, default=0, help="Indicator hexagons to draw")
    render_parser.add_argument("--slot", type=int, default=-1, help="Highlighted hexagon")

    return parser
