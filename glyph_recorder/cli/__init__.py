"""CLI entrypoint for Glyph Recorder."""

from __future__ import annotations

import argparse
import logging
import sys
import time

from glyph_recorder.cli.helpers import (
    _build_catalog,
    _build_classifier,
    _build_detector,
    _configure_logging,
    _format_points,
)
from glyph_recorder.cli.options import LogFormat, build_arg_parser
from glyph_recorder.config.loader import Config, load_config, save_calibration
from glyph_recorder.core.loop import AutoCaptureLoop
from glyph_recorder.models.capture import CapturedGlyph
from glyph_recorder.vision.capture import (
    DirectoryReplaySource,
    FrameCapture,
    ImageFileSource,
    load_image,
    save_image,
)
from glyph_recorder.vision.detection import CircleParams
from glyph_recorder.vision.render import default_layout, render_glyph
from glyph_recorder.vision.topology import ANCHOR_COUNT

logger = logging.getLogger(__name__)


def calibrate_command(args: argparse.Namespace, config: Config) -> int:
    """Execute the `calibrate` command."""
    detector = _build_detector(config)
    image = load_image(args.image)
    params = CircleParams(**config.detection.circles.model_dump())
    points = detector.detect_anchor_points(image, params)

    for line in _format_points(points):
        print(line)

    if len(points) != ANCHOR_COUNT:
        logger.error(
            "[CALIBRATE] Found %d anchor points, expected %d; adjust detection.circles",
            len(points),
            ANCHOR_COUNT,
        )
        return 1

    if args.write:
        save_calibration(args.write, points)
    return 0


def classify_command(args: argparse.Namespace, config: Config) -> int:
    """Execute the `classify` command."""
    catalog = _build_catalog(config)
    capture = FrameCapture(ImageFileSource(args.image))
    with _build_classifier(config, catalog) as classifier:
        frame = capture.capture()
        result = classifier.classify(frame)
    if result is None:
        logger.error("[CLASSIFY] Could not read the indicator in %s", args.image)
        return 1
    print(result.model_dump_json())
    return 0


def replay_command(args: argparse.Namespace, config: Config) -> int:
    """Execute the `replay` command."""
    catalog = _build_catalog(config)
    source = DirectoryReplaySource(args.directory)
    capture = FrameCapture(source, buffer_size=config.capture.buffer_size)
    classifier = _build_classifier(config, catalog)
    loop = AutoCaptureLoop(capture, classifier, catalog, config=config.capture.to_loop_config())

    def _on_glyph(glyph: CapturedGlyph, index: int) -> None:
        logger.info("[CAPTURE] #%d %s (slot %d)", index, glyph.name, glyph.slot_index)

    loop.set_callbacks(
        on_glyph_captured=_on_glyph,
        on_long_idle_timeout=lambda: logger.warning("[CAPTURE] No glyph for a long time"),
    )

    deadline = time.monotonic() + float(args.max_seconds)
    try:
        loop.start()
        while not loop.wait(timeout=0.1):
            if source.exhausted or time.monotonic() >= deadline:
                break
        if loop.running and source.exhausted:
            # In-flight frames may still resolve the session.
            remaining = max(0.0, deadline - time.monotonic())
            loop.wait(timeout=min(config.capture.classify_timeout, remaining))
        loop.stop()
    finally:
        classifier.close()
        capture.close()

    session = loop.session
    stats = loop.metrics.get_metrics()
    logger.info(
        "[REPLAY] %d frames, %d glyphs, stop reason: %s",
        stats.frames_captured,
        stats.glyphs_accepted,
        session.stop_reason,
    )
    if session.resolved is None:
        logger.warning("[REPLAY] No sequence resolved; captured: %s", session.captured_names)
        return 1
    print(" ".join(session.resolved))
    return 0


def render_command(args: argparse.Namespace, config: Config) -> int:
    """Execute the `render` command."""
    catalog = _build_catalog(config)
    glyph = catalog.glyphs.get(args.glyph)
    if glyph is None:
        logger.error("[RENDER] Unknown glyph: %s", args.glyph)
        return 1

    if config.calibration.is_complete:
        anchors = [(int(x), int(y)) for x, y in config.calibration.points]
    else:
        anchors = default_layout(args.size)
    image = render_glyph(
        glyph, anchors, hexagon_count=args.hexagons, slot_index=args.slot, size=args.size
    )
    save_image(args.output, image)
    logger.info("[RENDER] Wrote %s to %s", glyph.name, args.output)
    return 0


COMMANDS = {
    "calibrate": calibrate_command,
    "classify": classify_command,
    "replay": replay_command,
    "render": render_command,
}


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint function."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    # Bootstrap logger before config loading.
    _configure_logging(level=args.log_level or "INFO", log_format=args.log_format)

    try:
        config = load_config(args.config)
        log_format = args.log_format
        if log_format == LogFormat.READABLE.value and config.logging.format == "json":
            log_format = LogFormat.JSON.value
        _configure_logging(level=args.log_level or config.logging.level, log_format=log_format)
        return COMMANDS[args.command](args, config)
    except Exception as exc:
        logger.error("[BOOT] CLI execution failed: %s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
