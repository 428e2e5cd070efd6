"""Shared helper utilities for CLI commands."""

from __future__ import annotations

import json
import logging

from glyph_recorder.cli.options import LogFormat
from glyph_recorder.config.loader import Config
from glyph_recorder.core.classifier import FrameClassifier
from glyph_recorder.models.glyphs import AnchorPoint
from glyph_recorder.recognition.catalog import GlyphCatalog, load_catalog
from glyph_recorder.recognition.glyphs import GlyphMatcher
from glyph_recorder.vision.detection import GeometricDetector

logger = logging.getLogger(__name__)


class _JSONLogFormatter(logging.Formatter):
    """Compact JSON formatter for machine-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=True)


def _configure_logging(
    level: str = "INFO",
    log_format: str = LogFormat.READABLE.value,
) -> None:
    """Configure process-wide logging with one stream handler."""
    resolved_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers = [h for h in root.handlers if not getattr(h, "_glyphrec_handler", False)]

    handler = logging.StreamHandler()
    handler._glyphrec_handler = True  # type: ignore[attr-defined]
    if log_format == LogFormat.JSON.value:
        formatter: logging.Formatter = _JSONLogFormatter(datefmt="%Y-%m-%dT%H:%M:%S")
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(resolved_level)

    # PIL logs every plugin it probes at DEBUG.
    logging.getLogger("PIL").setLevel(logging.WARNING)


def _build_detector(config: Config) -> GeometricDetector:
    return GeometricDetector(config.detection.to_detection_config())


def _build_catalog(config: Config) -> GlyphCatalog:
    return load_catalog(config.catalog.glyph_file, config.catalog.sequence_file)


def _build_classifier(config: Config, catalog: GlyphCatalog) -> FrameClassifier:
    """Classifier for the configured calibration.

    Raises:
        ConfigurationError: If the calibration is incomplete.
    """
    return FrameClassifier(
        detector=_build_detector(config),
        glyph_matcher=GlyphMatcher(catalog, threshold=config.matching.glyph_threshold),
        anchors=config.calibration.points,
        timeout=config.capture.classify_timeout,
    )


def _format_points(points: list[tuple[int, int]]) -> list[str]:
    """One ``id: (x, y)`` line per point, labelled in reading order."""
    lines = []
    for i, (x, y) in enumerate(points):
        label = AnchorPoint.from_index(i).value if i < len(AnchorPoint) else "?"
        lines.append(f"{label}: ({x}, {y})")
    return lines
