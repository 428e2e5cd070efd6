"""Frame classification pipeline.

Turns one captured frame into a FrameClassification by running the two
independent readings in parallel:
- indicator reading: hexagon count and highlighted slot
- glyph reading: activated strokes -> canonical strokes -> glyph name

A glyph reading that fails or times out degrades to "no glyph". Without a
hexagon count the frame says nothing about the session, so a failed or
timed-out indicator reading discards the frame.

Example:
    >>> classifier = FrameClassifier(GeometricDetector(), GlyphMatcher(catalog), anchors)
    >>> result = classifier.classify(frame)
    >>> print(result.hexagon_count, result.glyph_name, result.slot_index)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any

from glyph_recorder.interfaces.errors import ConfigurationError
from glyph_recorder.interfaces.vision import Frame
from glyph_recorder.models.capture import FrameClassification
from glyph_recorder.recognition.glyphs import GlyphMatcher
from glyph_recorder.recognition.strokes import canonicalize
from glyph_recorder.vision.detection import GeometricDetector
from glyph_recorder.vision.topology import ANCHOR_COUNT

logger = logging.getLogger(__name__)

Point = tuple[int, int]


def validate_calibration(points: Sequence[Sequence[float]]) -> list[Point]:
    """Check and normalize calibrated anchor coordinates.

    Args:
        points: Anchor coordinates in reading order.

    Returns:
        The points as integer (x, y) tuples.

    Raises:
        ConfigurationError: If there are not exactly 11 two-value points.
    """
    if len(points) != ANCHOR_COUNT:
        raise ConfigurationError(
            f"Calibration needs {ANCHOR_COUNT} anchor points, got {len(points)}"
        )
    anchors = []
    for point in points:
        if len(point) != 2:
            raise ConfigurationError(f"Invalid anchor point: {point!r}")
        anchors.append((int(point[0]), int(point[1])))
    return anchors


class FrameClassifier:
    """Classifies frames into hexagon count, glyph name and slot index.

    Attributes:
        anchors: The calibrated anchor coordinates.
    """

    def __init__(
        self,
        detector: GeometricDetector,
        glyph_matcher: GlyphMatcher,
        anchors: Sequence[Sequence[float]],
        timeout: float = 5.0,
    ) -> None:
        """Initialize the classifier.

        Args:
            detector: Geometric detector shared by both readings.
            glyph_matcher: Matcher for canonical stroke sets.
            anchors: 11 calibrated anchor coordinates in reading order.
            timeout: Seconds to wait for both readings.

        Raises:
            ConfigurationError: If the calibration is incomplete.
        """
        self.anchors = validate_calibration(anchors)
        self._detector = detector
        self._glyph_matcher = glyph_matcher
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="classify")

        logger.debug(f"FrameClassifier initialized (timeout={timeout}s)")

    def read_glyph(self, image: Any) -> str | None:
        """Name of the glyph drawn on ``image``, or None."""
        strokes = canonicalize(self._detector.detect_activated_strokes(image, self.anchors))
        if not strokes:
            return None
        name = self._glyph_matcher.best(strokes)
        if name is None:
            logger.debug(f"No glyph matches strokes {sorted(str(s) for s in strokes)}")
        return name

    def classify(self, frame: Frame) -> FrameClassification | None:
        """Classify one frame.

        Args:
            frame: Captured frame; its timestamp is carried through.

        Returns:
            Classification of the frame, or None if the indicator could not
            be read. A failed glyph reading is reported as no glyph.
        """
        start_time = time.perf_counter()

        hexagon_count, slot_index = 0, -1
        glyph_name: str | None = None
        indicator_read = False

        futures: dict[Future[Any], str] = {
            self._executor.submit(self._detector.read_indicator, frame.image): "indicator",
            self._executor.submit(self.read_glyph, frame.image): "glyph",
        }

        try:
            for future in as_completed(futures, timeout=self._timeout):
                task_name = futures[future]
                try:
                    result = future.result()
                except Exception as e:
                    logger.warning(f"{task_name.capitalize()} reading failed: {e}")
                    continue
                if task_name == "indicator":
                    hexagon_count, slot_index = result
                    indicator_read = True
                else:
                    glyph_name = result
        except TimeoutError:
            logger.warning("Frame classification timed out")
            for future in futures:
                future.cancel()

        classify_ms = (time.perf_counter() - start_time) * 1000
        if not indicator_read:
            logger.warning(f"Discarding frame without indicator reading ({classify_ms:.1f}ms)")
            return None
        classification = FrameClassification(
            hexagon_count=hexagon_count,
            glyph_name=glyph_name,
            slot_index=slot_index,
            timestamp=frame.timestamp,
            classify_ms=classify_ms,
        )
        logger.debug(
            f"Classified frame: hexagons={hexagon_count}, glyph={glyph_name}, "
            f"slot={slot_index}, {classify_ms:.1f}ms"
        )
        return classification

    def close(self) -> None:
        """Shut down the worker threads."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> FrameClassifier:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
