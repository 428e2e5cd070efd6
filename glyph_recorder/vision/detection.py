"""Geometric detection on panel screenshots.

This module turns one BGR image into:
- anchor point coordinates (calibration aid, Hough circles)
- the set of activated anchor pairs (lit pixels along each legal pair)
- the indicator hexagons above the panel with their mean colours

Detection is best-effort per frame. Every stage returns an empty result
when it finds nothing, and OpenCV failures are logged and degraded to empty
results instead of propagating. Only input that is not an image at all
raises VisionError.

Example:
    >>> from glyph_recorder.vision.detection import GeometricDetector
    >>> detector = GeometricDetector()
    >>> anchors = detector.detect_anchor_points(calibration_image)
    >>> pairs = detector.detect_activated_strokes(frame, anchors)
    >>> count, slot = detector.read_indicator(frame)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import cv2
import numpy as np

from glyph_recorder.interfaces.errors import VisionError
from glyph_recorder.models.capture import Hexagon
from glyph_recorder.models.glyphs import StrokePair
from glyph_recorder.vision.color import find_most_distinct_color_index, hsv_to_color
from glyph_recorder.vision.topology import ANCHOR_COUNT, LEGAL_PAIRS

logger = logging.getLogger(__name__)

Point = tuple[int, int]


@dataclass
class CircleParams:
    """Hough circle parameters for anchor detection.

    Attributes:
        dp: Inverse ratio of accumulator resolution to image resolution.
        min_dist: Minimum distance between detected centres.
        param1: Upper Canny threshold.
        param2: Accumulator threshold for centres.
        min_radius: Smallest circle radius in pixels.
        max_radius: Largest circle radius in pixels.
    """

    dp: float = 1.2
    min_dist: float = 30.0
    param1: float = 50.0
    param2: float = 30.0
    min_radius: int = 25
    max_radius: int = 30


@dataclass
class DetectionConfig:
    """Thresholds used by the geometric detector.

    Attributes:
        circles: Hough parameters for anchor detection.
        blur_kernel: Gaussian kernel size before the Hough transform.
        blur_sigma: Gaussian sigma before the Hough transform.
        hexagon_threshold: Binary threshold for hexagon contours.
        approx_epsilon: Polygon approximation tolerance, fraction of arc length.
        edge_tolerance: Allowed relative deviation of each hexagon edge.
        angle_tolerance: Allowed deviation of each interior angle, degrees.
        dedupe_distance: Hexagons closer than this (pixels) are one hexagon.
        top_band_fraction: Fraction of the image height searched for hexagons.
        line_samples: Points sampled along each anchor pair.
        lit_threshold: HSV value above which a sample counts as lit.
        activation_ratio: Lit fraction above which a pair is activated.
    """

    circles: CircleParams = field(default_factory=CircleParams)
    blur_kernel: int = 9
    blur_sigma: float = 2.0
    hexagon_threshold: int = 128
    approx_epsilon: float = 0.02
    edge_tolerance: float = 0.15
    angle_tolerance: float = 15.0
    dedupe_distance: float = 20.0
    top_band_fraction: float = 0.2
    line_samples: int = 100
    lit_threshold: int = 200
    activation_ratio: float = 0.7


def _to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def _require_bgr(image: np.ndarray) -> None:
    if not isinstance(image, np.ndarray) or image.ndim != 3 or image.shape[2] != 3:
        shape = getattr(image, "shape", None)
        raise VisionError(f"Expected a BGR image, got shape {shape}")
    if image.size == 0:
        raise VisionError("Empty image")


def is_regular_hexagon(
    points: np.ndarray,
    edge_tolerance: float = 0.15,
    angle_tolerance: float = 15.0,
) -> bool:
    """Check whether six polygon vertices form a near-regular hexagon.

    Args:
        points: (6, 2) array of vertices in contour order.
        edge_tolerance: Allowed relative deviation of each edge from the mean.
        angle_tolerance: Allowed deviation of each interior angle from 120°.

    Returns:
        True if every edge and every angle is within tolerance.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) != 6:
        return False

    edges = np.linalg.norm(pts - np.roll(pts, -1, axis=0), axis=1)
    mean_edge = edges.mean()
    if mean_edge <= 0 or np.any(np.abs(edges - mean_edge) > edge_tolerance * mean_edge):
        return False

    for i in range(6):
        prev_pt = pts[(i + 5) % 6]
        next_pt = pts[(i + 1) % 6]
        v1 = prev_pt - pts[i]
        v2 = next_pt - pts[i]
        cos_angle = float(np.dot(v1, v2) / (np.linalg.norm(v1) * np.linalg.norm(v2)))
        angle = math.degrees(math.acos(min(1.0, max(-1.0, cos_angle))))
        if abs(angle - 120.0) > angle_tolerance:
            return False
    return True


def filter_overlapping_hexagons(
    hexagons: Sequence[Hexagon],
    min_dist: float = 20.0,
) -> list[Hexagon]:
    """Collapse hexagons whose centres are closer than ``min_dist``.

    The first hexagon of each cluster, in input order, is kept.
    """
    kept: list[Hexagon] = []
    used = [False] * len(hexagons)
    for i, hexagon in enumerate(hexagons):
        if used[i]:
            continue
        used[i] = True
        cx, cy = hexagon.center
        for j in range(len(hexagons)):
            if used[j]:
                continue
            ox, oy = hexagons[j].center
            if math.hypot(cx - ox, cy - oy) < min_dist:
                used[j] = True
        kept.append(hexagon)
    return kept


def line_samples(start: Point, end: Point, count: int = 100) -> tuple[np.ndarray, np.ndarray]:
    """Evenly spaced integer sample coordinates from ``start`` to ``end``.

    Returns:
        (xs, ys) arrays of length ``count``, endpoints included.
    """
    ts = np.linspace(0.0, 1.0, count)
    xs = (start[0] + (end[0] - start[0]) * ts).astype(np.int64)
    ys = (start[1] + (end[1] - start[1]) * ts).astype(np.int64)
    return xs, ys


class GeometricDetector:
    """Stroke, hexagon and anchor detector for panel screenshots.

    The detector holds no per-frame state and is safe to share between
    worker threads.

    Attributes:
        config: Detection thresholds.
    """

    def __init__(self, config: DetectionConfig | None = None) -> None:
        """Initialize the detector.

        Args:
            config: Detection thresholds. Uses defaults if None.
        """
        self.config = config or DetectionConfig()
        logger.debug(f"GeometricDetector initialized: {self.config}")

    def detect_anchor_points(
        self,
        image: np.ndarray,
        params: CircleParams | None = None,
    ) -> list[Point]:
        """Find anchor circles, sorted top to bottom then left to right.

        Args:
            image: BGR or grayscale image of the panel.
            params: Hough parameters. Uses the configured ones if None.

        Returns:
            Circle centres as (x, y), in reading order.
        """
        params = params or self.config.circles
        kernel = (self.config.blur_kernel, self.config.blur_kernel)
        try:
            gray = _to_gray(image)
            blurred = cv2.GaussianBlur(gray, kernel, self.config.blur_sigma)
            circles = cv2.HoughCircles(
                blurred,
                cv2.HOUGH_GRADIENT,
                dp=params.dp,
                minDist=params.min_dist,
                param1=params.param1,
                param2=params.param2,
                minRadius=params.min_radius,
                maxRadius=params.max_radius,
            )
        except cv2.error as e:
            logger.warning(f"Anchor detection failed: {e}")
            return []

        if circles is None:
            logger.debug("No circles were detected")
            return []

        points = []
        for x, y, r in circles[0]:
            logger.debug(f"Detected circle: ({x:.0f}, {y:.0f}), radius: {r:.0f}")
            points.append((int(x), int(y)))
        return sorted(points, key=lambda p: (p[1], p[0]))

    def detect_indicator_hexagons(self, image: np.ndarray) -> list[Hexagon]:
        """Find indicator hexagons in the top band of the image.

        Args:
            image: Full BGR screenshot.

        Returns:
            Hexagons with centres in image coordinates and mean colours,
            in contour order.

        Raises:
            VisionError: If ``image`` is not a BGR image.
        """
        _require_bgr(image)
        band_height = int(image.shape[0] * self.config.top_band_fraction)
        if band_height <= 0:
            return []
        band = image[:band_height]

        try:
            hsv = cv2.cvtColor(band, cv2.COLOR_BGR2HSV)
            gray = cv2.cvtColor(band, cv2.COLOR_BGR2GRAY)
            _, binary = cv2.threshold(
                gray, self.config.hexagon_threshold, 255, cv2.THRESH_BINARY
            )
            contours, _ = cv2.findContours(binary, cv2.RETR_TREE, cv2.CHAIN_APPROX_SIMPLE)
        except cv2.error as e:
            logger.warning(f"Hexagon detection failed: {e}")
            return []

        detected: list[Hexagon] = []
        for contour in contours:
            epsilon = self.config.approx_epsilon * cv2.arcLength(contour, True)
            approx = cv2.approxPolyDP(contour, epsilon, True)
            if len(approx) != 6:
                continue
            points = approx.reshape(-1, 2)
            if not is_regular_hexagon(
                points, self.config.edge_tolerance, self.config.angle_tolerance
            ):
                continue

            mask = np.zeros(band.shape[:2], dtype=np.uint8)
            cv2.fillConvexPoly(mask, points.astype(np.int32), 255)
            h, s, v, _ = cv2.mean(hsv, mask=mask)
            center = points.astype(np.float64).mean(axis=0)
            detected.append(
                Hexagon(
                    center=(float(center[0]), float(center[1])),
                    color=hsv_to_color(int(h), int(s), int(v)),
                )
            )

        unique = filter_overlapping_hexagons(detected, self.config.dedupe_distance)
        logger.debug(f"Detected {len(unique)} hexagons ({len(detected)} before dedupe)")
        return unique

    def read_indicator(self, image: np.ndarray) -> tuple[int, int]:
        """Count indicator hexagons and locate the highlighted one.

        Returns:
            (hexagon_count, slot_index) where slot_index is the position of
            the distinctly coloured hexagon from the left, or -1.
        """
        hexagons = sorted(self.detect_indicator_hexagons(image), key=lambda h: h.center[0])
        slot_index = find_most_distinct_color_index([h.color for h in hexagons])
        return len(hexagons), slot_index

    def detect_activated_strokes(
        self,
        image: np.ndarray,
        anchors: Sequence[Point],
    ) -> frozenset[StrokePair]:
        """Find the legal anchor pairs whose connecting line is lit.

        Args:
            image: Full BGR screenshot.
            anchors: The 11 calibrated anchor coordinates in reading order.

        Returns:
            Activated pairs. Empty when the calibration is incomplete.

        Raises:
            VisionError: If ``image`` is not a BGR image.
        """
        _require_bgr(image)
        if len(anchors) != ANCHOR_COUNT:
            logger.warning(
                f"Stroke detection needs {ANCHOR_COUNT} anchors, got {len(anchors)}"
            )
            return frozenset()

        try:
            value = cv2.cvtColor(image, cv2.COLOR_BGR2HSV)[:, :, 2]
        except cv2.error as e:
            logger.warning(f"Stroke detection failed: {e}")
            return frozenset()

        height, width = value.shape
        samples = self.config.line_samples
        activated = set()
        for pair in sorted(LEGAL_PAIRS, key=str):
            start = anchors[pair.start.index]
            end = anchors[pair.end.index]
            xs, ys = line_samples(start, end, samples)
            inside = (xs >= 0) & (xs < width) & (ys >= 0) & (ys < height)
            lit = int(np.count_nonzero(value[ys[inside], xs[inside]] > self.config.lit_threshold))
            if lit / samples > self.config.activation_ratio:
                activated.add(pair)
                logger.debug(f"Activated path: {pair}")
        return frozenset(activated)
