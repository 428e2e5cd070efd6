"""Colour helpers for the indicator hexagons."""

from __future__ import annotations

import colorsys
import logging
from collections.abc import Sequence

from glyph_recorder.models.capture import RgbColor

logger = logging.getLogger(__name__)

# A standout must beat this mean distance in absolute terms...
MIN_DISTINCT_DISTANCE = 0.1
# ...and be this many times further out than the runner-up.
DISTINCT_RATIO = 1.5


def hsv_to_color(h: float, s: float, v: float) -> RgbColor:
    """Convert an OpenCV HSV triple to a display colour.

    Args:
        h: Hue in OpenCV's 0-179 range.
        s: Saturation, 0-255.
        v: Value, 0-255.

    Returns:
        Equivalent RGB colour.
    """
    hue = (h * 2.0 % 360.0) / 360.0
    saturation = min(max(s / 255.0, 0.0), 1.0)
    value = min(max(v / 255.0, 0.0), 1.0)
    r, g, b = colorsys.hsv_to_rgb(hue, saturation, value)
    return RgbColor(red=r, green=g, blue=b)


def find_most_distinct_color_index(
    colors: Sequence[RgbColor],
    min_distance: float = MIN_DISTINCT_DISTANCE,
    ratio: float = DISTINCT_RATIO,
) -> int:
    """Find the one colour that stands out from the rest.

    For each colour the mean RGB distance to all others is computed. The
    colour with the largest mean is returned only when that mean exceeds
    both ``min_distance`` and ``ratio`` times the second-largest mean.

    Args:
        colors: Hexagon colours, left to right.
        min_distance: Absolute floor for the largest mean distance.
        ratio: Required margin over the runner-up.

    Returns:
        Index of the standout colour, or -1 when there are fewer than three
        colours or no clear standout.
    """
    n = len(colors)
    if n < 3:
        return -1

    means = [
        sum(colors[i].distance(colors[j]) for j in range(n) if j != i) / (n - 1)
        for i in range(n)
    ]
    max_index = max(range(n), key=lambda i: means[i])
    max_mean = means[max_index]
    second = max(means[i] for i in range(n) if i != max_index)

    result = max_index if max_mean > max(min_distance, second * ratio) else -1
    logger.debug(f"Distinct colour among {[c.to_hex() for c in colors]} -> {result}")
    return result
