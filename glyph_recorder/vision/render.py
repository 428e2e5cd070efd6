"""Synthetic panel rendering.

Draws panels the detector can read back: strokes between anchors, anchor
rings, and a row of indicator hexagons with an optional highlighted slot.
Used for debugging calibrations and for building test frames.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

import cv2
import numpy as np

from glyph_recorder.models.glyphs import Glyph, StrokePair

Point = tuple[int, int]

# BGR
BACKGROUND_COLOR = (24, 18, 12)
STROKE_COLOR = (255, 255, 255)
ANCHOR_COLOR = (110, 110, 110)
SLOT_COLOR = (200, 200, 200)
HIGHLIGHT_COLOR = (0, 165, 255)

STROKE_THICKNESS = 8
ANCHOR_RADIUS = 27

DEFAULT_SIZE = (400, 460)


def hexagonal_layout(
    center: tuple[float, float],
    radius: float,
    inner_ratio: float = 0.6,
) -> list[Point]:
    """Anchor coordinates of an ideal panel, in reading order.

    Outer points sit on a pointy-top hexagon of ``radius``; the inner ring
    is scaled by ``inner_ratio`` so the three long lines stay straight.

    Example:
        >>> hexagonal_layout((200, 260), 150)[:2]
        [(200, 110), (70, 185)]
    """
    cx, cy = center
    dx = radius * math.cos(math.radians(30))
    dy = radius / 2
    ix, iy = dx * inner_ratio, dy * inner_ratio
    points = [
        (cx, cy - radius),
        (cx - dx, cy - dy),
        (cx + dx, cy - dy),
        (cx - ix, cy - iy),
        (cx + ix, cy - iy),
        (cx, cy),
        (cx - ix, cy + iy),
        (cx + ix, cy + iy),
        (cx - dx, cy + dy),
        (cx + dx, cy + dy),
        (cx, cy + radius),
    ]
    return [(int(round(x)), int(round(y))) for x, y in points]


def default_layout(size: tuple[int, int] = DEFAULT_SIZE) -> list[Point]:
    """Layout filling the area below the indicator band of a ``size`` image."""
    width, height = size
    band = height // 5
    radius = min(width / 2.0, (height - band) / 2.0) * 0.85
    return hexagonal_layout((width / 2.0, band + (height - band) / 2.0), radius)


def blank_panel(size: tuple[int, int] = DEFAULT_SIZE) -> np.ndarray:
    """A dark BGR canvas of ``(width, height)``."""
    width, height = size
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:] = BACKGROUND_COLOR
    return image


def draw_strokes(
    image: np.ndarray,
    anchors: Sequence[Point],
    strokes: Iterable[StrokePair],
    color: tuple[int, int, int] = STROKE_COLOR,
    thickness: int = STROKE_THICKNESS,
) -> np.ndarray:
    """Draw each stroke as a line between its two anchors, in place."""
    for pair in strokes:
        start = tuple(anchors[pair.start.index])
        end = tuple(anchors[pair.end.index])
        cv2.line(image, start, end, color, thickness, cv2.LINE_AA)
    return image


def draw_anchors(
    image: np.ndarray,
    anchors: Sequence[Point],
    radius: int = ANCHOR_RADIUS,
    color: tuple[int, int, int] = ANCHOR_COLOR,
) -> np.ndarray:
    """Draw a ring at every anchor, in place."""
    for point in anchors:
        cv2.circle(image, tuple(point), radius, color, 3, cv2.LINE_AA)
    return image


def hexagon_vertices(center: tuple[float, float], radius: float) -> np.ndarray:
    """Vertices of a pointy-top regular hexagon as an int32 (6, 2) array."""
    cx, cy = center
    angles = [math.radians(90 + 60 * k) for k in range(6)]
    return np.array(
        [(cx + radius * math.cos(a), cy + radius * math.sin(a)) for a in angles],
        dtype=np.int32,
    )


def draw_indicator(
    image: np.ndarray,
    count: int,
    slot_index: int = -1,
    color: tuple[int, int, int] = SLOT_COLOR,
    highlight: tuple[int, int, int] = HIGHLIGHT_COLOR,
) -> np.ndarray:
    """Draw ``count`` filled hexagons centred in the top fifth, in place.

    The hexagon at ``slot_index`` (from the left) uses ``highlight``.
    """
    if count <= 0:
        return image
    height, width = image.shape[:2]
    band = height // 5
    radius = min(band * 0.35, width / (count * 2.6))
    spacing = radius * 2.6
    cy = band / 2.0
    for i in range(count):
        cx = width / 2.0 + (i - (count - 1) / 2.0) * spacing
        fill = highlight if i == slot_index else color
        cv2.fillPoly(image, [hexagon_vertices((cx, cy), radius)], fill)
    return image


def render_panel(
    anchors: Sequence[Point],
    strokes: Iterable[StrokePair] = (),
    hexagon_count: int = 0,
    slot_index: int = -1,
    size: tuple[int, int] = DEFAULT_SIZE,
    show_anchors: bool = False,
) -> np.ndarray:
    """Render a complete panel frame.

    Args:
        anchors: 11 anchor coordinates in reading order.
        strokes: Pairs to draw as lit lines.
        hexagon_count: Number of indicator hexagons.
        slot_index: Highlighted hexagon, -1 for none.
        size: Image (width, height).
        show_anchors: Also draw the anchor rings.

    Returns:
        BGR image.
    """
    image = blank_panel(size)
    if show_anchors:
        draw_anchors(image, anchors)
    draw_strokes(image, anchors, strokes)
    draw_indicator(image, hexagon_count, slot_index)
    return image


def render_glyph(
    glyph: Glyph,
    anchors: Sequence[Point],
    hexagon_count: int = 0,
    slot_index: int = -1,
    size: tuple[int, int] = DEFAULT_SIZE,
    show_anchors: bool = True,
) -> np.ndarray:
    """Render ``glyph`` as it appears when drawn on the panel."""
    return render_panel(
        anchors,
        glyph.strokes,
        hexagon_count=hexagon_count,
        slot_index=slot_index,
        size=size,
        show_anchors=show_anchors,
    )
