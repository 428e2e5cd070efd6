"""Vision package: frame acquisition and geometric detection.

This package provides:
- FrameCapture: "frame or none" capture with buffering
- GeometricDetector: Anchor, stroke and indicator hexagon detection
- find_most_distinct_color_index: Highlighted slot lookup
- render_panel / render_glyph: Synthetic panel drawing
"""

from glyph_recorder.vision.capture import (
    DirectoryReplaySource,
    FrameCapture,
    ImageFileSource,
    load_image,
    save_image,
)
from glyph_recorder.vision.color import find_most_distinct_color_index, hsv_to_color
from glyph_recorder.vision.detection import CircleParams, DetectionConfig, GeometricDetector
from glyph_recorder.vision.render import default_layout, render_glyph, render_panel
from glyph_recorder.vision.topology import (
    ANCHOR_COUNT,
    DECOMPOSITIONS,
    LEGAL_PAIRS,
    decompose,
    is_legal,
)

__all__ = [
    "ANCHOR_COUNT",
    "CircleParams",
    "DECOMPOSITIONS",
    "DetectionConfig",
    "DirectoryReplaySource",
    "FrameCapture",
    "GeometricDetector",
    "ImageFileSource",
    "LEGAL_PAIRS",
    "decompose",
    "default_layout",
    "find_most_distinct_color_index",
    "hsv_to_color",
    "is_legal",
    "load_image",
    "render_glyph",
    "render_panel",
    "save_image",
]
