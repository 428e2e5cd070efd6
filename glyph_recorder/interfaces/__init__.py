"""Interface definitions for Glyph Recorder components.

Frame sources and the exception hierarchy live here so that detectors,
matchers and the capture loop depend only on these abstractions.
"""

from glyph_recorder.interfaces.errors import (
    CaptureError,
    ConfigurationError,
    GlyphRecorderError,
    VisionError,
)
from glyph_recorder.interfaces.vision import Frame, FrameSource

__all__ = [
    "CaptureError",
    "ConfigurationError",
    "Frame",
    "FrameSource",
    "GlyphRecorderError",
    "VisionError",
]
