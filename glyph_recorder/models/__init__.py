"""Shared data models for Glyph Recorder.

All models use Pydantic for validation and are frozen once built.
"""

from glyph_recorder.models.capture import (
    CapturedGlyph,
    CaptureSession,
    CaptureState,
    EventKind,
    FrameClassification,
    Hexagon,
    RgbColor,
    SessionEvent,
    StopReason,
)
from glyph_recorder.models.glyphs import (
    AnchorPoint,
    Glyph,
    SequenceEntry,
    StrokePair,
    path_to_strokes,
)

__all__ = [
    "AnchorPoint",
    "CaptureSession",
    "CaptureState",
    "CapturedGlyph",
    "EventKind",
    "FrameClassification",
    "Glyph",
    "Hexagon",
    "RgbColor",
    "SequenceEntry",
    "SessionEvent",
    "StopReason",
    "StrokePair",
    "path_to_strokes",
]
