"""Exception hierarchy shared by all Glyph Recorder components."""

from __future__ import annotations


class GlyphRecorderError(Exception):
    """Base class for all Glyph Recorder errors."""

    pass


class ConfigurationError(GlyphRecorderError):
    """Raised when calibration or catalog data is unusable.

    Configuration problems are reported at load time or when a capture
    session starts, never in the middle of a session.
    """

    pass


class CaptureError(GlyphRecorderError):
    """Raised by a frame source when no frame could be acquired."""

    pass


class VisionError(GlyphRecorderError):
    """Raised when a detection stage fails unexpectedly."""

    pass
