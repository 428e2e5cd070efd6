"""Glyph Recorder: recognizes glyph sequences drawn on an 11-point panel."""

__version__ = "0.3.0"
