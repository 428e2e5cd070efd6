"""Recognition package: canonical strokes, glyphs and sequences.

This package provides:
- canonicalize: Normalizes detected stroke pairs
- GlyphCatalog: Immutable catalog of glyphs and known sequences
- GlyphMatcher: Stroke set to glyph name matching
- SequenceMatcher: Captured glyphs to known sequence matching
"""

from glyph_recorder.recognition.catalog import (
    GlyphCatalog,
    load_catalog,
    load_default_catalog,
)
from glyph_recorder.recognition.glyphs import GlyphMatcher
from glyph_recorder.recognition.sequences import SequenceMatcher
from glyph_recorder.recognition.strokes import canonicalize, canonicalize_path

__all__ = [
    "GlyphCatalog",
    "GlyphMatcher",
    "SequenceMatcher",
    "canonicalize",
    "canonicalize_path",
    "load_catalog",
    "load_default_catalog",
]
