"""Bundled glyph and sequence catalog data."""
