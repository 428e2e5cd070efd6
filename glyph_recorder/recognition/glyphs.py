"""Glyph matching against the catalog."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from glyph_recorder.models.glyphs import StrokePair
from glyph_recorder.recognition.catalog import GlyphCatalog

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.95


class GlyphMatcher:
    """Matches canonical stroke sets to glyph names.

    A glyph is a candidate only when its stroke set has exactly as many
    strokes as the observed set; it is accepted when the overlap covers
    at least ``threshold`` of its strokes.

    Example:
        >>> matcher = GlyphMatcher(catalog)
        >>> matcher.match(canonicalize_path("3456"))
        ['complex']
    """

    def __init__(
        self,
        catalog: GlyphCatalog,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
    ) -> None:
        """Initialize the matcher.

        Args:
            catalog: Loaded glyph catalog.
            threshold: Minimum fraction of a glyph's strokes that must be
                present (0.0 to 1.0).
        """
        self._catalog = catalog
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        """Acceptance ratio."""
        return self._threshold

    def match(self, strokes: Iterable[StrokePair]) -> list[str]:
        """Find every glyph whose strokes match the observed set.

        Args:
            strokes: Canonical stroke set of one frame.

        Returns:
            Accepted glyph names in catalog order; empty if none match.
        """
        observed = frozenset(strokes)
        if not observed:
            return []

        matched = []
        for glyph in self._catalog.glyphs.values():
            if glyph.size != len(observed):
                continue
            ratio = len(observed & glyph.strokes) / glyph.size
            if ratio >= self._threshold:
                matched.append(glyph.name)
        return matched

    def best(self, strokes: Iterable[StrokePair]) -> str | None:
        """Return the first matching glyph name, or None.

        When several glyphs qualify the first in catalog order is used and
        the ambiguity is logged.
        """
        matched = self.match(strokes)
        if not matched:
            return None
        if len(matched) > 1:
            logger.warning(f"Ambiguous glyph match {matched}, using '{matched[0]}'")
        return matched[0]
