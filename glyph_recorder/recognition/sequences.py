"""Sequence matching against the catalog.

Both modes scan each candidate sequence once, left to right, with a single
pointer into the captured glyphs. Neither mode backtracks: in index-aware
mode a name that appears at the wrong slot is skipped and the scan moves on
looking for a later occurrence, which can miss valid orderings when a name
repeats. Callers treat exactly one candidate as a resolved sequence.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from glyph_recorder.models.capture import CapturedGlyph
from glyph_recorder.models.glyphs import SequenceEntry
from glyph_recorder.recognition.catalog import GlyphCatalog

logger = logging.getLogger(__name__)


def contains_ordered(entry: SequenceEntry, names: Sequence[str]) -> bool:
    """Check that ``names`` appear in ``entry`` in order, gaps allowed."""
    if not names:
        return True
    idx = 0
    for item in entry.names:
        if item == names[idx]:
            idx += 1
            if idx == len(names):
                return True
    return False


def contains_ordered_at_slots(entry: SequenceEntry, captured: Sequence[CapturedGlyph]) -> bool:
    """Like contains_ordered, but honour each glyph's slot index.

    A captured glyph with a non-negative slot index only matches the entry
    element at that position.
    """
    if not captured:
        return True
    idx = 0
    for position, item in enumerate(entry.names):
        expected = captured[idx]
        if item != expected.name:
            continue
        if expected.slot_index < 0 or expected.slot_index == position:
            idx += 1
            if idx == len(captured):
                return True
    return False


class SequenceMatcher:
    """Finds the known sequences consistent with the glyphs captured so far."""

    def __init__(self, catalog: GlyphCatalog) -> None:
        self._catalog = catalog

    def match_by_name(self, length: int, names: Sequence[str]) -> list[SequenceEntry]:
        """Sequences of ``length`` that contain ``names`` in order.

        Args:
            length: Number of glyphs in the sequence being drawn.
            names: Captured glyph names, in capture order.

        Returns:
            Candidate sequences in catalog order.
        """
        return [
            entry
            for entry in self._catalog.sequences_of_length(length)
            if contains_ordered(entry, names)
        ]

    def match_by_name_and_index(
        self, length: int, captured: Sequence[CapturedGlyph]
    ) -> list[SequenceEntry]:
        """Sequences of ``length`` that contain ``captured`` in order at their slots."""
        return [
            entry
            for entry in self._catalog.sequences_of_length(length)
            if contains_ordered_at_slots(entry, captured)
        ]

    def match(
        self,
        length: int,
        captured: Sequence[CapturedGlyph],
        use_index: bool,
    ) -> list[SequenceEntry]:
        """Dispatch to the index-aware or name-only mode."""
        if use_index:
            candidates = self.match_by_name_and_index(length, captured)
        else:
            candidates = self.match_by_name(length, [glyph.name for glyph in captured])
        logger.debug(
            f"Sequence candidates for length={length} "
            f"({'index' if use_index else 'name'}): {len(candidates)}"
        )
        return candidates
