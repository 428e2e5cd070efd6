"""Tests for glyph and sequence matching."""

from __future__ import annotations

import logging

import pytest

from glyph_recorder.models.capture import CapturedGlyph
from glyph_recorder.models.glyphs import SequenceEntry, StrokePair
from glyph_recorder.recognition.catalog import GlyphCatalog, load_default_catalog
from glyph_recorder.recognition.glyphs import GlyphMatcher
from glyph_recorder.recognition.sequences import (
    SequenceMatcher,
    contains_ordered,
    contains_ordered_at_slots,
)
from glyph_recorder.recognition.strokes import canonicalize_path

LETTER_GLYPHS = "a,01\nb,12\nc,23\nd,34\nx,45\n"


def letters_catalog(sequences: str) -> GlyphCatalog:
    return GlyphCatalog.from_text(LETTER_GLYPHS, sequences)


def entry(*names: str) -> SequenceEntry:
    return SequenceEntry(names=names)


class TestGlyphMatcher:
    """Tests for GlyphMatcher."""

    @pytest.mark.parametrize("name", sorted(load_default_catalog().glyphs))
    def test_every_glyph_matches_itself(self, name: str) -> None:
        catalog = load_default_catalog()
        matcher = GlyphMatcher(catalog)
        assert name in matcher.match(catalog.glyph(name).strokes)

    def test_empty_strokes_match_nothing(self) -> None:
        matcher = GlyphMatcher(load_default_catalog())
        assert matcher.match([]) == []
        assert matcher.best([]) is None

    def test_size_must_be_equal(self) -> None:
        """A superset of a glyph's strokes is a different glyph."""
        matcher = GlyphMatcher(load_default_catalog())
        strokes = set(canonicalize_path("3456")) | {StrokePair.of("0", "1")}
        assert "complex" not in matcher.match(strokes)

    def test_threshold(self) -> None:
        catalog = GlyphCatalog.from_text("tri,0135\n", "tri\n")
        observed = {StrokePair.of("0", "1"), StrokePair.of("1", "3"), StrokePair.of("2", "4")}

        assert GlyphMatcher(catalog).match(observed) == []
        assert GlyphMatcher(catalog, threshold=0.6).match(observed) == ["tri"]

    def test_best_returns_unique_match(self) -> None:
        matcher = GlyphMatcher(load_default_catalog())
        assert matcher.best(canonicalize_path("3456")) == "complex"

    def test_best_logs_ambiguity(self, caplog: pytest.LogCaptureFixture) -> None:
        catalog = GlyphCatalog.from_text("one,12\ntwo,21\n", "one,two\n")
        matcher = GlyphMatcher(catalog)

        with caplog.at_level(logging.WARNING):
            assert matcher.best({StrokePair.of("1", "2")}) == "one"

        assert "Ambiguous glyph match" in caplog.text


class TestOrderedScan:
    """Tests for the subsequence scans."""

    def test_empty_names_match(self) -> None:
        assert contains_ordered(entry("a", "b"), [])
        assert contains_ordered_at_slots(entry("a", "b"), [])

    def test_gaps_allowed(self) -> None:
        assert contains_ordered(entry("a", "b", "c", "d"), ["b", "d"])
        assert contains_ordered(entry("a", "b", "c", "d"), ["a", "b", "c", "d"])

    def test_order_preserved(self) -> None:
        assert contains_ordered(entry("a", "b", "c", "d"), ["b", "c"])
        assert not contains_ordered(entry("a", "c", "b", "d"), ["b", "c"])

    def test_missing_name(self) -> None:
        assert not contains_ordered(entry("a", "b"), ["x"])

    def test_slot_must_match_position(self) -> None:
        seq = entry("a", "b", "c", "d")
        assert contains_ordered_at_slots(seq, [CapturedGlyph(name="b", slot_index=1)])
        assert not contains_ordered_at_slots(seq, [CapturedGlyph(name="b", slot_index=2)])

    def test_unknown_slot_is_unconstrained(self) -> None:
        seq = entry("a", "b", "c", "d")
        assert contains_ordered_at_slots(seq, [CapturedGlyph(name="c", slot_index=-1)])

    def test_scan_continues_to_later_occurrence(self) -> None:
        """A name at the wrong slot is skipped, not rejected."""
        seq = entry("a", "x", "a")
        assert contains_ordered_at_slots(seq, [CapturedGlyph(name="a", slot_index=2)])

    def test_out_of_order_slots_are_missed(self) -> None:
        """Glyphs captured right to left are not matched: the scan never backtracks."""
        seq = entry("x", "b", "a")
        captured = [CapturedGlyph(name="a", slot_index=2), CapturedGlyph(name="b", slot_index=1)]
        assert not contains_ordered_at_slots(seq, captured)


class TestSequenceMatcher:
    """Tests for SequenceMatcher."""

    def test_empty_names_return_all_of_length(self) -> None:
        catalog = load_default_catalog()
        matcher = SequenceMatcher(catalog)
        assert matcher.match_by_name(3, []) == list(catalog.sequences_of_length(3))

    def test_match_by_name(self) -> None:
        matcher = SequenceMatcher(letters_catalog("a,b,c,d\na,c,b,d\nb,d\n"))

        assert matcher.match_by_name(4, ["b", "d"]) == [
            entry("a", "b", "c", "d"),
            entry("a", "c", "b", "d"),
        ]
        assert matcher.match_by_name(4, ["b", "c"]) == [entry("a", "b", "c", "d")]
        assert matcher.match_by_name(2, ["b", "d"]) == [entry("b", "d")]

    def test_unknown_length(self) -> None:
        matcher = SequenceMatcher(letters_catalog("a,b\n"))
        assert matcher.match_by_name(7, ["a"]) == []

    def test_match_by_name_and_index(self) -> None:
        matcher = SequenceMatcher(letters_catalog("a,b,c,d\nb,a,c,d\n"))
        captured = [CapturedGlyph(name="b", slot_index=0)]

        assert matcher.match_by_name_and_index(4, captured) == [entry("b", "a", "c", "d")]

    def test_match_dispatches_on_mode(self) -> None:
        matcher = SequenceMatcher(letters_catalog("a,b,c,d\nb,a,c,d\n"))
        captured = [CapturedGlyph(name="b", slot_index=0)]

        assert len(matcher.match(4, captured, use_index=False)) == 2
        assert len(matcher.match(4, captured, use_index=True)) == 1

    def test_bundled_sequences_resolve(self) -> None:
        matcher = SequenceMatcher(load_default_catalog())

        assert matcher.match_by_name(2, ["gain"]) == [entry("gain", "xm")]
        assert len(matcher.match_by_name(2, ["pure"])) == 2
        assert matcher.match_by_name(2, ["pure", "truth"]) == [entry("pure", "truth")]
