"""Stroke canonicalization."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from glyph_recorder.models.glyphs import StrokePair, path_to_strokes
from glyph_recorder.vision.topology import DECOMPOSITIONS, decompose

logger = logging.getLogger(__name__)


def canonicalize(pairs: Iterable[StrokePair]) -> frozenset[StrokePair]:
    """Normalize detected pairs into the canonical stroke set.

    Long pairs are replaced by the adjacent pairs they visually cover;
    every other pair is kept. Duplicates produced by overlapping
    decompositions collapse.

    Args:
        pairs: Detected or walked stroke pairs.

    Returns:
        Canonical stroke set.
    """
    result: set[StrokePair] = set()
    for pair in pairs:
        parts = decompose(pair)
        if pair in DECOMPOSITIONS:
            logger.debug(f"Splitting {pair} into {[str(p) for p in parts]}")
        result.update(parts)
    return frozenset(result)


def canonicalize_path(path: str) -> frozenset[StrokePair]:
    """Canonical stroke set of a walked path such as "0a19"."""
    return canonicalize(path_to_strokes(path))
