"""Static topology of the 11-point panel.

Three straight lines cross the panel through the centre point 5:

    0 - 5 - a
    1 - 3 - 5 - 7 - 9
    2 - 4 - 5 - 6 - 8

A pair spanning several points of one of these lines looks identical on
screen to the chain of short pairs it covers, so such pairs are never
sampled directly. DECOMPOSITIONS maps each of them to the adjacent pairs
it is made of.
"""

from __future__ import annotations

from itertools import combinations

from glyph_recorder.models.glyphs import AnchorPoint, StrokePair

ANCHOR_COUNT = 11

_LINES: tuple[str, ...] = ("05a", "13579", "24568")


def _build_decompositions() -> dict[StrokePair, tuple[StrokePair, ...]]:
    table: dict[StrokePair, tuple[StrokePair, ...]] = {}
    for line in _LINES:
        for i, j in combinations(range(len(line)), 2):
            if j - i < 2:
                continue
            segment = line[i : j + 1]
            table[StrokePair.of(line[i], line[j])] = tuple(
                StrokePair.of(a, b) for a, b in zip(segment, segment[1:])
            )
    return table


DECOMPOSITIONS: dict[StrokePair, tuple[StrokePair, ...]] = _build_decompositions()

ALL_PAIRS: frozenset[StrokePair] = frozenset(
    StrokePair.of(a, b) for a, b in combinations(AnchorPoint, 2)
)

# Pairs whose pixels are checked on a frame.
LEGAL_PAIRS: frozenset[StrokePair] = ALL_PAIRS - DECOMPOSITIONS.keys()


def is_legal(pair: StrokePair) -> bool:
    """Check whether a pair is a directly drawable, non-redundant stroke."""
    return pair in LEGAL_PAIRS


def decompose(pair: StrokePair) -> tuple[StrokePair, ...]:
    """Split a long pair into its adjacent sub-pairs.

    Pairs that are not in the table come back unchanged as a 1-tuple.
    """
    return DECOMPOSITIONS.get(pair, (pair,))
