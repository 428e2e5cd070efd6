"""Glyph models: anchor points, strokes, glyphs and sequences."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class AnchorPoint(StrEnum):
    """The 11 fixed points of the panel, in reading order.

    Points are ordered by their id; "a" sorts after "9". The layout is a
    hexagon with an inner ring and a centre point:

        0 top, 1/2 upper outer, 3/4 upper inner, 5 centre,
        6/7 lower inner, 8/9 lower outer, a bottom.
    """

    P0 = "0"
    P1 = "1"
    P2 = "2"
    P3 = "3"
    P4 = "4"
    P5 = "5"
    P6 = "6"
    P7 = "7"
    P8 = "8"
    P9 = "9"
    PA = "a"

    @classmethod
    def from_index(cls, index: int) -> AnchorPoint:
        """Get the anchor at a position in reading order (0-10)."""
        return list(cls)[index]

    @property
    def index(self) -> int:
        """Position of this anchor in reading order."""
        return list(type(self)).index(self)


class StrokePair(BaseModel):
    """A drawn segment between two anchors, stored smaller id first."""

    start: AnchorPoint = Field(..., description="Lower-ordered endpoint")
    end: AnchorPoint = Field(..., description="Higher-ordered endpoint")

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _order_endpoints(cls, data: Any) -> Any:
        if isinstance(data, dict):
            start = AnchorPoint(data.get("start"))
            end = AnchorPoint(data.get("end"))
            if start == end:
                raise ValueError(f"Stroke endpoints must differ: {start}")
            if end < start:
                start, end = end, start
            return {"start": start, "end": end}
        return data

    @classmethod
    def of(cls, first: str | AnchorPoint, second: str | AnchorPoint) -> StrokePair:
        """Build a canonically ordered pair from two anchor ids."""
        return cls(start=AnchorPoint(first), end=AnchorPoint(second))

    @classmethod
    def parse(cls, text: str) -> StrokePair:
        """Parse a two-character pair such as "13" or "a5"."""
        text = text.replace("-", "").strip()
        if len(text) != 2:
            raise ValueError(f"Invalid stroke: {text!r}")
        return cls.of(text[0], text[1])

    def __str__(self) -> str:
        return f"{self.start.value}-{self.end.value}"


def path_to_strokes(path: str) -> list[StrokePair]:
    """Convert a walked path such as "0135" into its consecutive strokes.

    Args:
        path: Anchor ids in drawing order.

    Returns:
        One stroke per consecutive pair of ids, canonically ordered.

    Raises:
        ValueError: If the path contains an unknown id or a repeated
            consecutive id.
    """
    return [StrokePair.of(a, b) for a, b in zip(path, path[1:])]


class Glyph(BaseModel):
    """A named glyph and its canonical stroke set."""

    name: str = Field(..., min_length=1, description="Glyph name")
    path: str = Field(..., min_length=2, description="Anchor ids in drawing order")
    strokes: frozenset[StrokePair] = Field(..., description="Canonical strokes")

    model_config = {"frozen": True}

    @property
    def size(self) -> int:
        """Number of canonical strokes."""
        return len(self.strokes)


class SequenceEntry(BaseModel):
    """A known ordered combination of glyph names."""

    names: tuple[str, ...] = Field(..., min_length=1, description="Glyph names in order")

    model_config = {"frozen": True}

    def __len__(self) -> int:
        return len(self.names)
