"""Capture models: per-frame readings and capture session state."""

from __future__ import annotations

import math
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, Field


class RgbColor(BaseModel):
    """A display colour with channels in [0, 1]."""

    red: Annotated[float, Field(ge=0.0, le=1.0)]
    green: Annotated[float, Field(ge=0.0, le=1.0)]
    blue: Annotated[float, Field(ge=0.0, le=1.0)]

    model_config = {"frozen": True}

    @classmethod
    def from_hex(cls, value: str) -> RgbColor:
        """Build a colour from "#rrggbb" or "rrggbb"."""
        value = value.lstrip("#")
        if len(value) == 8:
            value = value[2:]
        r, g, b = (int(value[i : i + 2], 16) for i in (0, 2, 4))
        return cls(red=r / 255, green=g / 255, blue=b / 255)

    def distance(self, other: RgbColor) -> float:
        """Euclidean distance in RGB space."""
        return math.sqrt(
            (self.red - other.red) ** 2
            + (self.green - other.green) ** 2
            + (self.blue - other.blue) ** 2
        )

    def to_hex(self) -> str:
        """Format as "#rrggbb"."""
        return "#{:02x}{:02x}{:02x}".format(
            round(self.red * 255), round(self.green * 255), round(self.blue * 255)
        )


class Hexagon(BaseModel):
    """An indicator hexagon found above the panel."""

    center: tuple[float, float] = Field(..., description="Centre (x, y) in pixels")
    color: RgbColor = Field(..., description="Mean colour inside the hexagon")

    model_config = {"frozen": True}


class CapturedGlyph(BaseModel):
    """A glyph accepted into a capture session."""

    name: str = Field(..., min_length=1)
    slot_index: int = Field(default=-1, ge=-1, description="Highlighted slot, -1 if unknown")

    model_config = {"frozen": True}


class FrameClassification(BaseModel):
    """Everything one frame says about the panel."""

    hexagon_count: int = Field(default=0, ge=0)
    glyph_name: str | None = Field(default=None)
    slot_index: int = Field(default=-1, ge=-1)
    timestamp: float = Field(default=0.0, description="Monotonic capture start time")
    classify_ms: float = Field(default=0.0, ge=0.0)

    model_config = {"frozen": True}


class CaptureState(StrEnum):
    """Lifecycle of a capture session."""

    IDLE = "idle"
    CAPTURING = "capturing"
    STOPPED = "stopped"


class StopReason(StrEnum):
    """Why a capture session stopped."""

    DRAWING_ENDED = "drawing_ended"
    SLOTS_FILLED = "slots_filled"
    LONG_IDLE = "long_idle"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class EventKind(StrEnum):
    """Side effects produced by a session step."""

    CAPTURING_STARTED = "capturing_started"
    GLYPH_CAPTURED = "glyph_captured"
    SEQUENCE_RESOLVED = "sequence_resolved"
    LONG_IDLE = "long_idle"
    STALE_FRAME = "stale_frame"
    NOISE_FRAME = "noise_frame"
    STOPPED = "stopped"


class SessionEvent(BaseModel):
    """A side effect to be dispatched after a session step."""

    kind: EventKind
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class CaptureSession(BaseModel):
    """State of one capture run.

    Sessions are immutable snapshots; each step produces a new one.
    """

    state: CaptureState = Field(default=CaptureState.IDLE)
    captured: tuple[CapturedGlyph, ...] = Field(default=())
    target_length: int = Field(default=0, ge=0, description="0 while unknown")
    idle_counter: int = Field(default=0, ge=0)
    busy_counter: int = Field(default=0, ge=0)
    started_at: float = Field(
        default=float("-inf"), description="Monotonic start time; older frames are stale"
    )
    last_accepted_timestamp: float = Field(default=float("-inf"))
    resolved: tuple[str, ...] | None = Field(default=None)
    stop_reason: StopReason | None = Field(default=None)

    model_config = {"frozen": True}

    @property
    def captured_names(self) -> list[str]:
        """Names of the captured glyphs, in capture order."""
        return [glyph.name for glyph in self.captured]

    @property
    def last(self) -> CapturedGlyph | None:
        """Most recently captured glyph."""
        return self.captured[-1] if self.captured else None
