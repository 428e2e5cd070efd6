"""Core capture logic package.

This package provides:
- step / start_session / stop_session: Pure capture session transitions
- SessionLimits: Idle and busy tick limits
- FrameClassifier: Parallel hexagon and glyph reading of one frame
- AutoCaptureLoop: Periodic capture driver with callbacks
- CaptureLoopConfig: Configuration for the capture loop
- CaptureMetrics / CaptureStats: Metrics collection and snapshots
"""

from glyph_recorder.core.classifier import FrameClassifier, validate_calibration
from glyph_recorder.core.loop import AutoCaptureLoop, CaptureLoopConfig
from glyph_recorder.core.metrics import CaptureMetrics, CaptureStats
from glyph_recorder.core.session import (
    SessionLimits,
    StepResult,
    add_manual,
    start_session,
    step,
    stop_session,
)

__all__ = [
    "AutoCaptureLoop",
    "CaptureLoopConfig",
    "CaptureMetrics",
    "CaptureStats",
    "FrameClassifier",
    "SessionLimits",
    "StepResult",
    "add_manual",
    "start_session",
    "step",
    "stop_session",
    "validate_calibration",
]
