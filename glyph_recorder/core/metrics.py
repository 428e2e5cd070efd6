"""Metrics collection for the capture loop.

This module tracks:
- Frame acquisition (captured, missing) and capture/classify timing
- Frames the session ignored (noise, stale, after stop)
- Glyphs accepted, sequences resolved and timeouts
- Callback errors

Example:
    >>> from glyph_recorder.core.metrics import CaptureMetrics
    >>>
    >>> metrics = CaptureMetrics()
    >>> metrics.record_frame(capture_ms=12.0, classify_ms=30.5)
    >>> metrics.record_glyph()
    >>>
    >>> stats = metrics.get_metrics()
    >>> print(f"Frame rate: {stats.frame_rate_hz:.2f} Hz")
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class CaptureStats(BaseModel):
    """Snapshot of capture metrics at a point in time.

    Immutable and safe to share or serialize.

    Attributes:
        frames_captured: Frames acquired and classified.
        frames_missing: Ticks where the source produced no frame.
        frames_noise: Frames skipped as mid-animation noise.
        frames_stale: Glyph readings dropped as older than the last accepted one.
        frames_ignored: Results that arrived after the session stopped.
        frame_rate_hz: Recent classified frame rate.
        avg_capture_time_ms: Average frame acquisition time.
        avg_classify_time_ms: Average classification time.
        glyphs_accepted: Glyphs appended to a session.
        sequences_resolved: Sessions that ended on a unique sequence.
        timeouts: Sessions that gave up after too many empty ticks.
        sessions_started: Number of start() calls that succeeded.
        callback_errors: Exceptions raised by user callbacks.
        started_at: When collection started.
        uptime_seconds: Time since collection started.
    """

    # Frames
    frames_captured: int = Field(default=0, ge=0)
    frames_missing: int = Field(default=0, ge=0)
    frames_noise: int = Field(default=0, ge=0)
    frames_stale: int = Field(default=0, ge=0)
    frames_ignored: int = Field(default=0, ge=0)
    frame_rate_hz: float = Field(default=0.0, ge=0.0)
    avg_capture_time_ms: float = Field(default=0.0, ge=0.0)
    avg_classify_time_ms: float = Field(default=0.0, ge=0.0)

    # Sessions
    glyphs_accepted: int = Field(default=0, ge=0)
    sequences_resolved: int = Field(default=0, ge=0)
    timeouts: int = Field(default=0, ge=0)
    sessions_started: int = Field(default=0, ge=0)

    # Errors
    callback_errors: int = Field(default=0, ge=0)

    # Uptime
    started_at: datetime | None = Field(default=None)
    uptime_seconds: float = Field(default=0.0, ge=0.0)

    model_config = {"frozen": True}

    @property
    def frames_total(self) -> int:
        """Ticks that attempted a capture."""
        return self.frames_captured + self.frames_missing

    @property
    def capture_success_rate(self) -> float:
        """Fraction of ticks that produced a frame (0.0 to 1.0)."""
        if self.frames_total == 0:
            return 0.0
        return self.frames_captured / self.frames_total


@dataclass
class _TimingStats:
    """Running total and count of durations."""

    total_ms: float = 0.0
    count: int = 0

    def record(self, duration_ms: float) -> None:
        self.total_ms += duration_ms
        self.count += 1

    @property
    def average_ms(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total_ms / self.count


class CaptureMetrics:
    """Thread-safe collector for capture loop metrics.

    Worker threads record frames concurrently with the driver thread, so
    every update takes the collector's lock.

    Example:
        >>> metrics = CaptureMetrics()
        >>> metrics.start()
        >>> metrics.record_frame(capture_ms=8.0, classify_ms=25.0)
        >>> metrics.get_metrics().avg_capture_time_ms
        8.0
    """

    def __init__(self) -> None:
        """Initialize the metrics collector."""
        self._lock = threading.Lock()
        self._reset_unlocked()
        logger.debug("CaptureMetrics initialized")

    def _reset_unlocked(self) -> None:
        self._capture_timing = _TimingStats()
        self._classify_timing = _TimingStats()

        self._frames_missing = 0
        self._frames_noise = 0
        self._frames_stale = 0
        self._frames_ignored = 0

        self._glyphs_accepted = 0
        self._sequences_resolved = 0
        self._timeouts = 0
        self._sessions_started = 0
        self._callback_errors = 0

        self._started_at: datetime | None = None
        self._frame_times: list[float] = []  # Last 100 for rate calculation

    def start(self) -> None:
        """Mark the start of metrics collection."""
        with self._lock:
            if self._started_at is None:
                self._started_at = datetime.now()
            self._sessions_started += 1

    def reset(self) -> None:
        """Reset all metrics to initial state."""
        with self._lock:
            self._reset_unlocked()
            logger.debug("Metrics reset")

    def record_frame(self, capture_ms: float, classify_ms: float) -> None:
        """Record a captured and classified frame.

        Args:
            capture_ms: Time spent acquiring the frame.
            classify_ms: Time spent classifying it.
        """
        with self._lock:
            self._capture_timing.record(capture_ms)
            self._classify_timing.record(classify_ms)
            self._frame_times.append(time.monotonic())
            if len(self._frame_times) > 100:
                self._frame_times = self._frame_times[-100:]

    def record_missing_frame(self) -> None:
        """Record a tick where the source produced no frame."""
        with self._lock:
            self._frames_missing += 1

    def record_noise_frame(self) -> None:
        with self._lock:
            self._frames_noise += 1

    def record_stale_frame(self) -> None:
        with self._lock:
            self._frames_stale += 1

    def record_ignored_frame(self) -> None:
        """Record a result that arrived after the session stopped."""
        with self._lock:
            self._frames_ignored += 1

    def record_glyph(self) -> None:
        with self._lock:
            self._glyphs_accepted += 1

    def record_resolved(self) -> None:
        with self._lock:
            self._sequences_resolved += 1

    def record_timeout(self) -> None:
        with self._lock:
            self._timeouts += 1

    def record_callback_error(self) -> None:
        with self._lock:
            self._callback_errors += 1

    def _calculate_frame_rate(self) -> float:
        if len(self._frame_times) < 2:
            return 0.0
        duration = self._frame_times[-1] - self._frame_times[0]
        if duration <= 0:
            return 0.0
        return (len(self._frame_times) - 1) / duration

    def get_metrics(self) -> CaptureStats:
        """Get a snapshot of all current metrics.

        Returns:
            CaptureStats with all current values.
        """
        with self._lock:
            uptime = 0.0
            if self._started_at is not None:
                uptime = (datetime.now() - self._started_at).total_seconds()

            return CaptureStats(
                # Frames
                frames_captured=self._classify_timing.count,
                frames_missing=self._frames_missing,
                frames_noise=self._frames_noise,
                frames_stale=self._frames_stale,
                frames_ignored=self._frames_ignored,
                frame_rate_hz=self._calculate_frame_rate(),
                avg_capture_time_ms=self._capture_timing.average_ms,
                avg_classify_time_ms=self._classify_timing.average_ms,
                # Sessions
                glyphs_accepted=self._glyphs_accepted,
                sequences_resolved=self._sequences_resolved,
                timeouts=self._timeouts,
                sessions_started=self._sessions_started,
                # Errors
                callback_errors=self._callback_errors,
                # Uptime
                started_at=self._started_at,
                uptime_seconds=uptime,
            )
