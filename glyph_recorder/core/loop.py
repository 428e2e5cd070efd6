"""Auto-capture loop.

This module provides the AutoCaptureLoop class that drives:
- Frame acquisition (FrameCapture)
- Frame classification (FrameClassifier)
- The capture session state machine (core.session.step)

A driver thread submits one capture-and-classify task per tick to a worker
pool and sleeps the polling interval without waiting for the task, so slow
frames never stretch the tick. Results are folded into the session under a
short lock; the monotonic capture timestamp is what rejects results that
finish out of order.

Example:
    >>> loop = AutoCaptureLoop(capture, classifier, catalog)
    >>> loop.set_callbacks(on_sequence_resolved=print)
    >>> loop.start()
    >>> # ... later ...
    >>> loop.stop()
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from glyph_recorder.core.classifier import FrameClassifier, validate_calibration
from glyph_recorder.core.metrics import CaptureMetrics
from glyph_recorder.core.session import (
    SessionLimits,
    StepResult,
    add_manual,
    start_session,
    step,
    stop_session,
)
from glyph_recorder.interfaces.errors import ConfigurationError
from glyph_recorder.models.capture import (
    CapturedGlyph,
    CaptureSession,
    CaptureState,
    EventKind,
    FrameClassification,
    SessionEvent,
    StopReason,
)
from glyph_recorder.recognition.catalog import GlyphCatalog
from glyph_recorder.recognition.sequences import SequenceMatcher
from glyph_recorder.vision.capture import FrameCapture

logger = logging.getLogger(__name__)


@dataclass
class CaptureLoopConfig:
    """Configuration for the auto-capture loop.

    Attributes:
        auto_interval_ms: Polling interval while auto-capturing.
        manual_interval_ms: Baseline interval outside auto-capture.
        max_workers: Capture tasks allowed in flight at once.
        limits: Session tick limits.
        stop_timeout: Seconds to wait for the driver thread on stop.
    """

    auto_interval_ms: float = 200.0
    manual_interval_ms: float = 1000.0
    max_workers: int = 4
    limits: SessionLimits = field(default_factory=SessionLimits)
    stop_timeout: float = 2.0


class AutoCaptureLoop:
    """Polls frames and turns them into a captured glyph sequence.

    Callbacks run on worker threads, one at a time and in the order the
    session produced their events, so glyph indices arrive ascending.
    Exceptions they raise are logged and never stop the loop.

    Attributes:
        metrics: Metrics collector instance.

    Example:
        >>> loop = AutoCaptureLoop(capture, classifier, catalog)
        >>> loop.start()
        >>> loop.wait(timeout=30)
        >>> print(loop.session.resolved)
    """

    def __init__(
        self,
        capture: FrameCapture,
        classifier: FrameClassifier,
        catalog: GlyphCatalog,
        metrics: CaptureMetrics | None = None,
        config: CaptureLoopConfig | None = None,
    ) -> None:
        """Initialize the loop.

        Args:
            capture: Frame acquisition wrapper.
            classifier: Frame classifier with the calibrated anchors.
            catalog: Glyph and sequence catalog.
            metrics: Metrics collector. Creates new one if None.
            config: Loop configuration. Uses defaults if None.
        """
        self._capture = capture
        self._classifier = classifier
        self._catalog = catalog
        self._sequence_matcher = SequenceMatcher(catalog)
        self.metrics = metrics or CaptureMetrics()
        self._config = config or CaptureLoopConfig()

        self._session = start_session()
        self._session_lock = threading.Lock()
        # Held from step through dispatch so callbacks run in step order.
        self._dispatch_lock = threading.RLock()
        self._interval_ms = self._config.manual_interval_ms

        self._stop_event = threading.Event()
        self._stop_event.set()
        self._finished = threading.Event()
        self._finished.set()
        self._submit_lock = threading.RLock()
        self._driver: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[Future[Any]] = set()

        # Callbacks
        self._on_glyph_captured: Callable[[CapturedGlyph, int], None] | None = None
        self._on_sequence_resolved: Callable[[list[str]], None] | None = None
        self._on_long_idle_timeout: Callable[[], None] | None = None
        self._on_stopped: Callable[[StopReason], None] | None = None

        logger.debug(f"AutoCaptureLoop initialized: {self._config}")

    @property
    def session(self) -> CaptureSession:
        """Current session snapshot."""
        with self._session_lock:
            return self._session

    @property
    def captured(self) -> list[CapturedGlyph]:
        """Glyphs captured so far; kept after stop until clear()."""
        return list(self.session.captured)

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    @property
    def interval_ms(self) -> float:
        """Current polling interval."""
        return self._interval_ms

    def set_callbacks(
        self,
        on_glyph_captured: Callable[[CapturedGlyph, int], None] | None = None,
        on_sequence_resolved: Callable[[list[str]], None] | None = None,
        on_long_idle_timeout: Callable[[], None] | None = None,
        on_stopped: Callable[[StopReason], None] | None = None,
    ) -> None:
        """Set optional callbacks.

        Args:
            on_glyph_captured: Called with each accepted glyph and its index.
            on_sequence_resolved: Called with the names of the resolved sequence.
            on_long_idle_timeout: Called when a session gives up waiting.
            on_stopped: Called with the reason whenever a session stops.
        """
        self._on_glyph_captured = on_glyph_captured
        self._on_sequence_resolved = on_sequence_resolved
        self._on_long_idle_timeout = on_long_idle_timeout
        self._on_stopped = on_stopped

    def start(self) -> None:
        """Start auto-capturing in a background thread.

        Clears captured glyphs and any resolved sequence, resets the
        session to IDLE and polls at the auto interval. Does nothing if
        the loop is already running.

        Raises:
            ConfigurationError: If the calibration is incomplete or the
                catalog is empty.
        """
        if self.running:
            logger.info("Auto capture already running")
            return

        validate_calibration(self._classifier.anchors)
        if self._catalog.is_empty:
            raise ConfigurationError("Glyph catalog is empty")

        # A session that stopped itself leaves its driver exiting.
        if self._driver is not None and self._driver.is_alive():
            self._driver.join(timeout=self._config.stop_timeout)

        with self._session_lock:
            self._session = start_session(started_at=time.monotonic())
        self._interval_ms = self._config.auto_interval_ms
        self.metrics.start()

        self._executor = ThreadPoolExecutor(
            max_workers=self._config.max_workers, thread_name_prefix="capture"
        )
        self._finished.clear()
        self._stop_event.clear()
        self._driver = threading.Thread(target=self._drive, name="AutoCaptureLoop", daemon=True)
        self._driver.start()
        logger.info(f"Starting auto capture with interval: {self._interval_ms:.0f}ms")

    def stop(self, reason: StopReason = StopReason.CANCELLED) -> None:
        """Stop auto-capturing.

        Unstarted tasks are cancelled; in-flight tasks finish and their
        results are ignored. Captured glyphs stay readable.

        Args:
            reason: Reported to on_stopped if the session was still active.
        """
        if not self.running:
            return
        with self._dispatch_lock:
            with self._session_lock:
                result = stop_session(self._session, reason)
                self._session = result.session
            self._halt()
            self._dispatch(result.events)

        driver = self._driver
        if driver is not None and driver is not threading.current_thread():
            driver.join(timeout=self._config.stop_timeout)
            if driver.is_alive():
                logger.warning("Capture driver did not stop within timeout")
        logger.info("Auto capture stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the loop stops.

        Returns:
            True if the loop stopped, False on timeout.
        """
        return self._finished.wait(timeout)

    def clear(self) -> None:
        """Forget captured glyphs and the resolved sequence."""
        with self._session_lock:
            self._session = self._session.model_copy(
                update={"captured": (), "resolved": None, "target_length": 0}
            )
        logger.info("Captured glyphs cleared")

    def capture_once(self) -> FrameClassification | None:
        """Capture and classify a single frame and add its glyph.

        Returns:
            The classification, or None when no frame was available or
            the indicator could not be read.

        Raises:
            RuntimeError: If auto-capture is running.
        """
        if self.running:
            raise RuntimeError("Cannot capture_once while auto capture is running")

        obs = self._capture_and_classify()
        if obs is None:
            return None
        with self._dispatch_lock:
            with self._session_lock:
                result = add_manual(self._session, obs, self._sequence_matcher)
                self._session = result.session
            self._dispatch(result.events)
        return obs

    def _drive(self) -> None:
        """Driver thread: submit one task per tick until stopped."""
        logger.debug("Capture driver running")
        while not self._stop_event.is_set():
            with self._submit_lock:
                if self._stop_event.is_set() or self._executor is None:
                    break
                future = self._executor.submit(self._tick)
                self._pending.add(future)
            future.add_done_callback(self._forget)
            self._stop_event.wait(self._interval_ms / 1000)

        self._interval_ms = self._config.manual_interval_ms
        self._finished.set()
        logger.debug("Capture driver exited")

    def _forget(self, future: Future[Any]) -> None:
        with self._submit_lock:
            self._pending.discard(future)

    def _halt(self) -> None:
        """Stop submitting and cancel tasks that have not started."""
        with self._submit_lock:
            self._stop_event.set()
            cancelled = sum(future.cancel() for future in list(self._pending))
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None
        if cancelled:
            logger.debug(f"Cancelled {cancelled} pending capture tasks")
        if self._driver is None or not self._driver.is_alive():
            self._finished.set()

    def _capture_and_classify(self) -> FrameClassification | None:
        timestamp = time.monotonic()
        start = time.perf_counter()
        frame = self._capture.try_capture(timestamp)
        capture_ms = (time.perf_counter() - start) * 1000
        if frame is None:
            self.metrics.record_missing_frame()
            return None

        obs = self._classifier.classify(frame)
        if obs is None:
            # Unreadable indicator; the tick leaves the session untouched.
            self.metrics.record_missing_frame()
            return None
        self.metrics.record_frame(capture_ms, obs.classify_ms)
        return obs

    def _tick(self) -> None:
        """One capture task (runs on a worker thread)."""
        if self._stop_event.is_set():
            return
        try:
            obs = self._capture_and_classify()
        except Exception as e:
            logger.exception(f"Unexpected error in capture task: {e}")
            return
        if obs is not None:
            self.apply(obs)

    def apply(self, obs: FrameClassification) -> StepResult | None:
        """Fold one classification into the session and dispatch effects.

        Returns:
            The step result, or None if the session had already stopped.
        """
        with self._dispatch_lock:
            with self._session_lock:
                if self._session.state == CaptureState.STOPPED:
                    self.metrics.record_ignored_frame()
                    return None
                result = step(self._session, obs, self._sequence_matcher, self._config.limits)
                self._session = result.session

            if result.stopped:
                self._halt()
            self._dispatch(result.events)
        return result

    def _dispatch(self, events: tuple[SessionEvent, ...]) -> None:
        for event in events:
            if event.kind == EventKind.GLYPH_CAPTURED:
                self.metrics.record_glyph()
                self._notify(
                    "Glyph captured",
                    self._on_glyph_captured,
                    event.payload["glyph"],
                    event.payload["index"],
                )
            elif event.kind == EventKind.SEQUENCE_RESOLVED:
                self.metrics.record_resolved()
                self._notify(
                    "Sequence resolved", self._on_sequence_resolved, list(event.payload["names"])
                )
            elif event.kind == EventKind.LONG_IDLE:
                self.metrics.record_timeout()
                self._notify("Long idle", self._on_long_idle_timeout)
            elif event.kind == EventKind.STOPPED:
                self._notify("Stopped", self._on_stopped, event.payload["reason"])
            elif event.kind == EventKind.NOISE_FRAME:
                self.metrics.record_noise_frame()
            elif event.kind == EventKind.STALE_FRAME:
                self.metrics.record_stale_frame()

    def _notify(self, name: str, callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            self.metrics.record_callback_error()
            logger.warning(f"{name} callback error: {e}")
