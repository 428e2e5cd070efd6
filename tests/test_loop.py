"""Tests for the AutoCaptureLoop class."""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections.abc import Callable
from unittest.mock import MagicMock

import numpy as np
import pytest

from glyph_recorder.core.classifier import FrameClassifier
from glyph_recorder.core.loop import AutoCaptureLoop, CaptureLoopConfig
from glyph_recorder.core.metrics import CaptureMetrics
from glyph_recorder.core.session import SessionLimits
from glyph_recorder.interfaces.errors import ConfigurationError
from glyph_recorder.interfaces.vision import Frame
from glyph_recorder.models.capture import (
    CapturedGlyph,
    CaptureState,
    FrameClassification,
    StopReason,
)
from glyph_recorder.recognition.catalog import GlyphCatalog, load_default_catalog
from glyph_recorder.recognition.glyphs import GlyphMatcher
from glyph_recorder.vision.render import default_layout


def obs(
    hexagons: int,
    glyph: str | None = None,
    slot: int = -1,
    timestamp: float = 0.0,
) -> FrameClassification:
    return FrameClassification(
        hexagon_count=hexagons, glyph_name=glyph, slot_index=slot, timestamp=timestamp
    )


def wait_for(condition: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


def make_loop(
    config: CaptureLoopConfig | None = None,
    catalog: GlyphCatalog | None = None,
) -> tuple[AutoCaptureLoop, MagicMock, MagicMock]:
    capture = MagicMock()
    capture.try_capture.return_value = None
    classifier = MagicMock()
    classifier.anchors = default_layout()
    loop = AutoCaptureLoop(
        capture,
        classifier,
        catalog or load_default_catalog(),
        config=config or CaptureLoopConfig(auto_interval_ms=10.0),
    )
    return loop, capture, classifier


class TestCaptureLoopConfig:
    """Tests for CaptureLoopConfig."""

    def test_default_values(self) -> None:
        config = CaptureLoopConfig()
        assert config.auto_interval_ms == 200.0
        assert config.manual_interval_ms == 1000.0
        assert config.max_workers == 4
        assert config.limits == SessionLimits(idle_limit=50, busy_limit=65)


class TestAutoCaptureLoopInitialization:
    """Tests for AutoCaptureLoop initialization."""

    def test_initial_state(self) -> None:
        loop, _, _ = make_loop()
        assert not loop.running
        assert loop.session.state == CaptureState.IDLE
        assert loop.captured == []
        assert loop.interval_ms == 1000.0
        assert loop.metrics is not None

    def test_custom_metrics(self) -> None:
        metrics = CaptureMetrics()
        loop = AutoCaptureLoop(MagicMock(), MagicMock(), load_default_catalog(), metrics=metrics)
        assert loop.metrics is metrics


class TestAutoCaptureLoopStartStop:
    """Tests for start/stop."""

    def test_incomplete_calibration_fails_fast(self) -> None:
        loop, _, classifier = make_loop()
        classifier.anchors = [(0, 0)]

        with pytest.raises(ConfigurationError):
            loop.start()
        assert not loop.running

    def test_empty_catalog_fails_fast(self) -> None:
        loop, _, _ = make_loop(catalog=GlyphCatalog([], []))

        with pytest.raises(ConfigurationError, match="empty"):
            loop.start()
        assert not loop.running

    def test_start_and_stop(self) -> None:
        loop, _, _ = make_loop()
        on_stopped = MagicMock()
        loop.set_callbacks(on_stopped=on_stopped)

        loop.start()
        try:
            assert loop.running
            assert loop.interval_ms == 10.0
            with pytest.raises(RuntimeError):
                loop.capture_once()
        finally:
            loop.stop()

        assert not loop.running
        assert loop.wait(timeout=2.0)
        assert loop.session.stop_reason == StopReason.CANCELLED
        on_stopped.assert_called_once_with(StopReason.CANCELLED)
        assert loop.metrics.get_metrics().sessions_started == 1

    def test_start_twice_is_noop(self) -> None:
        loop, _, _ = make_loop()
        loop.start()
        try:
            loop.start()
            assert loop.metrics.get_metrics().sessions_started == 1
        finally:
            loop.stop()

    def test_stop_without_start_is_silent(self) -> None:
        loop, _, _ = make_loop()
        on_stopped = MagicMock()
        loop.set_callbacks(on_stopped=on_stopped)

        loop.stop()

        on_stopped.assert_not_called()

    def test_runs_until_resolved(self) -> None:
        loop, capture, classifier = make_loop()
        image = np.zeros((4, 4, 3), dtype=np.uint8)
        capture.try_capture.side_effect = lambda timestamp: Frame(image=image, timestamp=timestamp)
        classifier.classify.side_effect = lambda frame: obs(2, "gain", timestamp=frame.timestamp)
        on_resolved = MagicMock()
        loop.set_callbacks(on_sequence_resolved=on_resolved)

        loop.start()
        assert loop.wait(timeout=5.0)
        loop.stop()

        assert loop.session.resolved == ("gain", "xm")
        assert loop.session.stop_reason == StopReason.RESOLVED
        on_resolved.assert_called_once_with(["gain", "xm"])
        assert loop.interval_ms == 1000.0

    def test_restart_resets_session(self) -> None:
        loop, _, _ = make_loop()
        loop.apply(obs(2))
        loop.apply(obs(2, "gain", timestamp=1.0))
        assert loop.session.resolved is not None

        loop.start()
        try:
            assert loop.session.resolved is None
            assert loop.captured == []
        finally:
            loop.stop()

    def test_frame_from_previous_session_is_not_captured(self) -> None:
        """A capture still in flight across a restart is stale in the new session."""
        loop, capture, classifier = make_loop()
        image = np.zeros((4, 4, 3), dtype=np.uint8)
        entered = threading.Event()
        release = threading.Event()
        first_lock = threading.Lock()

        def try_capture(timestamp: float) -> Frame | None:
            with first_lock:
                first = not entered.is_set()
                entered.set()
            if not first:
                return None
            release.wait(5.0)
            return Frame(image=image, timestamp=timestamp)

        capture.try_capture.side_effect = try_capture
        classifier.classify.side_effect = lambda frame: obs(4, "advance", timestamp=frame.timestamp)

        loop.start()
        assert entered.wait(2.0)
        loop.stop()
        loop.start()
        try:
            release.set()
            assert wait_for(lambda: loop.metrics.get_metrics().frames_stale >= 1)
            assert loop.captured == []
            assert loop.session.state == CaptureState.IDLE
        finally:
            loop.stop()


class TestAutoCaptureLoopApply:
    """Tests for folding classifications into the session."""

    def test_callbacks_receive_events(self) -> None:
        loop, _, _ = make_loop()
        on_glyph = MagicMock()
        on_resolved = MagicMock()
        on_stopped = MagicMock()
        loop.set_callbacks(
            on_glyph_captured=on_glyph,
            on_sequence_resolved=on_resolved,
            on_stopped=on_stopped,
        )

        loop.apply(obs(2))
        loop.apply(obs(2, "gain", timestamp=1.0))

        on_glyph.assert_called_once_with(CapturedGlyph(name="gain"), 0)
        on_resolved.assert_called_once_with(["gain", "xm"])
        on_stopped.assert_called_once_with(StopReason.RESOLVED)

        stats = loop.metrics.get_metrics()
        assert stats.glyphs_accepted == 1
        assert stats.sequences_resolved == 1

    def test_results_after_stop_are_ignored(self) -> None:
        loop, _, _ = make_loop()
        loop.apply(obs(2))
        loop.apply(obs(2, "gain", timestamp=1.0))

        assert loop.apply(obs(2, "xm", timestamp=2.0)) is None
        assert loop.captured == [CapturedGlyph(name="gain")]
        assert loop.metrics.get_metrics().frames_ignored == 1

    def test_long_idle_callback(self) -> None:
        loop, _, _ = make_loop(CaptureLoopConfig(limits=SessionLimits(idle_limit=2)))
        on_idle = MagicMock()
        loop.set_callbacks(on_long_idle_timeout=on_idle)

        for _ in range(5):
            loop.apply(obs(0))

        on_idle.assert_called_once_with()
        assert loop.metrics.get_metrics().timeouts == 1
        assert loop.session.stop_reason == StopReason.LONG_IDLE

    def test_noise_and_stale_frames_are_counted(self) -> None:
        loop, _, _ = make_loop()
        loop.apply(obs(4, "past", timestamp=5.0))
        loop.apply(obs(4))
        loop.apply(obs(4, "present", timestamp=1.0))

        stats = loop.metrics.get_metrics()
        assert stats.frames_noise == 1
        assert stats.frames_stale == 1

    def test_callback_error_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        loop, _, _ = make_loop()
        loop.set_callbacks(on_glyph_captured=MagicMock(side_effect=RuntimeError("boom")))

        with caplog.at_level(logging.WARNING):
            loop.apply(obs(4, "past", timestamp=1.0))

        assert loop.captured == [CapturedGlyph(name="past")]
        assert loop.metrics.get_metrics().callback_errors == 1
        assert "callback error" in caplog.text

    def test_unreadable_indicator_keeps_capturing(self) -> None:
        """A failed indicator reading is a missing frame, not the end of drawing."""
        detector = MagicMock()
        calls = itertools.count()

        def read_indicator(image: np.ndarray) -> tuple[int, int]:
            if next(calls) == 0:
                return 3, -1
            raise RuntimeError("bad band")

        detector.read_indicator.side_effect = read_indicator
        detector.detect_activated_strokes.return_value = frozenset()
        catalog = load_default_catalog()
        classifier = FrameClassifier(detector, GlyphMatcher(catalog), default_layout())
        capture = MagicMock()
        image = np.zeros((4, 4, 3), dtype=np.uint8)
        capture.try_capture.side_effect = lambda timestamp: Frame(image=image, timestamp=timestamp)
        loop = AutoCaptureLoop(
            capture, classifier, catalog, config=CaptureLoopConfig(auto_interval_ms=10.0)
        )

        loop.start()
        try:
            assert wait_for(
                lambda: loop.session.state == CaptureState.CAPTURING
                and loop.metrics.get_metrics().frames_missing >= 3
            )
            assert loop.running
        finally:
            loop.stop()
            classifier.close()

        assert loop.session.stop_reason == StopReason.CANCELLED
        assert loop.session.target_length == 3

    def test_glyph_callbacks_follow_capture_order(self) -> None:
        """A slow callback holds back the callbacks of later captures."""
        loop, _, _ = make_loop()
        in_callback = threading.Event()
        release = threading.Event()
        delivered: list[int] = []

        def on_glyph(glyph: CapturedGlyph, index: int) -> None:
            if index == 0:
                in_callback.set()
                release.wait(2.0)
            delivered.append(index)

        loop.set_callbacks(on_glyph_captured=on_glyph)
        first = threading.Thread(target=loop.apply, args=(obs(4, "truth", timestamp=1.0),))
        second = threading.Thread(target=loop.apply, args=(obs(4, "xm", timestamp=2.0),))

        first.start()
        assert in_callback.wait(2.0)
        second.start()
        time.sleep(0.05)
        release.set()
        first.join(timeout=2.0)
        second.join(timeout=2.0)

        assert delivered == [0, 1]
        assert loop.session.captured_names == ["truth", "xm"]


class TestAutoCaptureLoopManual:
    """Tests for capture_once and clear."""

    def test_capture_once_adds_glyph(self) -> None:
        loop, capture, classifier = make_loop()
        frame = Frame(image=np.zeros((4, 4, 3), dtype=np.uint8), timestamp=1.0)
        capture.try_capture.return_value = frame
        classifier.classify.return_value = obs(4, "past", slot=0, timestamp=1.0)

        result = loop.capture_once()
        loop.capture_once()

        assert result is not None
        assert result.glyph_name == "past"
        assert [g.name for g in loop.captured] == ["past", "past"]
        assert loop.session.target_length == 4
        assert loop.metrics.get_metrics().frames_captured == 2

    def test_capture_once_without_frame(self) -> None:
        loop, _, classifier = make_loop()

        assert loop.capture_once() is None

        classifier.classify.assert_not_called()
        assert loop.metrics.get_metrics().frames_missing == 1

    def test_capture_once_with_unreadable_indicator(self) -> None:
        loop, capture, classifier = make_loop()
        capture.try_capture.return_value = Frame(
            image=np.zeros((4, 4, 3), dtype=np.uint8), timestamp=1.0
        )
        classifier.classify.return_value = None

        assert loop.capture_once() is None

        assert loop.captured == []
        stats = loop.metrics.get_metrics()
        assert stats.frames_missing == 1
        assert stats.frames_captured == 0

    def test_clear(self) -> None:
        loop, _, _ = make_loop()
        loop.apply(obs(2))
        loop.apply(obs(2, "gain", timestamp=1.0))

        loop.clear()

        assert loop.captured == []
        assert loop.session.resolved is None
        assert loop.session.target_length == 0
