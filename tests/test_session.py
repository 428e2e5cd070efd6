"""Tests for the capture session state machine."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from glyph_recorder.core.session import (
    SessionLimits,
    add_manual,
    start_session,
    step,
    stop_session,
)
from glyph_recorder.models.capture import (
    CapturedGlyph,
    CaptureSession,
    CaptureState,
    EventKind,
    FrameClassification,
    StopReason,
)
from glyph_recorder.models.glyphs import SequenceEntry
from glyph_recorder.recognition.catalog import load_default_catalog
from glyph_recorder.recognition.sequences import SequenceMatcher


def obs(
    hexagons: int,
    glyph: str | None = None,
    slot: int = -1,
    timestamp: float = 0.0,
) -> FrameClassification:
    return FrameClassification(
        hexagon_count=hexagons, glyph_name=glyph, slot_index=slot, timestamp=timestamp
    )


def capturing(*names: str, target: int = 4) -> CaptureSession:
    return CaptureSession(
        state=CaptureState.CAPTURING,
        captured=tuple(CapturedGlyph(name=name) for name in names),
        target_length=target,
    )


@pytest.fixture
def matcher() -> SequenceMatcher:
    return SequenceMatcher(load_default_catalog())


class TestScenario:
    """A short drawing from first hexagon to hexagons disappearing."""

    def test_capture_one_glyph_then_stop(self) -> None:
        frames = [obs(0), obs(0), obs(3), obs(3, "a"), obs(3), obs(0)]
        session = start_session()
        results = []
        for tick, frame in enumerate(frames, start=1):
            result = step(session, frame.model_copy(update={"timestamp": float(tick)}))
            session = result.session
            results.append(result)

        assert results[1].session.state == CaptureState.IDLE
        assert results[2].session.state == CaptureState.CAPTURING
        assert results[2].kinds() == [EventKind.CAPTURING_STARTED]
        assert results[3].kinds() == [EventKind.GLYPH_CAPTURED]
        assert results[3].session.captured_names == ["a"]
        assert results[4].kinds() == [EventKind.NOISE_FRAME]
        assert results[5].stopped
        assert results[5].kinds() == [EventKind.STOPPED]
        assert session.stop_reason == StopReason.DRAWING_ENDED
        assert session.captured_names == ["a"]


class TestIdle:
    """Tests for the IDLE state."""

    def test_long_idle_fires_once(self) -> None:
        session = start_session()
        idle_ticks = []
        for tick in range(1, 71):
            result = step(session, obs(0))
            session = result.session
            if EventKind.LONG_IDLE in result.kinds():
                idle_ticks.append(tick)

        assert idle_ticks == [51]
        assert session.state == CaptureState.STOPPED
        assert session.stop_reason == StopReason.LONG_IDLE

    def test_custom_idle_limit(self) -> None:
        session = start_session()
        limits = SessionLimits(idle_limit=2)
        kinds = []
        for _ in range(3):
            result = step(session, obs(0), limits=limits)
            session = result.session
            kinds.append(result.kinds())

        assert kinds == [[], [], [EventKind.LONG_IDLE, EventKind.STOPPED]]

    def test_hexagons_start_capturing(self) -> None:
        result = step(start_session(), obs(4))
        assert result.session.state == CaptureState.CAPTURING
        assert result.session.target_length == 4
        assert result.events[0].payload == {"target_length": 4}

    def test_glyph_on_first_frame_is_accepted(self) -> None:
        result = step(start_session(), obs(4, "past", timestamp=1.0))
        assert result.kinds() == [EventKind.CAPTURING_STARTED, EventKind.GLYPH_CAPTURED]
        assert result.session.captured_names == ["past"]

    def test_frame_read_before_start_is_stale(self) -> None:
        """Frames from before the session started change nothing."""
        session = start_session(started_at=10.0)

        early = step(session, obs(4, "past", timestamp=9.5))
        assert early.kinds() == [EventKind.STALE_FRAME]
        assert early.session == session

        assert step(session, obs(0, timestamp=9.5)).session.idle_counter == 0

        on_time = step(session, obs(4, "past", timestamp=10.0))
        assert on_time.session.captured_names == ["past"]

    def test_noise_guard_does_not_apply_while_idle(self) -> None:
        """A frame with hexagons and no glyph starts capturing."""
        result = step(start_session(), obs(3))
        assert EventKind.NOISE_FRAME not in result.kinds()


class TestCapturing:
    """Tests for the CAPTURING state."""

    def test_slots_filled_stops(self) -> None:
        result = step(capturing("a", "b", target=2), obs(2))
        assert result.stopped
        assert result.session.stop_reason == StopReason.SLOTS_FILLED

    def test_hexagons_gone_stops(self) -> None:
        result = step(capturing("a"), obs(0))
        assert result.session.stop_reason == StopReason.DRAWING_ENDED

    def test_noise_frame_is_skipped(self) -> None:
        session = capturing("a")
        result = step(session, obs(4))
        assert result.kinds() == [EventKind.NOISE_FRAME]
        assert result.session == session

    def test_busy_timeout(self) -> None:
        """Fewer slots than glyphs with no glyph on screen eventually gives up."""
        session = capturing("a", "b", "c", target=4)
        stop_tick = None
        for tick in range(1, 70):
            result = step(session, obs(2))
            session = result.session
            if result.stopped:
                stop_tick = tick
                assert result.kinds() == [EventKind.LONG_IDLE, EventKind.STOPPED]
                break

        assert stop_tick == 66
        assert session.stop_reason == StopReason.LONG_IDLE

    def test_duplicate_glyph_is_ignored(self) -> None:
        session = step(capturing(), obs(4, "a", slot=0, timestamp=1.0)).session
        result = step(session, obs(4, "a", slot=0, timestamp=2.0))
        assert result.kinds() == []
        assert result.session.captured_names == ["a"]

    def test_same_glyph_at_new_slot_is_accepted(self) -> None:
        session = step(capturing(), obs(4, "a", slot=0, timestamp=1.0)).session
        result = step(session, obs(4, "a", slot=1, timestamp=2.0))
        assert result.kinds() == [EventKind.GLYPH_CAPTURED]
        assert result.session.captured == (
            CapturedGlyph(name="a", slot_index=0),
            CapturedGlyph(name="a", slot_index=1),
        )

    def test_slot_ignored_below_three_hexagons(self) -> None:
        session = step(capturing(target=2), obs(2, "a", slot=0, timestamp=1.0)).session
        result = step(session, obs(2, "a", slot=1, timestamp=2.0))
        assert result.session.captured_names == ["a"]

    def test_stale_reading_is_dropped(self) -> None:
        session = step(capturing(), obs(4, "a", timestamp=5.0)).session
        stale = step(session, obs(4, "b", timestamp=3.0))

        assert stale.kinds() == [EventKind.STALE_FRAME]
        assert stale.events[0].payload == {"glyph": "b", "timestamp": 3.0}
        assert stale.session.captured_names == ["a"]

        fresh = step(stale.session, obs(4, "b", timestamp=6.0))
        assert fresh.session.captured_names == ["a", "b"]
        assert fresh.session.last_accepted_timestamp == 6.0

    def test_glyph_event_payload(self) -> None:
        result = step(capturing("a"), obs(4, "b", slot=1, timestamp=1.0))
        event = result.events[0]
        assert event.payload == {"glyph": CapturedGlyph(name="b", slot_index=1), "index": 1}

    def test_stopped_session_ignores_frames(self) -> None:
        session = stop_session(capturing("a"), StopReason.CANCELLED).session
        result = step(session, obs(4, "b", timestamp=1.0))
        assert result.session == session
        assert result.events == ()


class TestResolution:
    """Tests for sequence resolution after each accepted glyph."""

    def test_unique_candidate_resolves(self, matcher: SequenceMatcher) -> None:
        session = step(start_session(), obs(2), matcher).session
        result = step(session, obs(2, "gain", timestamp=1.0), matcher)

        assert result.kinds() == [
            EventKind.GLYPH_CAPTURED,
            EventKind.SEQUENCE_RESOLVED,
            EventKind.STOPPED,
        ]
        assert result.session.resolved == ("gain", "xm")
        assert result.session.stop_reason == StopReason.RESOLVED

    def test_ambiguous_candidates_keep_capturing(self, matcher: SequenceMatcher) -> None:
        session = step(start_session(), obs(2), matcher).session
        session = step(session, obs(2, "pure", timestamp=1.0), matcher).session
        assert session.state == CaptureState.CAPTURING
        assert session.resolved is None

        result = step(session, obs(2, "truth", timestamp=2.0), matcher)
        assert result.session.resolved == ("pure", "truth")

    def test_index_mode_from_three_hexagons(self) -> None:
        sequence_matcher = MagicMock()
        sequence_matcher.match.return_value = []

        step(capturing(target=3), obs(3, "a", slot=0, timestamp=1.0), sequence_matcher)
        step(capturing(target=2), obs(2, "a", timestamp=1.0), sequence_matcher)

        first, second = sequence_matcher.match.call_args_list
        assert first.args[0] == 3
        assert first.args[2] is True
        assert second.args[2] is False

    def test_resolution_uses_matcher_result(self) -> None:
        sequence_matcher = MagicMock()
        sequence_matcher.match.return_value = [SequenceEntry(names=("a", "b", "c"))]

        result = step(capturing(target=3), obs(3, "a", slot=0, timestamp=1.0), sequence_matcher)

        assert result.session.resolved == ("a", "b", "c")
        assert result.events[1].payload == {"names": ("a", "b", "c")}


class TestStopAndManual:
    """Tests for stop_session and add_manual."""

    def test_stop_keeps_glyphs_and_resets_counters(self) -> None:
        session = capturing("a").model_copy(update={"busy_counter": 7})
        result = stop_session(session, StopReason.CANCELLED)

        assert result.session.state == CaptureState.STOPPED
        assert result.session.captured_names == ["a"]
        assert result.session.busy_counter == 0
        assert result.events[0].payload == {"reason": StopReason.CANCELLED}

    def test_stop_twice_has_no_effect(self) -> None:
        stopped = stop_session(capturing("a"), StopReason.CANCELLED).session
        again = stop_session(stopped, StopReason.LONG_IDLE)
        assert again.events == ()
        assert again.session.stop_reason == StopReason.CANCELLED

    def test_add_manual_appends_without_dedupe(self) -> None:
        session = start_session()
        session = add_manual(session, obs(4, "a", slot=0)).session
        result = add_manual(session, obs(4, "a", slot=0))

        assert result.session.captured_names == ["a", "a"]
        assert result.session.target_length == 4
        assert result.kinds() == [EventKind.GLYPH_CAPTURED]
        assert result.session.state == CaptureState.IDLE

    def test_add_manual_without_glyph(self) -> None:
        session = start_session()
        result = add_manual(session, obs(3))
        assert result.session == session
        assert result.events == ()

    def test_add_manual_resolves(self, matcher: SequenceMatcher) -> None:
        result = add_manual(start_session(), obs(2, "gain"), matcher)
        assert result.session.resolved == ("gain", "xm")
        assert EventKind.SEQUENCE_RESOLVED in result.kinds()
