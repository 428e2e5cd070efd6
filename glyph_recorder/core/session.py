"""Capture session state machine.

The session moves IDLE -> CAPTURING -> STOPPED. All transitions go through
the pure ``step`` function: it takes the current session and one frame
classification and returns the next session plus the side effects to
dispatch. Nothing here touches threads, clocks or callbacks, so the whole
state machine can be driven tick by tick in tests.

Per tick:

1. A frame read before the session started is stale and skipped.
2. While CAPTURING, a frame that shows more slots than glyphs captured but
   no readable glyph is noise (the glyph is mid-animation) and is skipped.
3. IDLE waits for indicator hexagons to appear; it gives up after
   ``idle_limit`` empty ticks.
4. CAPTURING stops when the hexagons disappear or every slot is filled,
   and gives up after ``busy_limit`` ticks without a glyph.
5. A glyph that differs from the last captured one, and whose frame is
   newer than the last accepted frame, is appended and the sequence
   matcher runs. A single candidate resolves the session.

Example:
    >>> session = start_session()
    >>> result = step(session, FrameClassification(hexagon_count=3), matcher)
    >>> result.session.state
    <CaptureState.CAPTURING: 'capturing'>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from glyph_recorder.models.capture import (
    CapturedGlyph,
    CaptureSession,
    CaptureState,
    EventKind,
    FrameClassification,
    SessionEvent,
    StopReason,
)
from glyph_recorder.recognition.sequences import SequenceMatcher

logger = logging.getLogger(__name__)

# Slot colours are only reliable once there are at least this many hexagons.
INDEX_MIN_HEXAGONS = 3


@dataclass(frozen=True)
class SessionLimits:
    """Tick limits for a capture session.

    Attributes:
        idle_limit: Empty ticks tolerated before any hexagon shows up.
        busy_limit: Glyph-less ticks tolerated while capturing.
    """

    idle_limit: int = 50
    busy_limit: int = 65


@dataclass(frozen=True)
class StepResult:
    """Outcome of one session step.

    Attributes:
        session: The next session state.
        events: Side effects to dispatch, in order.
    """

    session: CaptureSession
    events: tuple[SessionEvent, ...] = ()

    @property
    def stopped(self) -> bool:
        return self.session.state == CaptureState.STOPPED

    def kinds(self) -> list[EventKind]:
        """Event kinds, in order."""
        return [event.kind for event in self.events]


def start_session(target_length: int = 0, started_at: float = float("-inf")) -> CaptureSession:
    """A fresh IDLE session with nothing captured.

    Frames timestamped before ``started_at`` were read for an earlier
    session and are rejected as stale.
    """
    return CaptureSession(target_length=target_length, started_at=started_at)


def stop_session(session: CaptureSession, reason: StopReason) -> StepResult:
    """Move a session to STOPPED.

    Captured glyphs and any resolved sequence are kept; the tick counters
    are cleared. Stopping a stopped session has no effect.
    """
    if session.state == CaptureState.STOPPED:
        return StepResult(session)
    logger.info(f"Capture stopped: {reason} ({len(session.captured)} glyphs captured)")
    stopped = session.model_copy(
        update={
            "state": CaptureState.STOPPED,
            "stop_reason": reason,
            "idle_counter": 0,
            "busy_counter": 0,
        }
    )
    return StepResult(stopped, (SessionEvent(kind=EventKind.STOPPED, payload={"reason": reason}),))


def _is_new_reading(session: CaptureSession, obs: FrameClassification) -> bool:
    last = session.last
    if last is None:
        return True
    if last.name != obs.glyph_name:
        return True
    return obs.hexagon_count >= INDEX_MIN_HEXAGONS and last.slot_index != obs.slot_index


def _step_idle(
    session: CaptureSession, obs: FrameClassification, limits: SessionLimits
) -> tuple[CaptureSession, list[SessionEvent], StopReason | None]:
    if obs.hexagon_count != 0:
        logger.info(f"Capturing started: {obs.hexagon_count} slots")
        session = session.model_copy(
            update={"state": CaptureState.CAPTURING, "target_length": obs.hexagon_count}
        )
        event = SessionEvent(
            kind=EventKind.CAPTURING_STARTED, payload={"target_length": obs.hexagon_count}
        )
        return session, [event], None

    idle = session.idle_counter + 1
    session = session.model_copy(update={"idle_counter": idle})
    if idle > limits.idle_limit:
        logger.info(f"No glyph for {idle} ticks, giving up")
        return session, [SessionEvent(kind=EventKind.LONG_IDLE)], StopReason.LONG_IDLE
    return session, [], None


def _step_capturing(
    session: CaptureSession, obs: FrameClassification, limits: SessionLimits
) -> tuple[CaptureSession, list[SessionEvent], StopReason | None]:
    if obs.hexagon_count == 0:
        return session, [], StopReason.DRAWING_ENDED
    if len(session.captured) == obs.hexagon_count:
        return session, [], StopReason.SLOTS_FILLED
    if obs.glyph_name is None:
        busy = session.busy_counter + 1
        session = session.model_copy(
            update={"busy_counter": busy, "target_length": obs.hexagon_count}
        )
        if busy > limits.busy_limit:
            logger.info(f"No glyph for {busy} ticks while capturing, giving up")
            return session, [SessionEvent(kind=EventKind.LONG_IDLE)], StopReason.LONG_IDLE
    return session, [], None


def _accept(
    session: CaptureSession,
    obs: FrameClassification,
    sequence_matcher: SequenceMatcher | None,
) -> tuple[CaptureSession, list[SessionEvent], StopReason | None]:
    if not _is_new_reading(session, obs):
        return session, [], None

    if obs.timestamp <= session.last_accepted_timestamp:
        logger.info(f"Skipping stale glyph reading: {obs.glyph_name}")
        event = SessionEvent(
            kind=EventKind.STALE_FRAME,
            payload={"glyph": obs.glyph_name, "timestamp": obs.timestamp},
        )
        return session, [event], None

    glyph = CapturedGlyph(name=obs.glyph_name, slot_index=obs.slot_index)
    index = len(session.captured)
    session = session.model_copy(
        update={
            "captured": session.captured + (glyph,),
            "last_accepted_timestamp": obs.timestamp,
        }
    )
    logger.info(f"Glyph captured: {glyph.name} (slot {glyph.slot_index}, #{index})")
    events = [
        SessionEvent(kind=EventKind.GLYPH_CAPTURED, payload={"glyph": glyph, "index": index})
    ]

    session, resolved = _resolve(
        session, sequence_matcher, use_index=obs.hexagon_count >= INDEX_MIN_HEXAGONS
    )
    if resolved is None:
        return session, events, None
    events.append(resolved)
    return session, events, StopReason.RESOLVED


def _resolve(
    session: CaptureSession,
    sequence_matcher: SequenceMatcher | None,
    use_index: bool,
) -> tuple[CaptureSession, SessionEvent | None]:
    if sequence_matcher is None or session.target_length <= 0:
        return session, None

    candidates = sequence_matcher.match(session.target_length, session.captured, use_index)
    if len(candidates) != 1:
        return session, None

    names = candidates[0].names
    logger.info(f"Sequence resolved: {' '.join(names)}")
    session = session.model_copy(update={"resolved": names})
    return session, SessionEvent(kind=EventKind.SEQUENCE_RESOLVED, payload={"names": names})


def add_manual(
    session: CaptureSession,
    obs: FrameClassification,
    sequence_matcher: SequenceMatcher | None = None,
) -> StepResult:
    """Append a manually captured reading without running the state machine.

    The glyph is appended as read, with no dedupe or timestamp check. The
    frame's hexagon count becomes the target length if none is known yet.
    """
    if not obs.glyph_name:
        logger.info("Manual capture found no glyph")
        return StepResult(session)

    if session.target_length == 0 and obs.hexagon_count > 0:
        session = session.model_copy(update={"target_length": obs.hexagon_count})

    glyph = CapturedGlyph(name=obs.glyph_name, slot_index=obs.slot_index)
    index = len(session.captured)
    session = session.model_copy(update={"captured": session.captured + (glyph,)})
    logger.info(f"Glyph added manually: {glyph.name} (slot {glyph.slot_index})")
    events = [
        SessionEvent(kind=EventKind.GLYPH_CAPTURED, payload={"glyph": glyph, "index": index})
    ]

    session, resolved = _resolve(
        session, sequence_matcher, use_index=session.target_length >= INDEX_MIN_HEXAGONS
    )
    if resolved is not None:
        events.append(resolved)
    return StepResult(session, tuple(events))


def step(
    session: CaptureSession,
    obs: FrameClassification,
    sequence_matcher: SequenceMatcher | None = None,
    limits: SessionLimits | None = None,
) -> StepResult:
    """Fold one frame classification into the session.

    Args:
        session: Current session.
        obs: Classification of the frame captured this tick.
        sequence_matcher: Matcher run after each accepted glyph. Matching
            is skipped if None.
        limits: Tick limits. Uses defaults if None.

    Returns:
        The next session and the events to dispatch.
    """
    limits = limits or SessionLimits()

    if session.state == CaptureState.STOPPED:
        return StepResult(session)

    if obs.timestamp < session.started_at:
        logger.info(f"Skipping frame read before the session started: {obs.glyph_name}")
        event = SessionEvent(
            kind=EventKind.STALE_FRAME,
            payload={"glyph": obs.glyph_name, "timestamp": obs.timestamp},
        )
        return StepResult(session, (event,))

    if (
        session.state == CaptureState.CAPTURING
        and obs.hexagon_count != 0
        and obs.glyph_name is None
        and obs.hexagon_count > len(session.captured)
    ):
        logger.debug(f"Noise frame: {obs.hexagon_count} slots, no glyph")
        return StepResult(
            session,
            (SessionEvent(kind=EventKind.NOISE_FRAME, payload={"hexagons": obs.hexagon_count}),),
        )

    if session.state == CaptureState.IDLE:
        session, events, reason = _step_idle(session, obs, limits)
    else:
        session, events, reason = _step_capturing(session, obs, limits)

    if reason is None and session.state == CaptureState.CAPTURING and obs.glyph_name:
        session, accepted, reason = _accept(session, obs, sequence_matcher)
        events.extend(accepted)

    if reason is not None:
        stopped = stop_session(session, reason)
        session = stopped.session
        events.extend(stopped.events)

    logger.debug(
        f"Step: state={session.state}, glyph={obs.glyph_name}, "
        f"slot={obs.slot_index}, hexagons={obs.hexagon_count}"
    )
    return StepResult(session, tuple(events))
