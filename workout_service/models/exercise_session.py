"""
REPCOACH Workout Service - Workout Session

Session lifecycle, rep/hold counters and the per-frame detection result.
Counters only move while the session is active, except through the
manual overrides.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from core.config import Settings, settings as default_settings
from shared.utils import get_now_iso

from .confidence import ConfidenceGate, GateResult
from .landmarks import LandmarkFrame
from .phases import ExerciseKind, Phase
from .pose_analyzer import AnalysisOutcome, ExerciseAnalyzer, create_analyzer

logger = logging.getLogger(__name__)


class WorkoutSessionState(Enum):
    """Workout session states."""
    IDLE = "idle"
    POSITIONING = "positioning"
    COUNTDOWN = "countdown"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


# ═══════════════════════════════════════════════════════════════════════════════
# EVENTS AND RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RepCounted:
    total: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "REP_COUNTED", "total": self.total}


@dataclass(frozen=True)
class TimerUpdated:
    elapsed_seconds: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "TIMER_UPDATED", "elapsed_seconds": self.elapsed_seconds}


WorkoutEvent = Union[RepCounted, TimerUpdated]


@dataclass(frozen=True)
class DetectionResult:
    """Everything the UI needs for one processed frame."""
    pose_detected: bool
    confidence: float
    phase: Optional[Phase]
    feedback: str
    full_body_detected: bool
    ready_to_start: bool
    rep_count: int = 0
    elapsed_seconds: Optional[int] = None
    state: WorkoutSessionState = WorkoutSessionState.IDLE
    events: Tuple[WorkoutEvent, ...] = ()

    @classmethod
    def empty(cls) -> "DetectionResult":
        return cls(
            pose_detected=False,
            confidence=0.0,
            phase=None,
            feedback="",
            full_body_detected=False,
            ready_to_start=False,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "pose_detected": self.pose_detected,
            "confidence": round(self.confidence, 3),
            "phase": self.phase.value if self.phase is not None else None,
            "feedback": self.feedback,
            "full_body_detected": self.full_body_detected,
            "ready_to_start": self.ready_to_start,
            "rep_count": self.rep_count,
            "elapsed_seconds": self.elapsed_seconds,
            "state": self.state.value,
            "events": [event.to_dict() for event in self.events],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# COUNTERS
# ═══════════════════════════════════════════════════════════════════════════════

class RepCounter:
    """Non-negative rep total; only ``reset`` lowers it."""

    def __init__(self):
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    def increment(self, amount: int = 1) -> int:
        self._count += max(0, amount)
        return self._count

    def reset(self):
        self._count = 0


class HoldAccumulator:
    """
    Seconds spent holding, summed across holds.

    Time is taken from the timestamps passed in; nothing runs in the
    background. A new hold may start earlier than the call that reports
    it (the frames that confirmed it) but never before the previous stop.
    """

    def __init__(self):
        self.reset()

    def reset(self):
        self._banked = 0.0
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None
        self._seconds = 0.0

    @property
    def is_running(self) -> bool:
        return self._started_at is not None

    @property
    def seconds(self) -> float:
        return self._seconds

    @property
    def whole_seconds(self) -> int:
        return int(self._seconds)

    def update(self, holding: bool, now: float, since: Optional[float] = None) -> int:
        if not holding:
            self.stop(now)
            return self.whole_seconds

        if self._started_at is None:
            start = now if since is None else min(since, now)
            if self._stopped_at is not None:
                start = max(start, self._stopped_at)
            self._started_at = start
            logger.debug(f"Hold started at {start:.3f} (banked {self._banked:.2f}s)")

        self._seconds = max(self._seconds, self._banked + (now - self._started_at))
        return self.whole_seconds

    def stop(self, now: float):
        if self._started_at is not None:
            self._banked += max(0.0, now - self._started_at)
            self._started_at = None
            self._stopped_at = now
            logger.debug(f"Hold paused at {self._banked:.2f}s")
        self._seconds = max(self._seconds, self._banked)

    def add(self, seconds: float):
        self._banked += seconds
        self._seconds += seconds


# ═══════════════════════════════════════════════════════════════════════════════
# WORKOUT SESSION
# ═══════════════════════════════════════════════════════════════════════════════

S = WorkoutSessionState

# name -> (allowed source states, target state)
_TRANSITIONS: Dict[str, Tuple[Tuple[WorkoutSessionState, ...], WorkoutSessionState]] = {
    "start": ((S.IDLE,), S.POSITIONING),
    "start_countdown": ((S.POSITIONING,), S.COUNTDOWN),
    "activate": ((S.COUNTDOWN,), S.ACTIVE),
    "pause": ((S.ACTIVE,), S.PAUSED),
    "resume": ((S.PAUSED,), S.ACTIVE),
}

IDLE_FEEDBACK = "Tap START to begin"
LOW_CONFIDENCE_FEEDBACK = "Move closer or improve lighting"


def frame_sample_rate(exercise: ExerciseKind, config: Optional[Settings] = None) -> int:
    """Process every Nth camera frame for this exercise."""
    config = config or default_settings
    if exercise.is_high_cadence:
        return max(1, config.HIGH_CADENCE_FRAME_SAMPLE_RATE)
    return max(1, config.FRAME_SAMPLE_RATE)


class WorkoutSession:
    """
    One exercise session: lifecycle, gating, analyzer and counters.

    Usage:
        session = WorkoutSession(ExerciseKind.PUSH_UP, target_reps=10)
        session.start(); session.start_countdown(); session.activate()
        result = session.process_frame(frame)
    """

    def __init__(
        self,
        exercise: ExerciseKind,
        target_reps: Optional[int] = None,
        target_seconds: Optional[int] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())[:8]
        self.exercise = exercise
        self.target_reps = target_reps
        self.target_seconds = target_seconds
        self.settings = settings or default_settings
        self._clock = clock

        self.analyzer: ExerciseAnalyzer = create_analyzer(exercise)
        self.gate = ConfidenceGate(
            feedback_threshold=self.settings.MIN_CONFIDENCE_FOR_FEEDBACK,
            counting_threshold=self.settings.MIN_CONFIDENCE_FOR_COUNTING,
        )
        self.reps = RepCounter()
        self.hold = HoldAccumulator()

        self._state = WorkoutSessionState.IDLE
        self._counting_since: Optional[float] = None
        self._auto_paused = False
        self._reported_seconds = 0
        self._disposed = False
        self._lock = threading.RLock()
        self.created_at = get_now_iso()

        logger.info(f"🏋️ Session {self.session_id} created ({exercise.value})")

    # ── accessors ────────────────────────────────────────────────────────────

    @property
    def state(self) -> WorkoutSessionState:
        return self._state

    @property
    def rep_count(self) -> int:
        return self.reps.count

    @property
    def elapsed_seconds(self) -> int:
        return self.hold.whole_seconds

    @property
    def confirmed_phase(self) -> Phase:
        return self.analyzer.confirmed_phase

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def sample_rate(self) -> int:
        return frame_sample_rate(self.exercise, self.settings)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "session_id": self.session_id,
            "exercise": self.exercise.value,
            "state": self._state.value,
            "rep_count": self.rep_count,
            "elapsed_seconds": self.elapsed_seconds if self.exercise.is_time_based else None,
            "confirmed_phase": self.confirmed_phase.value,
            "target_reps": self.target_reps,
            "target_seconds": self.target_seconds,
            "time_based": self.exercise.is_time_based,
            "sample_rate": self.sample_rate,
            "created_at": self.created_at,
        }

    # ── lifecycle ────────────────────────────────────────────────────────────

    def start(self) -> bool:
        """idle -> positioning, with fresh counters and analyzer."""
        with self._lock:
            if not self._can("start"):
                return False
            self._clear()
            return self._transition("start")

    def start_countdown(self) -> bool:
        with self._lock:
            return self._can("start_countdown") and self._transition("start_countdown")

    def activate(self) -> bool:
        with self._lock:
            return self._can("activate") and self._transition("activate")

    def pause(self) -> bool:
        with self._lock:
            if not self._can("pause"):
                return False
            self._auto_paused = False
            self._halt_counting(self._clock())
            return self._transition("pause")

    def resume(self) -> bool:
        with self._lock:
            if not self._can("resume"):
                return False
            self._auto_paused = False
            return self._transition("resume")

    def stop(self) -> bool:
        """Any state -> idle. Counts stay readable until the next start."""
        with self._lock:
            if self._disposed:
                return False
            self._halt_counting(self._clock())
            self._auto_paused = False
            self._set_state(WorkoutSessionState.IDLE, "stop")
            return True

    def reset(self) -> bool:
        """Any state -> idle with counters and analyzer cleared."""
        with self._lock:
            if self._disposed:
                return False
            self._clear()
            self._set_state(WorkoutSessionState.IDLE, "reset")
            return True

    def dispose(self):
        with self._lock:
            self._disposed = True
            self._counting_since = None
            logger.info(f"🗑️ Session {self.session_id} disposed")

    # ── manual overrides ─────────────────────────────────────────────────────

    def add_manual_rep(self) -> Optional[RepCounted]:
        """Count one rep by hand; bypasses the analyzer and rep floor."""
        with self._lock:
            if not self._manual_allowed("rep"):
                return None
            event = RepCounted(self.reps.increment())
            logger.info(f"✋ Manual rep: {event.total}")
            self._check_target(self._clock())
            return event

    def add_manual_second(self) -> Optional[TimerUpdated]:
        """Add one held second by hand."""
        with self._lock:
            if not self._manual_allowed("second"):
                return None
            self.hold.add(1.0)
            self._reported_seconds = self.hold.whole_seconds
            event = TimerUpdated(self._reported_seconds)
            logger.info(f"✋ Manual second: {event.elapsed_seconds}s")
            self._check_target(self._clock())
            return event

    # ── frames ───────────────────────────────────────────────────────────────

    def process_frame(self, frame: LandmarkFrame, now: Optional[float] = None) -> DetectionResult:
        """
        Analyze one landmark frame and return its DetectionResult.

        ``now`` defaults to the frame timestamp, then to the session clock.
        """
        with self._lock:
            if self._disposed:
                return DetectionResult.empty()
            if now is None:
                now = frame.timestamp if frame.timestamp is not None else self._clock()

            gate = self.gate.evaluate(frame, self.analyzer.REQUIRED_JOINTS)

            if self._state == WorkoutSessionState.IDLE:
                return self._result(gate, IDLE_FEEDBACK, now, pose_detected=gate.pose_detected)

            self._auto_pause_or_resume(gate, now)

            if gate.missing:
                self._halt_counting(now)
                logger.debug(f"Session {self.session_id}: missing {[j.name.lower() for j in gate.missing]}")
                return self._result(
                    gate, self.analyzer.POSITIONING_FEEDBACK, now, pose_detected=False, confidence=0.0
                )

            if not gate.can_classify:
                self._halt_counting(now)
                return self._result(gate, LOW_CONFIDENCE_FEEDBACK, now)

            counting = self._state == WorkoutSessionState.ACTIVE and gate.ready_to_start
            if not counting:
                self._halt_counting(now)
            elif self._counting_since is None:
                self._counting_since = now

            outcome = self.analyzer.analyze(frame, counting, now)
            events = self._apply(outcome, now) if counting else []

            if self._state == WorkoutSessionState.POSITIONING:
                feedback = self._positioning_feedback(gate)
            else:
                feedback = outcome.feedback
            return self._result(gate, feedback, now, events=events)

    # ── internals ────────────────────────────────────────────────────────────

    def _apply(self, outcome: AnalysisOutcome, now: float) -> List[WorkoutEvent]:
        events: List[WorkoutEvent] = []

        if outcome.rep_completed:
            total = self.reps.increment()
            events.append(RepCounted(total))
            logger.info(f"✅ {self.exercise.value} rep {total} (session {self.session_id})")

        if self.exercise.is_time_based:
            since = outcome.holding_since
            if since is not None and self._counting_since is not None:
                since = max(since, self._counting_since)
            seconds = self.hold.update(outcome.holding, now, since)
            if seconds != self._reported_seconds:
                self._reported_seconds = seconds
                events.append(TimerUpdated(seconds))
                logger.info(f"⏱️ {self.exercise.value} hold {seconds}s (session {self.session_id})")

        self._check_target(now)
        return events

    def _check_target(self, now: float):
        if self._state not in (WorkoutSessionState.ACTIVE, WorkoutSessionState.PAUSED):
            return
        reached = (
            (self.target_reps is not None and self.reps.count >= self.target_reps)
            or (self.target_seconds is not None and self.hold.whole_seconds >= self.target_seconds)
        )
        if reached:
            self._halt_counting(now)
            self._set_state(WorkoutSessionState.COMPLETED, "target reached")
            logger.info(
                f"🎉 Session {self.session_id} completed: "
                f"{self.reps.count} reps, {self.hold.whole_seconds}s"
            )

    def _auto_pause_or_resume(self, gate: GateResult, now: float):
        if not self.settings.AUTO_PAUSE_ON_BODY_LOSS:
            return
        body_ok = gate.full_body_detected and gate.ready_to_start
        if self._state == WorkoutSessionState.ACTIVE and not body_ok:
            self._halt_counting(now)
            self._auto_paused = True
            self._set_state(WorkoutSessionState.PAUSED, "body lost")
        elif self._state == WorkoutSessionState.PAUSED and self._auto_paused and body_ok:
            self._auto_paused = False
            self._set_state(WorkoutSessionState.ACTIVE, "body back in frame")

    def _positioning_feedback(self, gate: GateResult) -> str:
        if not gate.full_body_detected:
            return "Show your whole body in frame"
        if gate.average_confidence < self.gate.counting_threshold:
            return LOW_CONFIDENCE_FEEDBACK
        return "Ready to start!"

    def _halt_counting(self, now: float):
        self._counting_since = None
        self.hold.stop(now)
        self.analyzer.interrupt()

    def _clear(self):
        self.reps.reset()
        self.hold.reset()
        self.analyzer.reset()
        self._counting_since = None
        self._auto_paused = False
        self._reported_seconds = 0

    def _manual_allowed(self, what: str) -> bool:
        if self._disposed or self._state == WorkoutSessionState.COMPLETED:
            logger.warning(f"⚠️ Manual {what} rejected in state {self._state.value} (session {self.session_id})")
            return False
        return True

    def _can(self, name: str) -> bool:
        sources, target = _TRANSITIONS[name]
        if self._disposed or self._state not in sources:
            logger.warning(
                f"⚠️ Rejected {name}: {self._state.value} -> {target.value} "
                f"(session {self.session_id}{', disposed' if self._disposed else ''})"
            )
            return False
        return True

    def _transition(self, name: str) -> bool:
        self._set_state(_TRANSITIONS[name][1], name)
        return True

    def _set_state(self, state: WorkoutSessionState, reason: str):
        if state != self._state:
            logger.info(f"🔄 Session {self.session_id}: {self._state.value} -> {state.value} ({reason})")
        self._state = state

    def _result(
        self,
        gate: GateResult,
        feedback: str,
        now: float,
        pose_detected: bool = True,
        confidence: Optional[float] = None,
        events: Optional[List[WorkoutEvent]] = None,
    ) -> DetectionResult:
        return DetectionResult(
            pose_detected=pose_detected,
            confidence=gate.average_confidence if confidence is None else confidence,
            phase=self.analyzer.confirmed_phase,
            feedback=feedback,
            full_body_detected=gate.full_body_detected,
            ready_to_start=gate.ready_to_start,
            rep_count=self.reps.count,
            elapsed_seconds=self.hold.whole_seconds if self.exercise.is_time_based else None,
            state=self._state,
            events=tuple(events or ()),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# SESSION HANDLER
# ═══════════════════════════════════════════════════════════════════════════════

class SessionLimitReached(RuntimeError):
    """Raised when MAX_ACTIVE_SESSIONS sessions already exist."""


class WorkoutSessionHandler:
    """
    Keeps live workout sessions by id.

    Features:
    - Bounded number of concurrent sessions
    - Thread-safe create / get / dispose
    """

    def __init__(self, settings: Optional[Settings] = None, clock: Callable[[], float] = time.monotonic):
        self.settings = settings or default_settings
        self._clock = clock
        self.active_sessions: Dict[str, WorkoutSession] = {}
        self._lock = threading.Lock()

    def create_session(
        self,
        exercise: ExerciseKind,
        target_reps: Optional[int] = None,
        target_seconds: Optional[int] = None,
    ) -> WorkoutSession:
        """
        Create a new workout session.

        Raises:
            SessionLimitReached: when the handler is full
        """
        with self._lock:
            if len(self.active_sessions) >= self.settings.MAX_ACTIVE_SESSIONS:
                raise SessionLimitReached(
                    f"Session limit reached ({self.settings.MAX_ACTIVE_SESSIONS})"
                )
            session = WorkoutSession(
                exercise,
                target_reps=target_reps,
                target_seconds=target_seconds,
                settings=self.settings,
                clock=self._clock,
            )
            self.active_sessions[session.session_id] = session
        return session

    def get_session(self, session_id: str) -> Optional[WorkoutSession]:
        """Get session by ID."""
        return self.active_sessions.get(session_id)

    def dispose_session(self, session_id: str) -> bool:
        with self._lock:
            session = self.active_sessions.pop(session_id, None)
        if session is None:
            return False
        session.dispose()
        return True

    def list_sessions(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in list(self.active_sessions.values())]

    @property
    def session_count(self) -> int:
        return len(self.active_sessions)

    def get_stats(self) -> Dict[str, Any]:
        """Session counts by state and by exercise."""
        by_state: Dict[str, int] = {}
        by_exercise: Dict[str, int] = {}
        for session in list(self.active_sessions.values()):
            by_state[session.state.value] = by_state.get(session.state.value, 0) + 1
            by_exercise[session.exercise.value] = by_exercise.get(session.exercise.value, 0) + 1
        return {
            "active_sessions": self.session_count,
            "max_sessions": self.settings.MAX_ACTIVE_SESSIONS,
            "by_state": by_state,
            "by_exercise": by_exercise,
        }

    def clear(self):
        with self._lock:
            sessions = list(self.active_sessions.values())
            self.active_sessions.clear()
        for session in sessions:
            session.dispose()


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_handler_instance: Optional[WorkoutSessionHandler] = None


def get_session_handler() -> WorkoutSessionHandler:
    """Get or create the global session handler instance."""
    global _handler_instance
    if _handler_instance is None:
        _handler_instance = WorkoutSessionHandler()
    return _handler_instance
