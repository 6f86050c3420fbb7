"""
REPCOACH Workout Service - Exercise Analyzers

Rule-based phase classification per exercise on top of 2D landmarks.
Each analyzer measures geometry, classifies a raw phase with two-sided
thresholds, debounces it, and reports when a full cycle completes.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

import numpy as np

from .debounce import EventDebouncer, HysteresisDebouncer
from .geometry import calculate_angle, hip_extension_angle, mean_angle, midpoint
from .landmarks import JointType, LandmarkFrame
from .phases import (
    BurpeePhase,
    ExerciseKind,
    GluteBridgePhase,
    JumpingJackPhase,
    Phase,
    PlankPhase,
    PushUpPhase,
    SquatPhase,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# JOINT SETS
# ═══════════════════════════════════════════════════════════════════════════════

SHOULDERS = (JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER)
ELBOWS = (JointType.LEFT_ELBOW, JointType.RIGHT_ELBOW)
WRISTS = (JointType.LEFT_WRIST, JointType.RIGHT_WRIST)
HIPS = (JointType.LEFT_HIP, JointType.RIGHT_HIP)
KNEES = (JointType.LEFT_KNEE, JointType.RIGHT_KNEE)
ANKLES = (JointType.LEFT_ANKLE, JointType.RIGHT_ANKLE)

UPPER_AND_LOWER_BODY = (JointType.NOSE,) + SHOULDERS + ELBOWS + WRISTS + HIPS + KNEES + ANKLES
TRUNK_AND_LEGS = SHOULDERS + HIPS + KNEES + ANKLES


# ═══════════════════════════════════════════════════════════════════════════════
# OUTCOME
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class AnalysisOutcome:
    """What one analyzed frame produced."""
    raw_phase: Phase
    confirmed_phase: Phase
    feedback: str
    form_valid: bool = True
    rep_completed: bool = False
    holding: bool = False
    holding_since: Optional[float] = None
    metrics: Dict[str, Any] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════════
# BASE ANALYZER
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseAnalyzer(ABC):
    """
    Shared pipeline for every exercise.

    Subclasses provide ``measure`` (geometry -> metrics), ``classify``
    (metrics -> raw phase), ``is_cycle_complete`` and ``feedback``.
    The confirmed phase lives in ``self.debouncer``.
    """

    kind: ExerciseKind
    REQUIRED_JOINTS: Tuple[JointType, ...] = UPPER_AND_LOWER_BODY
    THRESHOLDS: Dict[str, float] = {}
    REQUIRED_FRAMES: int = 1
    PER_PHASE_FRAMES: Dict[Phase, int] = {}
    EVENT_FLOOR_SECONDS: float = 0.4
    HOLDING_PHASE: Optional[Phase] = None
    POSITIONING_FEEDBACK = "Position your full body in the frame"

    def __init__(self):
        self.debouncer = HysteresisDebouncer(
            self.kind.initial_phase,
            required_frames=self.REQUIRED_FRAMES,
            per_phase=self.PER_PHASE_FRAMES,
        )
        self.rep_debouncer = EventDebouncer(self.EVENT_FLOOR_SECONDS)

    @property
    def confirmed_phase(self) -> Phase:
        return self.debouncer.confirmed

    def reset(self):
        self.debouncer.reset()
        self.rep_debouncer.reset()

    def interrupt(self):
        """Counting stopped; forget any half-finished cycle."""
        pass

    def analyze(self, frame: LandmarkFrame, counting_enabled: bool, now: float) -> AnalysisOutcome:
        """
        Run one frame through measure -> classify -> debounce -> cycle check.

        Args:
            frame: landmark frame with every required joint present
            counting_enabled: session is active and the counting gate passed
            now: frame time in seconds (monotonic)
        """
        metrics = self._plain(self.measure(frame))
        previous = self.debouncer.confirmed
        raw = self.classify(metrics)
        confirmed = self.debouncer.update(raw, now=now, required=self.required_frames(now))

        rep_completed = False
        if counting_enabled and self.is_cycle_complete(previous, confirmed, metrics):
            floor = self.event_floor(now)
            if self.rep_debouncer.ready(now, floor):
                self.rep_debouncer.mark(now)
                self.on_rep(metrics)
                rep_completed = True
            else:
                logger.debug(
                    f"{self.kind.value}: cycle ignored, {self.rep_debouncer.since_last(now):.3f}s "
                    f"since last rep < {floor}s"
                )

        logger.debug(f"{self.kind.value}: raw={raw.value} confirmed={confirmed.value} {self._format(metrics)}")

        holding = self.HOLDING_PHASE is not None and confirmed == self.HOLDING_PHASE
        return AnalysisOutcome(
            raw_phase=raw,
            confirmed_phase=confirmed,
            feedback=self.feedback(confirmed, metrics),
            form_valid=bool(metrics.get("form_valid", True)),
            rep_completed=rep_completed,
            holding=holding,
            holding_since=self._holding_since() if holding else None,
            metrics=metrics,
        )

    # ── hooks ────────────────────────────────────────────────────────────────

    @abstractmethod
    def measure(self, frame: LandmarkFrame) -> Dict[str, Any]:
        pass

    @abstractmethod
    def classify(self, metrics: Dict[str, Any]) -> Phase:
        pass

    @abstractmethod
    def feedback(self, phase: Phase, metrics: Dict[str, Any]) -> str:
        pass

    def is_cycle_complete(self, previous: Phase, current: Phase, metrics: Dict[str, Any]) -> bool:
        return False

    def on_rep(self, metrics: Dict[str, Any]):
        pass

    def required_frames(self, now: float) -> Optional[int]:
        """Per-frame override of the debounce requirement (None = defaults)."""
        return None

    def event_floor(self, now: float) -> float:
        return self.EVENT_FLOOR_SECONDS

    # ── helpers ──────────────────────────────────────────────────────────────

    def _holding_since(self) -> Optional[float]:
        if self.debouncer.last_raw == self.HOLDING_PHASE:
            return self.debouncer.streak_started_at
        return None

    @staticmethod
    def _point(frame: LandmarkFrame, joint: JointType) -> np.ndarray:
        return frame.get(joint).to_numpy()

    @classmethod
    def _mid(cls, frame: LandmarkFrame, pair: Tuple[JointType, JointType]) -> np.ndarray:
        return midpoint(cls._point(frame, pair[0]), cls._point(frame, pair[1]))

    @classmethod
    def _mean_joint_angle(
        cls,
        frame: LandmarkFrame,
        first: Tuple[JointType, JointType],
        vertex: Tuple[JointType, JointType],
        last: Tuple[JointType, JointType],
    ) -> float:
        """Average of the left and right angle at ``vertex``."""
        return mean_angle(
            calculate_angle(cls._point(frame, first[0]), cls._point(frame, vertex[0]), cls._point(frame, last[0])),
            calculate_angle(cls._point(frame, first[1]), cls._point(frame, vertex[1]), cls._point(frame, last[1])),
        )

    @staticmethod
    def _plain(metrics: Dict[str, Any]) -> Dict[str, Any]:
        """Unwrap numpy scalars so metrics stay JSON-serializable."""
        return {k: v.item() if isinstance(v, np.generic) else v for k, v in metrics.items()}

    @staticmethod
    def _format(metrics: Dict[str, Any]) -> str:
        parts = []
        for key, value in metrics.items():
            if isinstance(value, float):
                parts.append(f"{key}={value:.2f}")
            else:
                parts.append(f"{key}={value}")
        return " ".join(parts)


# ═══════════════════════════════════════════════════════════════════════════════
# UP/DOWN ANALYZERS (push-up, squat)
# ═══════════════════════════════════════════════════════════════════════════════

class _UpDownAnalyzer(ExerciseAnalyzer):
    """
    Single-angle exercises with up/going_down/down/going_up phases.

    A rep is the confirmed transition from down or going_up into up,
    and only after the bottom of the movement was confirmed.
    """

    phases: Type[Enum]
    EVENT_FLOOR_SECONDS = 0.4

    def __init__(self):
        super().__init__()
        self._reached_bottom = False

    def reset(self):
        super().reset()
        self._reached_bottom = False

    def _dead_zone(self) -> Phase:
        # Inherit direction from the confirmed phase
        if self.debouncer.confirmed in (self.phases.UP, self.phases.GOING_DOWN):
            return self.phases.GOING_DOWN
        return self.phases.GOING_UP

    def is_cycle_complete(self, previous: Phase, current: Phase, metrics: Dict[str, Any]) -> bool:
        if current == self.phases.DOWN:
            self._reached_bottom = True
            return False
        return (
            self._reached_bottom
            and previous in (self.phases.DOWN, self.phases.GOING_UP)
            and current == self.phases.UP
            and bool(metrics.get("form_valid", True))
        )

    def on_rep(self, metrics: Dict[str, Any]):
        self._reached_bottom = False

    def interrupt(self):
        self._reached_bottom = False


class PushUpAnalyzer(_UpDownAnalyzer):
    """Mean elbow angle with a straight, horizontal body."""

    kind = ExerciseKind.PUSH_UP
    phases = PushUpPhase
    REQUIRED_JOINTS = UPPER_AND_LOWER_BODY
    THRESHOLDS = {
        "down_angle": 100.0,
        "up_angle": 140.0,
        "min_body_angle": 160.0,
        "max_vertical_gap": 0.15,
    }

    def measure(self, frame: LandmarkFrame) -> Dict[str, Any]:
        elbow = self._mean_joint_angle(frame, SHOULDERS, ELBOWS, WRISTS)
        shoulder = self._mid(frame, SHOULDERS)
        hip = self._mid(frame, HIPS)
        ankle = self._mid(frame, ANKLES)

        body_angle = calculate_angle(shoulder, hip, ankle)
        vertical_gap = abs(hip[1] - shoulder[1]) / frame.upright_height
        body_straight = body_angle >= self.THRESHOLDS["min_body_angle"]
        horizontal = vertical_gap < self.THRESHOLDS["max_vertical_gap"]

        return {
            "elbow_angle": elbow,
            "body_angle": body_angle,
            "vertical_gap": vertical_gap,
            "body_straight": body_straight,
            "horizontal": horizontal,
            "form_valid": body_straight and horizontal,
        }

    def classify(self, metrics: Dict[str, Any]) -> Phase:
        if not metrics["form_valid"]:
            return PushUpPhase.UNKNOWN
        if metrics["elbow_angle"] < self.THRESHOLDS["down_angle"]:
            return PushUpPhase.DOWN
        if metrics["elbow_angle"] > self.THRESHOLDS["up_angle"]:
            return PushUpPhase.UP
        return self._dead_zone()

    def feedback(self, phase: Phase, metrics: Dict[str, Any]) -> str:
        if not metrics["form_valid"]:
            return "Keep body straight - form a plank line"
        return {
            PushUpPhase.UNKNOWN: "Get into push-up position",
            PushUpPhase.UP: "Lower down slowly",
            PushUpPhase.GOING_DOWN: "Keep going down",
            PushUpPhase.DOWN: "Push up explosively",
            PushUpPhase.GOING_UP: "Push up - maintain form",
        }[phase]


class SquatAnalyzer(_UpDownAnalyzer):
    """Mean knee angle; the bottom must reach parallel but not collapse below it."""

    kind = ExerciseKind.SQUAT
    phases = SquatPhase
    REQUIRED_JOINTS = TRUNK_AND_LEGS
    POSITIONING_FEEDBACK = "Position your legs in the frame"
    THRESHOLDS = {
        "down_angle": 100.0,
        "min_depth_angle": 90.0,
        "up_angle": 160.0,
    }

    def measure(self, frame: LandmarkFrame) -> Dict[str, Any]:
        knee = self._mean_joint_angle(frame, HIPS, KNEES, ANKLES)
        return {
            "knee_angle": knee,
            "adequate_depth": knee >= self.THRESHOLDS["min_depth_angle"],
        }

    def classify(self, metrics: Dict[str, Any]) -> Phase:
        knee = metrics["knee_angle"]
        if knee < self.THRESHOLDS["down_angle"] and metrics["adequate_depth"]:
            return SquatPhase.DOWN
        if knee > self.THRESHOLDS["up_angle"]:
            return SquatPhase.UP
        return self._dead_zone()

    def feedback(self, phase: Phase, metrics: Dict[str, Any]) -> str:
        return {
            SquatPhase.UNKNOWN: "Get ready for squats",
            SquatPhase.UP: "Squat down",
            SquatPhase.GOING_DOWN: "Keep going down",
            SquatPhase.DOWN: "Stand up",
            SquatPhase.GOING_UP: "Stand up",
        }[phase]


# ═══════════════════════════════════════════════════════════════════════════════
# PLANK (time-based)
# ═══════════════════════════════════════════════════════════════════════════════

class PlankAnalyzer(ExerciseAnalyzer):
    """
    Composite straightness check; every criterion must pass to hold.

    Confirming a hold takes longer than confirming a break so that a
    brief dip stops the clock quickly but noise cannot start it.
    """

    kind = ExerciseKind.PLANK
    REQUIRED_JOINTS = TRUNK_AND_LEGS
    PER_PHASE_FRAMES = {PlankPhase.HOLDING: 5, PlankPhase.BROKEN: 3}
    REQUIRED_FRAMES = 3
    HOLDING_PHASE = PlankPhase.HOLDING
    POSITIONING_FEEDBACK = "Position your body in frame"
    THRESHOLDS = {
        "max_ankle_shoulder_gap": 0.15,
        "min_body_angle": 160.0,
        "arm_support_tolerance": 0.02,
        "max_hip_shoulder_gap": 0.08,
        "max_knee_hip_gap": 0.06,
        "ideal_body_angle": 165.0,
    }

    def measure(self, frame: LandmarkFrame) -> Dict[str, Any]:
        height = frame.upright_height
        shoulder = self._mid(frame, SHOULDERS)
        hip = self._mid(frame, HIPS)
        knee = self._mid(frame, KNEES)
        ankle = self._mid(frame, ANKLES)

        body_angle = calculate_angle(shoulder, hip, ankle)
        ankle_gap = abs(ankle[1] - shoulder[1]) / height
        hip_gap = abs(hip[1] - shoulder[1]) / height
        knee_gap = abs(knee[1] - hip[1]) / height

        # Lowest of elbows / wrists carries the weight
        support = [
            np.mean([frame.get(a).y, frame.get(b).y])
            for a, b in (ELBOWS, WRISTS)
            if frame.has_all((a, b))
        ]
        support_y = max(support) if support else shoulder[1]
        arms_supporting = support_y >= shoulder[1] - self.THRESHOLDS["arm_support_tolerance"] * height

        checks = {
            "not_standing": ankle_gap < self.THRESHOLDS["max_ankle_shoulder_gap"],
            "body_straight": body_angle >= self.THRESHOLDS["min_body_angle"],
            "arms_supporting": bool(arms_supporting),
            "hips_level": hip_gap < self.THRESHOLDS["max_hip_shoulder_gap"],
            "legs_straight": knee_gap < self.THRESHOLDS["max_knee_hip_gap"],
        }
        return {
            "body_angle": body_angle,
            "ankle_shoulder_gap": ankle_gap,
            "hip_shoulder_gap": hip_gap,
            "knee_hip_gap": knee_gap,
            "hips_sagging": self._below_line(hip, shoulder, ankle),
            **checks,
            "form_valid": all(checks.values()),
        }

    @staticmethod
    def _below_line(point: np.ndarray, start: np.ndarray, end: np.ndarray) -> bool:
        """Whether ``point`` sits lower in the image than the start-end line."""
        dx = end[0] - start[0]
        if dx == 0:
            return False
        line_y = start[1] + (point[0] - start[0]) * (end[1] - start[1]) / dx
        return bool(point[1] > line_y)

    def classify(self, metrics: Dict[str, Any]) -> Phase:
        return PlankPhase.HOLDING if metrics["form_valid"] else PlankPhase.BROKEN

    def feedback(self, phase: Phase, metrics: Dict[str, Any]) -> str:
        body_angle = metrics["body_angle"]
        if phase == PlankPhase.HOLDING:
            if body_angle < self.THRESHOLDS["ideal_body_angle"]:
                return "Good! Straighten hips slightly"
            return "Perfect! Keep holding!"
        if phase == PlankPhase.BROKEN:
            if not metrics["body_straight"]:
                if metrics["hips_sagging"]:
                    return "Lift your hips higher"
                return "Lower your hips - avoid piking"
            return "Align your body straight"
        return "Get into plank position"


# ═══════════════════════════════════════════════════════════════════════════════
# JUMPING JACK
# ═══════════════════════════════════════════════════════════════════════════════

class JumpingJackAnalyzer(ExerciseAnalyzer):
    """
    Arm raise normalized by body height plus ankle vs hip separation.

    Arms lead: legs only veto a phase when they clearly disagree. When
    reps come fast the debounce and rep floor both tighten.
    """

    kind = ExerciseKind.JUMPING_JACK
    REQUIRED_JOINTS = (JointType.NOSE,) + SHOULDERS + WRISTS + HIPS + ANKLES
    REQUIRED_FRAMES = 2
    EVENT_FLOOR_SECONDS = 0.25
    THRESHOLDS = {
        "min_body_height": 50.0,
        "max_body_height": 800.0,
        "min_arm_raise": -200.0,
        "max_arm_raise": 400.0,
        "arms_up_ratio": 0.15,
        "arms_down_ratio": 0.05,
        "legs_apart_ratio": 1.4,
        "legs_together_ratio": 1.1,
        "fast_interval": 0.8,
        "fast_required_frames": 1,
        "fast_event_floor": 0.1,
    }

    def measure(self, frame: LandmarkFrame) -> Dict[str, Any]:
        t = self.THRESHOLDS
        left_shoulder = frame.get(JointType.LEFT_SHOULDER)
        left_ankle = frame.get(JointType.LEFT_ANKLE)
        body_height = float(np.clip(abs(left_shoulder.y - left_ankle.y), t["min_body_height"], t["max_body_height"]))

        shoulder_y = self._mid(frame, SHOULDERS)[1]
        wrist_y = self._mid(frame, WRISTS)[1]
        arm_raise = float(np.clip(shoulder_y - wrist_y, t["min_arm_raise"], t["max_arm_raise"]))

        # Elbows are optional; without them only the wrists decide
        if frame.has_all(ELBOWS):
            elbows_above = bool(self._mid(frame, ELBOWS)[1] < shoulder_y)
        else:
            elbows_above = True

        hip_span = abs(frame.get(JointType.LEFT_HIP).x - frame.get(JointType.RIGHT_HIP).x)
        ankle_span = abs(left_ankle.x - frame.get(JointType.RIGHT_ANKLE).x)
        legs_apart = ankle_span > hip_span * t["legs_apart_ratio"]
        legs_together = ankle_span < hip_span * t["legs_together_ratio"]

        return {
            "body_height": body_height,
            "arm_raise": arm_raise,
            "arms_up": arm_raise > body_height * t["arms_up_ratio"] and elbows_above,
            "arms_down": arm_raise < body_height * t["arms_down_ratio"],
            "legs_apart": legs_apart,
            "legs_together": legs_together,
            "legs_ambiguous": not legs_apart and not legs_together,
        }

    def classify(self, metrics: Dict[str, Any]) -> Phase:
        if metrics["arms_up"] and (metrics["legs_apart"] or metrics["legs_ambiguous"]):
            return JumpingJackPhase.APART
        if metrics["arms_down"] and (metrics["legs_together"] or metrics["legs_ambiguous"]):
            return JumpingJackPhase.TOGETHER
        return self.debouncer.last_raw

    def _is_fast(self, now: float) -> bool:
        since = self.rep_debouncer.since_last(now)
        return since is not None and since < self.THRESHOLDS["fast_interval"]

    def required_frames(self, now: float) -> Optional[int]:
        if self._is_fast(now):
            return int(self.THRESHOLDS["fast_required_frames"])
        return self.REQUIRED_FRAMES

    def event_floor(self, now: float) -> float:
        if self._is_fast(now):
            return self.THRESHOLDS["fast_event_floor"]
        return self.EVENT_FLOOR_SECONDS

    def is_cycle_complete(self, previous: Phase, current: Phase, metrics: Dict[str, Any]) -> bool:
        return previous == JumpingJackPhase.APART and current == JumpingJackPhase.TOGETHER

    def feedback(self, phase: Phase, metrics: Dict[str, Any]) -> str:
        if phase == JumpingJackPhase.TOGETHER:
            return "Jump out!"
        if phase == JumpingJackPhase.APART:
            return "Jump in!"
        return "Keep going!"


# ═══════════════════════════════════════════════════════════════════════════════
# BURPEE
# ═══════════════════════════════════════════════════════════════════════════════

class BurpeeAnalyzer(ExerciseAnalyzer):
    """Coarse standing vs floor detection; a rep is floor -> standing."""

    kind = ExerciseKind.BURPEE
    REQUIRED_JOINTS = UPPER_AND_LOWER_BODY
    EVENT_FLOOR_SECONDS = 1.5
    THRESHOLDS = {
        "max_horizontal_gap": 0.12,
        "min_plank_body_angle": 150.0,
        "min_plank_knee_angle": 130.0,
        "max_squat_knee_angle": 100.0,
        "min_standing_knee_angle": 140.0,
    }

    def measure(self, frame: LandmarkFrame) -> Dict[str, Any]:
        shoulder = self._mid(frame, SHOULDERS)
        hip = self._mid(frame, HIPS)
        ankle = self._mid(frame, ANKLES)
        gap = abs(hip[1] - shoulder[1]) / frame.upright_height
        return {
            "knee_angle": self._mean_joint_angle(frame, HIPS, KNEES, ANKLES),
            "body_angle": calculate_angle(shoulder, hip, ankle),
            "vertical_gap": gap,
            "horizontal": gap < self.THRESHOLDS["max_horizontal_gap"],
        }

    def classify(self, metrics: Dict[str, Any]) -> Phase:
        t = self.THRESHOLDS
        knee = metrics["knee_angle"]
        horizontal = metrics["horizontal"]
        if horizontal and metrics["body_angle"] >= t["min_plank_body_angle"] and knee > t["min_plank_knee_angle"]:
            return BurpeePhase.PLANK
        if horizontal and knee < t["max_squat_knee_angle"]:
            return BurpeePhase.SQUAT_DOWN
        if knee > t["min_standing_knee_angle"] and not horizontal:
            return BurpeePhase.STANDING
        return self.debouncer.confirmed

    def is_cycle_complete(self, previous: Phase, current: Phase, metrics: Dict[str, Any]) -> bool:
        return previous in (BurpeePhase.PLANK, BurpeePhase.SQUAT_DOWN) and current == BurpeePhase.STANDING

    def feedback(self, phase: Phase, metrics: Dict[str, Any]) -> str:
        if phase == BurpeePhase.STANDING:
            return "Squat down and place hands on floor"
        if phase == BurpeePhase.PLANK:
            return "Step or jump feet back to plank, then stand up"
        return "Complete the burpee motion"


# ═══════════════════════════════════════════════════════════════════════════════
# GLUTE BRIDGE
# ═══════════════════════════════════════════════════════════════════════════════

class GluteBridgeAnalyzer(ExerciseAnalyzer):
    """
    Supine hip extension with knee, spine, pelvis and stance checks.

    Counting runs its own two-state cycle on top of the confirmed phase:
    a rep needs the cycle at DOWN and the phase confirmed UP. The cycle
    starts disarmed and arms only when DOWN is confirmed with the hips
    actually lowered while counting, so neither a bridge held from before
    the start nor a wobble near the top counts.

    Spine alignment and stance width compare left/right and shoulder/hip
    x positions, so the camera should see the whole body with the torso
    short in frame (feet toward or away from the camera, or far away).
    """

    kind = ExerciseKind.GLUTE_BRIDGE
    REQUIRED_JOINTS = TRUNK_AND_LEGS
    REQUIRED_FRAMES = 2
    EVENT_FLOOR_SECONDS = 0.6
    POSITIONING_FEEDBACK = "Position your full body in frame"
    THRESHOLDS = {
        "lowered_below": 130.0,
        "bridged_above": 160.0,
        "min_knee_angle": 75.0,
        "max_knee_angle": 130.0,
        "ideal_knee_min": 90.0,
        "ideal_knee_max": 120.0,
        "max_spine_offset": 0.08,
        "max_pelvic_tilt": 0.04,
        "min_stance_ratio": 0.7,
        "max_stance_ratio": 1.3,
    }

    def __init__(self):
        super().__init__()
        self._cycle_state = GluteBridgePhase.UP

    def reset(self):
        super().reset()
        self._cycle_state = GluteBridgePhase.UP

    def interrupt(self):
        self._cycle_state = GluteBridgePhase.UP

    def measure(self, frame: LandmarkFrame) -> Dict[str, Any]:
        t = self.THRESHOLDS
        width, height = frame.frame_size
        ls, rs = frame.get(JointType.LEFT_SHOULDER), frame.get(JointType.RIGHT_SHOULDER)
        lh, rh = frame.get(JointType.LEFT_HIP), frame.get(JointType.RIGHT_HIP)
        la, ra = frame.get(JointType.LEFT_ANKLE), frame.get(JointType.RIGHT_ANKLE)

        shoulder = self._mid(frame, SHOULDERS)
        hip = self._mid(frame, HIPS)
        knee_mid = self._mid(frame, KNEES)

        knee_angle = self._mean_joint_angle(frame, HIPS, KNEES, ANKLES)
        # 0 = straight shoulder-hip-knee line, so flip to read 180 at full extension
        hip_extension = 180.0 - mean_angle(
            hip_extension_angle(ls, lh, frame.get(JointType.LEFT_KNEE)),
            hip_extension_angle(rs, rh, frame.get(JointType.RIGHT_KNEE)),
        )

        shoulder_span = abs(ls.x - rs.x)
        foot_span = abs(la.x - ra.x)
        stance_ok = t["min_stance_ratio"] * shoulder_span <= foot_span <= t["max_stance_ratio"] * shoulder_span

        spine_offset = abs(shoulder[0] - hip[0]) / width
        pelvic_tilt = abs(lh.y - rh.y) / height

        checks = {
            "supine": bool(shoulder[1] > knee_mid[1]),
            "knee_valid": t["min_knee_angle"] <= knee_angle <= t["max_knee_angle"],
            "spine_neutral": spine_offset < t["max_spine_offset"],
            "pelvis_level": pelvic_tilt < t["max_pelvic_tilt"],
            "stance_ok": bool(stance_ok),
        }
        return {
            "hip_extension": hip_extension,
            "knee_angle": knee_angle,
            "spine_offset": spine_offset,
            "pelvic_tilt": pelvic_tilt,
            "hips_lowered": hip_extension < t["lowered_below"],
            "hips_bridged": hip_extension > t["bridged_above"],
            "hips_above_knees": bool(hip[1] < knee_mid[1]),
            **checks,
            "form_valid": all(checks.values()),
        }

    def classify(self, metrics: Dict[str, Any]) -> Phase:
        if not metrics["form_valid"]:
            return GluteBridgePhase.DOWN
        if metrics["hips_bridged"] and metrics["hips_above_knees"]:
            return GluteBridgePhase.UP
        if metrics["hips_lowered"]:
            return GluteBridgePhase.DOWN
        if self.debouncer.confirmed in (GluteBridgePhase.DOWN, GluteBridgePhase.GOING_UP):
            return GluteBridgePhase.GOING_UP
        return GluteBridgePhase.GOING_DOWN

    def is_cycle_complete(self, previous: Phase, current: Phase, metrics: Dict[str, Any]) -> bool:
        if self._cycle_state == GluteBridgePhase.DOWN:
            return current == GluteBridgePhase.UP and metrics["knee_valid"]
        if current == GluteBridgePhase.DOWN and metrics["hips_lowered"]:
            self._cycle_state = GluteBridgePhase.DOWN
            logger.debug("glute_bridge: cycle armed")
        return False

    def on_rep(self, metrics: Dict[str, Any]):
        self._cycle_state = GluteBridgePhase.UP

    def feedback(self, phase: Phase, metrics: Dict[str, Any]) -> str:
        t = self.THRESHOLDS
        knee = metrics["knee_angle"]
        if knee < t["min_knee_angle"]:
            return "Bend knees more - aim for 90-120° for optimal glute activation"
        if knee > t["max_knee_angle"]:
            return "Move feet closer to hips - knees should be around 90-120°"
        if knee < t["ideal_knee_min"]:
            return "Bend knees slightly more for better glute activation"
        if knee > t["ideal_knee_max"]:
            return "Move feet slightly closer for optimal knee position"

        return {
            GluteBridgePhase.DOWN: "Lift hips up - aim for straight body line",
            GluteBridgePhase.GOING_UP: "Keep lifting higher - squeeze glutes at the top",
            GluteBridgePhase.UP: "Perfect! Hold and squeeze glutes",
            GluteBridgePhase.GOING_DOWN: "Lower slowly with control",
        }[phase]


# ═══════════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════════════════════

ANALYZERS: Dict[ExerciseKind, Type[ExerciseAnalyzer]] = {
    ExerciseKind.PUSH_UP: PushUpAnalyzer,
    ExerciseKind.SQUAT: SquatAnalyzer,
    ExerciseKind.PLANK: PlankAnalyzer,
    ExerciseKind.JUMPING_JACK: JumpingJackAnalyzer,
    ExerciseKind.BURPEE: BurpeeAnalyzer,
    ExerciseKind.GLUTE_BRIDGE: GluteBridgeAnalyzer,
}


def create_analyzer(kind: ExerciseKind) -> ExerciseAnalyzer:
    """Fresh analyzer with its own debouncer state."""
    return ANALYZERS[kind]()
