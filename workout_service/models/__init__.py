"""
REPCOACH Workout Service Models

Rule-based rep counting and hold timing on 2D pose landmarks.
"""

from .landmarks import JointType, Landmark, LandmarkFrame
from .phases import (
    ExerciseKind,
    Phase,
    PushUpPhase,
    SquatPhase,
    PlankPhase,
    JumpingJackPhase,
    BurpeePhase,
    GluteBridgePhase,
)
from .geometry import calculate_angle, hip_extension_angle, midpoint, mean_angle
from .confidence import ConfidenceGate, GateResult
from .debounce import HysteresisDebouncer, EventDebouncer
from .pose_analyzer import (
    AnalysisOutcome,
    ExerciseAnalyzer,
    PushUpAnalyzer,
    SquatAnalyzer,
    PlankAnalyzer,
    JumpingJackAnalyzer,
    BurpeeAnalyzer,
    GluteBridgeAnalyzer,
    ANALYZERS,
    create_analyzer,
)
from .exercise_session import (
    WorkoutSession,
    WorkoutSessionHandler,
    WorkoutSessionState,
    DetectionResult,
    RepCounted,
    TimerUpdated,
    RepCounter,
    HoldAccumulator,
    SessionLimitReached,
    frame_sample_rate,
    get_session_handler,
)

__all__ = [
    # Landmarks
    "JointType",
    "Landmark",
    "LandmarkFrame",
    # Phases
    "ExerciseKind",
    "Phase",
    "PushUpPhase",
    "SquatPhase",
    "PlankPhase",
    "JumpingJackPhase",
    "BurpeePhase",
    "GluteBridgePhase",
    # Geometry
    "calculate_angle",
    "hip_extension_angle",
    "midpoint",
    "mean_angle",
    # Gating / debounce
    "ConfidenceGate",
    "GateResult",
    "HysteresisDebouncer",
    "EventDebouncer",
    # Analyzers
    "AnalysisOutcome",
    "ExerciseAnalyzer",
    "PushUpAnalyzer",
    "SquatAnalyzer",
    "PlankAnalyzer",
    "JumpingJackAnalyzer",
    "BurpeeAnalyzer",
    "GluteBridgeAnalyzer",
    "ANALYZERS",
    "create_analyzer",
    # Session
    "WorkoutSession",
    "WorkoutSessionHandler",
    "WorkoutSessionState",
    "DetectionResult",
    "RepCounted",
    "TimerUpdated",
    "RepCounter",
    "HoldAccumulator",
    "SessionLimitReached",
    "frame_sample_rate",
    "get_session_handler",
]
