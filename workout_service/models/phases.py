"""
REPCOACH Workout Service - Exercise Kinds and Phases

Each exercise has its own closed set of phases. ``Phase`` is the union
of all of them; an analyzer only ever produces members of its own enum.
"""

from enum import Enum
from typing import Type, Union


class PushUpPhase(Enum):
    UNKNOWN = "unknown"
    UP = "up"
    GOING_DOWN = "going_down"
    DOWN = "down"
    GOING_UP = "going_up"


class SquatPhase(Enum):
    UNKNOWN = "unknown"
    UP = "up"
    GOING_DOWN = "going_down"
    DOWN = "down"
    GOING_UP = "going_up"


class PlankPhase(Enum):
    UNKNOWN = "unknown"
    HOLDING = "holding"
    BROKEN = "broken"


class JumpingJackPhase(Enum):
    UNKNOWN = "unknown"
    TOGETHER = "together"
    APART = "apart"


class BurpeePhase(Enum):
    UNKNOWN = "unknown"
    STANDING = "standing"
    SQUAT_DOWN = "squat_down"
    PLANK = "plank"


class GluteBridgePhase(Enum):
    DOWN = "down"
    GOING_UP = "going_up"
    UP = "up"
    GOING_DOWN = "going_down"


Phase = Union[PushUpPhase, SquatPhase, PlankPhase, JumpingJackPhase, BurpeePhase, GluteBridgePhase]


class ExerciseKind(Enum):
    """Supported exercise types."""
    PUSH_UP = "push_up"
    SQUAT = "squat"
    PLANK = "plank"
    JUMPING_JACK = "jumping_jack"
    BURPEE = "burpee"
    GLUTE_BRIDGE = "glute_bridge"

    @property
    def is_time_based(self) -> bool:
        """Plank is scored in held seconds, everything else in reps."""
        return self is ExerciseKind.PLANK

    @property
    def is_high_cadence(self) -> bool:
        return self is ExerciseKind.JUMPING_JACK

    @property
    def phase_type(self) -> Type[Enum]:
        return _PHASE_TYPES[self]

    @property
    def initial_phase(self) -> Phase:
        return _INITIAL_PHASES[self]

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


_PHASE_TYPES = {
    ExerciseKind.PUSH_UP: PushUpPhase,
    ExerciseKind.SQUAT: SquatPhase,
    ExerciseKind.PLANK: PlankPhase,
    ExerciseKind.JUMPING_JACK: JumpingJackPhase,
    ExerciseKind.BURPEE: BurpeePhase,
    ExerciseKind.GLUTE_BRIDGE: GluteBridgePhase,
}

_INITIAL_PHASES = {
    ExerciseKind.PUSH_UP: PushUpPhase.UNKNOWN,
    ExerciseKind.SQUAT: SquatPhase.UNKNOWN,
    ExerciseKind.PLANK: PlankPhase.UNKNOWN,
    ExerciseKind.JUMPING_JACK: JumpingJackPhase.UNKNOWN,
    ExerciseKind.BURPEE: BurpeePhase.STANDING,
    ExerciseKind.GLUTE_BRIDGE: GluteBridgePhase.DOWN,
}
