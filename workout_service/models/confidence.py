"""
REPCOACH Workout Service - Confidence Gate

Two thresholds on landmark likelihood: a lower one for showing
feedback and a higher one for counting reps or hold time.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np

from core.config import settings

from .landmarks import JointType, LandmarkFrame


@dataclass(frozen=True)
class GateResult:
    """Outcome of checking one frame against the required joints."""
    missing: Tuple[JointType, ...]
    average_confidence: float
    full_body_detected: bool
    can_classify: bool
    ready_to_start: bool

    @property
    def pose_detected(self) -> bool:
        return not self.missing


class ConfidenceGate:

    def __init__(
        self,
        feedback_threshold: Optional[float] = None,
        counting_threshold: Optional[float] = None,
    ):
        self.feedback_threshold = (
            settings.MIN_CONFIDENCE_FOR_FEEDBACK if feedback_threshold is None else feedback_threshold
        )
        self.counting_threshold = (
            settings.MIN_CONFIDENCE_FOR_COUNTING if counting_threshold is None else counting_threshold
        )

    def evaluate(self, frame: LandmarkFrame, required_joints: Iterable[JointType]) -> GateResult:
        required = tuple(required_joints)
        missing = tuple(j for j in required if frame.get(j) is None)
        present = [frame.get(j).likelihood for j in required if frame.get(j) is not None]

        average = float(np.mean(present)) if present else 0.0
        full_body = not missing and all(p >= self.feedback_threshold for p in present)

        return GateResult(
            missing=missing,
            average_confidence=average,
            full_body_detected=full_body,
            can_classify=bool(present) and average >= self.feedback_threshold,
            ready_to_start=full_body and average >= self.counting_threshold,
        )
