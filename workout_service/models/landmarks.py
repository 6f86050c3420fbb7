"""
REPCOACH Workout Service - Landmark Frames

2D body landmarks as produced by an external pose-estimation model
(ML Kit / MediaPipe BlazePose topology).
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class JointType(Enum):
    """Body joint types for pose estimation."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32

    @classmethod
    def from_name(cls, name: str) -> Optional["JointType"]:
        """Parse "left_shoulder" / "leftShoulder" / "LEFT_SHOULDER"."""
        key = name.strip()
        if not key:
            return None
        # camelCase -> snake_case
        snake = "".join(f"_{ch}" if ch.isupper() and i > 0 and key[i - 1].islower() else ch
                        for i, ch in enumerate(key))
        return cls.__members__.get(snake.upper())


@dataclass(frozen=True)
class Landmark:
    """A single tracked joint: pixel position plus likelihood in [0, 1]."""
    x: float
    y: float
    likelihood: float

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.likelihood)

    def to_numpy(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)


@dataclass(frozen=True)
class LandmarkFrame:
    """
    One pose-model output for one camera frame.

    Coordinates are in source-image pixels. ``rotation`` is the camera
    rotation hint in degrees; for 90/270 the upright frame is height x width.
    """
    landmarks: Mapping[JointType, Landmark]
    width: float
    height: float
    rotation: int = 0
    timestamp: Optional[float] = None

    def __post_init__(self):
        usable = {
            joint: lm for joint, lm in dict(self.landmarks).items()
            if isinstance(joint, JointType) and lm.is_finite
        }
        object.__setattr__(self, "landmarks", MappingProxyType(usable))

    def get(self, joint: JointType) -> Optional[Landmark]:
        return self.landmarks.get(joint)

    def has_all(self, joints: Iterable[JointType]) -> bool:
        return all(joint in self.landmarks for joint in joints)

    @property
    def frame_size(self) -> Tuple[float, float]:
        """Upright (width, height) used to normalize coordinates."""
        width = self.width if self.width > 0 else 1.0
        height = self.height if self.height > 0 else 1.0
        if self.rotation % 180 == 90:
            return height, width
        return width, height

    @property
    def upright_width(self) -> float:
        return self.frame_size[0]

    @property
    def upright_height(self) -> float:
        return self.frame_size[1]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LandmarkFrame":
        """
        Build a frame from a JSON-style payload.

        Expected shape:
            {"width": 720, "height": 1280, "rotation": 0,
             "landmarks": {"left_shoulder": {"x": .., "y": .., "likelihood": ..}, ...}}

        Unknown joint names and malformed entries are dropped, so a bad
        payload degrades to "joint missing" rather than failing. Frame
        size and rotation that do not parse read as 0, a bad timestamp
        as None.
        """
        landmarks: Dict[JointType, Landmark] = {}
        for name, value in (data.get("landmarks") or {}).items():
            joint = JointType.from_name(str(name))
            if joint is None:
                logger.debug(f"Ignoring unknown landmark '{name}'")
                continue
            try:
                landmarks[joint] = Landmark(
                    x=float(value["x"]),
                    y=float(value["y"]),
                    likelihood=float(value.get("likelihood", value.get("visibility", 0.0))),
                )
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.debug(f"Dropping malformed landmark '{name}': {value!r}")

        return cls(
            landmarks=landmarks,
            width=_coerce(data.get("width"), float, 0.0),
            height=_coerce(data.get("height"), float, 0.0),
            rotation=_coerce(data.get("rotation"), int, 0),
            timestamp=_coerce(data.get("timestamp"), float, None),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert landmarks to a JSON-serializable dict (for overlays)."""
        return {
            "width": self.width,
            "height": self.height,
            "rotation": self.rotation,
            "landmarks": {
                joint.name.lower(): {"x": lm.x, "y": lm.y, "likelihood": lm.likelihood}
                for joint, lm in self.landmarks.items()
            },
        }


def _coerce(value: Any, cast, default):
    """``cast(value)``, or ``default`` for None, junk and non-finite numbers."""
    if value is None:
        return default
    try:
        result = cast(value)
    except (TypeError, ValueError, OverflowError):
        logger.debug(f"Ignoring unparseable frame field {value!r}")
        return default
    if isinstance(result, float) and not math.isfinite(result):
        return default
    return result
