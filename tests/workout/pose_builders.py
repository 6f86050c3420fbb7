# tests/workout/pose_builders.py
# Synthetic landmark frames with known joint angles for the workout tests

import math
from typing import Dict, Iterable, Optional, Tuple

from workout_service.models import JointType, Landmark, LandmarkFrame

J = JointType

Point = Tuple[float, float]

WIDTH = 1000.0
HEIGHT = 1000.0


def make_frame(
    points: Dict[JointType, Point],
    likelihood: float = 0.95,
    timestamp: Optional[float] = None,
    width: float = WIDTH,
    height: float = HEIGHT,
    drop: Iterable[JointType] = (),
) -> LandmarkFrame:
    """Frame from {joint: (x, y)} with one likelihood for every joint."""
    dropped = set(drop)
    landmarks = {
        joint: Landmark(x=float(x), y=float(y), likelihood=likelihood)
        for joint, (x, y) in points.items()
        if joint not in dropped
    }
    return LandmarkFrame(landmarks=landmarks, width=width, height=height, timestamp=timestamp)


def both_sides(left: J, right: J, point: Point, offset: float = 0.0) -> Dict[JointType, Point]:
    return {left: point, right: (point[0] + offset, point[1])}


def _limb_end(vertex: Point, angle_deg: float, length: float = 100.0) -> Point:
    # The first ray always points straight up from the vertex
    theta = math.radians(angle_deg)
    return (vertex[0] + length * math.sin(theta), vertex[1] - length * math.cos(theta))


# ── push-up ──────────────────────────────────────────────────────────────────

def push_up_points(elbow_angle: float, hip_drop: float = 0.0) -> Dict[JointType, Point]:
    """Horizontal body at y=400 with the given elbow angle."""
    elbow = (300.0, 500.0)
    points = {J.NOSE: (250.0, 400.0)}
    points.update(both_sides(J.LEFT_SHOULDER, J.RIGHT_SHOULDER, (300.0, 400.0)))
    points.update(both_sides(J.LEFT_ELBOW, J.RIGHT_ELBOW, elbow))
    points.update(both_sides(J.LEFT_WRIST, J.RIGHT_WRIST, _limb_end(elbow, elbow_angle)))
    points.update(both_sides(J.LEFT_HIP, J.RIGHT_HIP, (500.0, 400.0 + hip_drop)))
    points.update(both_sides(J.LEFT_KNEE, J.RIGHT_KNEE, (600.0, 400.0)))
    points.update(both_sides(J.LEFT_ANKLE, J.RIGHT_ANKLE, (700.0, 400.0)))
    return points


def push_up_frame(elbow_angle: float, **kwargs) -> LandmarkFrame:
    hip_drop = kwargs.pop("hip_drop", 0.0)
    return make_frame(push_up_points(elbow_angle, hip_drop), **kwargs)


# ── squat ────────────────────────────────────────────────────────────────────

def squat_frame(knee_angle: float, **kwargs) -> LandmarkFrame:
    """Side view: hip straight above the knee, shin rotated to ``knee_angle``."""
    knee = (500.0, 600.0)
    points = {}
    points.update(both_sides(J.LEFT_SHOULDER, J.RIGHT_SHOULDER, (500.0, 200.0)))
    points.update(both_sides(J.LEFT_HIP, J.RIGHT_HIP, (500.0, 400.0)))
    points.update(both_sides(J.LEFT_KNEE, J.RIGHT_KNEE, knee))
    points.update(both_sides(J.LEFT_ANKLE, J.RIGHT_ANKLE, _limb_end(knee, knee_angle, 200.0)))
    return make_frame(points, **kwargs)


# ── plank ────────────────────────────────────────────────────────────────────

def plank_points(hip_y: float = 600.0) -> Dict[JointType, Point]:
    points = {J.NOSE: (250.0, 600.0)}
    points.update(both_sides(J.LEFT_SHOULDER, J.RIGHT_SHOULDER, (300.0, 600.0)))
    points.update(both_sides(J.LEFT_ELBOW, J.RIGHT_ELBOW, (300.0, 700.0)))
    points.update(both_sides(J.LEFT_WRIST, J.RIGHT_WRIST, (300.0, 750.0)))
    points.update(both_sides(J.LEFT_HIP, J.RIGHT_HIP, (500.0, hip_y)))
    points.update(both_sides(J.LEFT_KNEE, J.RIGHT_KNEE, (600.0, 600.0)))
    points.update(both_sides(J.LEFT_ANKLE, J.RIGHT_ANKLE, (700.0, 600.0)))
    return points


def plank_frame(hip_y: float = 600.0, **kwargs) -> LandmarkFrame:
    """Straight plank by default; hip_y 700 sags, hip_y 500 pikes."""
    return make_frame(plank_points(hip_y), **kwargs)


def standing_points() -> Dict[JointType, Point]:
    points = {J.NOSE: (500.0, 150.0)}
    points.update(both_sides(J.LEFT_SHOULDER, J.RIGHT_SHOULDER, (480.0, 250.0), 40.0))
    points.update(both_sides(J.LEFT_ELBOW, J.RIGHT_ELBOW, (480.0, 350.0), 40.0))
    points.update(both_sides(J.LEFT_WRIST, J.RIGHT_WRIST, (480.0, 450.0), 40.0))
    points.update(both_sides(J.LEFT_HIP, J.RIGHT_HIP, (480.0, 500.0), 40.0))
    points.update(both_sides(J.LEFT_KNEE, J.RIGHT_KNEE, (480.0, 700.0), 40.0))
    points.update(both_sides(J.LEFT_ANKLE, J.RIGHT_ANKLE, (480.0, 900.0), 40.0))
    return points


def standing_frame(**kwargs) -> LandmarkFrame:
    return make_frame(standing_points(), **kwargs)


# ── jumping jack ─────────────────────────────────────────────────────────────

def jumping_jack_frame(
    arms: str = "down",
    legs: str = "together",
    with_elbows: bool = False,
    **kwargs,
) -> LandmarkFrame:
    """
    Front view, shoulders at y=300 and ankles at y=900 (body height 600).

    arms: "up" (wrists 200px above shoulders), "down" (wrists at hips)
    or "mid" (50px above shoulders, between both thresholds).
    legs: "together" or "apart".
    """
    wrist_y = {"up": 100.0, "down": 550.0, "mid": 250.0}[arms]
    ankle_x = (470.0, 530.0) if legs == "together" else (350.0, 650.0)

    points = {
        J.NOSE: (500.0, 250.0),
        J.LEFT_SHOULDER: (450.0, 300.0),
        J.RIGHT_SHOULDER: (550.0, 300.0),
        J.LEFT_WRIST: (400.0, wrist_y),
        J.RIGHT_WRIST: (600.0, wrist_y),
        J.LEFT_HIP: (470.0, 550.0),
        J.RIGHT_HIP: (530.0, 550.0),
        J.LEFT_ANKLE: (ankle_x[0], 900.0),
        J.RIGHT_ANKLE: (ankle_x[1], 900.0),
    }
    if with_elbows:
        elbow_y = 200.0 if arms == "up" else 420.0
        points[J.LEFT_ELBOW] = (420.0, elbow_y)
        points[J.RIGHT_ELBOW] = (580.0, elbow_y)
    return make_frame(points, **kwargs)


# ── burpee ───────────────────────────────────────────────────────────────────

def squat_down_points() -> Dict[JointType, Point]:
    """Crouched with hands on the floor: trunk level, knees near 65 degrees."""
    points = {J.NOSE: (350.0, 600.0)}
    points.update(both_sides(J.LEFT_SHOULDER, J.RIGHT_SHOULDER, (400.0, 600.0)))
    points.update(both_sides(J.LEFT_ELBOW, J.RIGHT_ELBOW, (420.0, 700.0)))
    points.update(both_sides(J.LEFT_WRIST, J.RIGHT_WRIST, (420.0, 780.0)))
    points.update(both_sides(J.LEFT_HIP, J.RIGHT_HIP, (500.0, 620.0)))
    points.update(both_sides(J.LEFT_KNEE, J.RIGHT_KNEE, (430.0, 680.0)))
    points.update(both_sides(J.LEFT_ANKLE, J.RIGHT_ANKLE, (520.0, 720.0)))
    return points


_BURPEE_POSES = {
    "standing": standing_points,
    "squat_down": squat_down_points,
    "plank": plank_points,
}


def burpee_frame(position: str, **kwargs) -> LandmarkFrame:
    """``position`` is "standing", "squat_down" or "plank"."""
    return make_frame(_BURPEE_POSES[position](), **kwargs)


# ── glute bridge ─────────────────────────────────────────────────────────────

_GLUTE_POSES = {
    # shoulder, hip, knee, ankle (left side; right side is 10px to the right)
    "down": ((10.0, 640.0), (400.0, 700.0), (520.0, 540.0), (680.0, 700.0)),
    "up": ((10.0, 640.0), (420.0, 525.0), (560.0, 530.0), (640.0, 680.0)),
    # hips nearly extended but still below the knees
    "wobble": ((10.0, 640.0), (420.0, 560.0), (560.0, 530.0), (640.0, 680.0)),
}


def glute_bridge_frame(pose: str, scale: float = 0.1, stance: float = 1.0, **kwargs) -> LandmarkFrame:
    """
    Supine side view: "down" (hips lowered), "up" (bridged) or "wobble".

    ``scale`` shrinks the pose about (500, 500); at the default the
    shoulder-to-hip run is about 4% of the frame width. ``stance`` is
    foot width over shoulder width.
    """
    def place(point: Point) -> Point:
        return (500.0 + scale * point[0], 500.0 + scale * point[1])

    shoulder, hip, knee, ankle = (place(p) for p in _GLUTE_POSES[pose])
    points = {}
    points.update(both_sides(J.LEFT_SHOULDER, J.RIGHT_SHOULDER, shoulder, 10.0))
    points.update(both_sides(J.LEFT_HIP, J.RIGHT_HIP, hip, 10.0))
    points.update(both_sides(J.LEFT_KNEE, J.RIGHT_KNEE, knee, 10.0))
    points.update(both_sides(J.LEFT_ANKLE, J.RIGHT_ANKLE, ankle, 10.0 * stance))
    return make_frame(points, **kwargs)


# ── feeding helpers ──────────────────────────────────────────────────────────

class FrameClock:
    """Hands out evenly spaced timestamps."""

    def __init__(self, step: float = 0.1, start: float = 0.0):
        self.step = step
        self._index = 0
        self._start = start

    def __call__(self) -> float:
        now = self._start + self._index * self.step
        self._index += 1
        return now

    @property
    def last(self) -> float:
        return self._start + (self._index - 1) * self.step


def feed(target, frame_factory, count: int, clock: FrameClock, **kwargs):
    """
    Feed ``count`` frames to an analyzer (``analyze``) or a session
    (``process_frame``) and return the list of outputs.
    """
    outputs = []
    for _ in range(count):
        now = clock()
        frame = frame_factory(**kwargs)
        if hasattr(target, "process_frame"):
            outputs.append(target.process_frame(frame, now=now))
        else:
            outputs.append(target.analyze(frame, True, now))
    return outputs
