"""
REPCOACH Workout Service - Geometry Kernel

Joint angles and helpers on 2D landmark positions.
All functions are pure and never raise for degenerate input.
"""

from typing import Iterable, Tuple, Union

import numpy as np

from .landmarks import Landmark

PointLike = Union[Landmark, Tuple[float, float], np.ndarray]


def _as_point(p: PointLike) -> np.ndarray:
    if isinstance(p, Landmark):
        return p.to_numpy()
    return np.asarray(p, dtype=float)[:2]


def calculate_angle(a: PointLike, b: PointLike, c: PointLike) -> float:
    """
    Calculate angle at point b formed by points a-b-c.

    Uses atan2(|cross|, dot) which stays accurate near 0 and 180 degrees.

    Args:
        a, b, c: 2D points (Landmark, tuple or numpy array)

    Returns:
        Angle in degrees (0-180), 0.0 when a ray has zero length
        or any coordinate is not finite.
    """
    ba = _as_point(a) - _as_point(b)
    bc = _as_point(c) - _as_point(b)

    if not (np.all(np.isfinite(ba)) and np.all(np.isfinite(bc))):
        return 0.0
    if np.linalg.norm(ba) == 0.0 or np.linalg.norm(bc) == 0.0:
        return 0.0

    cross = ba[0] * bc[1] - ba[1] * bc[0]
    dot = float(np.dot(ba, bc))
    return float(np.degrees(np.arctan2(abs(cross), dot)))


def hip_extension_angle(shoulder: PointLike, hip: PointLike, knee: PointLike) -> float:
    """
    Angle between the shoulder->hip and hip->knee direction vectors.

    0 degrees means the three joints are collinear (fully extended);
    larger values mean more flexion at the hip.
    """
    v1 = _as_point(hip) - _as_point(shoulder)
    v2 = _as_point(knee) - _as_point(hip)

    if not (np.all(np.isfinite(v1)) and np.all(np.isfinite(v2))):
        return 0.0
    n1 = np.linalg.norm(v1)
    n2 = np.linalg.norm(v2)
    if n1 == 0.0 or n2 == 0.0:
        return 0.0

    cosine = np.clip(np.dot(v1, v2) / (n1 * n2), -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine)))


def midpoint(a: PointLike, b: PointLike) -> np.ndarray:
    return (_as_point(a) + _as_point(b)) / 2.0


def mean_angle(*angles: float) -> float:
    """Average of the finite angles given; 0.0 when none are usable."""
    values = [a for a in _flatten(angles) if np.isfinite(a)]
    if not values:
        return 0.0
    return float(np.mean(values))


def _flatten(values: Iterable) -> Iterable[float]:
    for v in values:
        if isinstance(v, (list, tuple)):
            yield from _flatten(v)
        else:
            yield float(v)
