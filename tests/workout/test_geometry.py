# tests/workout/test_geometry.py
# Unit tests for workout_service/models/geometry.py and landmarks.py

import math

import numpy as np
import pytest

from workout_service.models import (
    JointType,
    Landmark,
    LandmarkFrame,
    calculate_angle,
    hip_extension_angle,
    mean_angle,
    midpoint,
)


class TestCalculateAngle:
    """Angle at the middle point"""

    def test_right_angle(self):
        assert calculate_angle((0, 1), (0, 0), (1, 0)) == pytest.approx(90.0)

    def test_straight_line(self):
        assert calculate_angle((0, 0), (1, 0), (2, 0)) == pytest.approx(180.0)

    def test_folded_back(self):
        assert calculate_angle((1, 0), (0, 0), (2, 0)) == pytest.approx(0.0)

    def test_order_of_outer_points_does_not_matter(self):
        a, b, c = (3, 7), (1, 1), (8, 2)
        assert calculate_angle(a, b, c) == pytest.approx(calculate_angle(c, b, a))

    def test_accepts_landmarks_and_arrays(self):
        a = Landmark(0.0, 10.0, 0.9)
        b = np.array([0.0, 0.0])
        c = (10.0, 10.0)
        assert calculate_angle(a, b, c) == pytest.approx(45.0)

    def test_zero_length_ray_returns_zero(self):
        assert calculate_angle((1, 1), (1, 1), (5, 3)) == 0.0

    def test_non_finite_input_returns_zero(self):
        assert calculate_angle((math.nan, 0), (0, 0), (1, 0)) == 0.0
        assert calculate_angle((0, 1), (0, 0), (math.inf, 0)) == 0.0

    @pytest.mark.parametrize("angle", [15.0, 60.0, 100.0, 140.0, 175.0])
    def test_result_always_in_range(self, angle):
        theta = math.radians(angle)
        result = calculate_angle((0, -1), (0, 0), (math.sin(theta), -math.cos(theta)))
        assert 0.0 <= result <= 180.0
        assert result == pytest.approx(angle)


class TestHipExtensionAngle:
    """Angle between shoulder->hip and hip->knee"""

    def test_collinear_is_zero(self):
        assert hip_extension_angle((0, 0), (1, 0), (2, 0)) == pytest.approx(0.0)

    def test_perpendicular_is_ninety(self):
        assert hip_extension_angle((0, 0), (1, 0), (1, 1)) == pytest.approx(90.0)

    def test_degenerate_returns_zero(self):
        assert hip_extension_angle((1, 1), (1, 1), (2, 2)) == 0.0


class TestHelpers:

    def test_midpoint(self):
        assert np.allclose(midpoint((0, 0), (4, 2)), [2.0, 1.0])

    def test_mean_angle_skips_non_finite(self):
        assert mean_angle(10.0, math.nan, 20.0) == pytest.approx(15.0)

    def test_mean_angle_empty(self):
        assert mean_angle() == 0.0


class TestLandmarkFrame:
    """Landmark frame parsing and normalization"""

    @pytest.mark.parametrize("name", ["left_shoulder", "leftShoulder", "LEFT_SHOULDER", " left_shoulder "])
    def test_joint_names(self, name):
        assert JointType.from_name(name) is JointType.LEFT_SHOULDER

    def test_unknown_joint_name(self):
        assert JointType.from_name("tail") is None
        assert JointType.from_name("") is None

    def test_from_dict_drops_unknown_and_malformed(self):
        frame = LandmarkFrame.from_dict({
            "width": 720,
            "height": 1280,
            "landmarks": {
                "left_shoulder": {"x": 100, "y": 200, "likelihood": 0.9},
                "tail": {"x": 1, "y": 1, "likelihood": 1.0},
                "right_shoulder": {"x": "abc", "y": 1, "likelihood": 1.0},
                "nose": {"y": 4},
            },
        })

        assert set(frame.landmarks) == {JointType.LEFT_SHOULDER}
        assert frame.get(JointType.LEFT_SHOULDER).likelihood == pytest.approx(0.9)

    def test_from_dict_bad_size_and_rotation_read_as_zero(self):
        frame = LandmarkFrame.from_dict({"width": "wide", "height": None, "rotation": "portrait", "landmarks": {}})
        assert frame.width == 0.0
        assert frame.height == 0.0
        assert frame.rotation == 0
        assert frame.frame_size == (1.0, 1.0)

    def test_from_dict_parses_numeric_strings(self):
        frame = LandmarkFrame.from_dict({"width": "720", "height": "1280", "rotation": "90", "timestamp": "1.5"})
        assert frame.frame_size == (1280.0, 720.0)
        assert frame.timestamp == pytest.approx(1.5)

    @pytest.mark.parametrize("timestamp", ["soon", [1], "nan", float("inf")])
    def test_from_dict_bad_timestamp_is_none(self, timestamp):
        frame = LandmarkFrame.from_dict({"width": 720, "height": 1280, "timestamp": timestamp})
        assert frame.timestamp is None

    def test_non_finite_landmarks_are_treated_as_missing(self):
        frame = LandmarkFrame(
            landmarks={
                JointType.NOSE: Landmark(math.nan, 1.0, 0.9),
                JointType.LEFT_HIP: Landmark(1.0, 2.0, 0.9),
            },
            width=100,
            height=100,
        )
        assert frame.get(JointType.NOSE) is None
        assert frame.has_all([JointType.LEFT_HIP])

    def test_landmarks_are_read_only(self):
        frame = LandmarkFrame(landmarks={JointType.NOSE: Landmark(1.0, 1.0, 1.0)}, width=10, height=10)
        with pytest.raises(TypeError):
            frame.landmarks[JointType.LEFT_HIP] = Landmark(0.0, 0.0, 1.0)

    @pytest.mark.parametrize("rotation,expected", [(0, (720, 1280)), (90, (1280, 720)), (180, (720, 1280)), (270, (1280, 720))])
    def test_frame_size_follows_rotation(self, rotation, expected):
        frame = LandmarkFrame(landmarks={}, width=720, height=1280, rotation=rotation)
        assert frame.frame_size == expected

    def test_to_dict_uses_lowercase_names(self):
        frame = LandmarkFrame(landmarks={JointType.LEFT_KNEE: Landmark(1.0, 2.0, 0.5)}, width=10, height=20)
        data = frame.to_dict()
        assert data["landmarks"] == {"left_knee": {"x": 1.0, "y": 2.0, "likelihood": 0.5}}
