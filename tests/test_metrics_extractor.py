import math

import pytest

from core.domain.pose import Joint, LandmarkSet
from core.services.metrics_extractor import PoseMetricsExtractor, extract_metrics


def test_upright_stance(stance_landmarks):
    metrics = PoseMetricsExtractor.extract(stance_landmarks)

    assert metrics.stance_width == pytest.approx(0.16)
    assert metrics.body_angle_radians == pytest.approx(-math.pi / 2)
    assert metrics.body_angle_degrees == pytest.approx(-90.0)


def test_lean_moves_angle_toward_zero():
    landmarks = LandmarkSet.from_points({
        Joint.LEFT_SHOULDER: (0.5, 0.2),
        Joint.RIGHT_SHOULDER: (0.7, 0.2),
        Joint.LEFT_HIP: (0.42, 0.6),
        Joint.RIGHT_HIP: (0.58, 0.6),
    })

    metrics = PoseMetricsExtractor.extract(landmarks)

    assert -math.pi / 2 < metrics.body_angle_radians < 0


def test_stance_width_ignores_hip_order():
    landmarks = LandmarkSet.from_points({
        Joint.LEFT_SHOULDER: (0.4, 0.2),
        Joint.RIGHT_SHOULDER: (0.6, 0.2),
        Joint.LEFT_HIP: (0.62, 0.6),
        Joint.RIGHT_HIP: (0.38, 0.6),
    })

    assert PoseMetricsExtractor.extract(landmarks).stance_width == pytest.approx(0.24)


@pytest.mark.parametrize("missing", list(Joint))
def test_missing_joint_gives_no_metrics(stance_landmarks, missing):
    joints = {j: lm for j, lm in stance_landmarks.joints.items() if j is not missing}
    partial = LandmarkSet(joints=joints)

    assert not partial.is_complete()
    assert partial.missing() == [missing]
    assert PoseMetricsExtractor.extract(partial) is None


def test_frame_number_is_carried_over():
    landmarks = LandmarkSet.from_points(
        {
            Joint.LEFT_SHOULDER: (0.4, 0.2),
            Joint.RIGHT_SHOULDER: (0.6, 0.2),
            Joint.LEFT_HIP: (0.42, 0.6),
            Joint.RIGHT_HIP: (0.58, 0.6),
        },
        frame_number=42,
        timestamp=1.5,
    )

    metrics = extract_metrics(landmarks)

    assert metrics.frame_number == 42
    assert metrics.timestamp == 1.5


def test_no_detection_gives_no_metrics():
    assert extract_metrics(None) is None
