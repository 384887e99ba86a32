"""
Pose Metrics Extractor

Stance metrics from the shoulder and hip landmarks of a single frame.

Each frame is evaluated on its own; there is no smoothing across frames.
"""

import math
from typing import Optional, Tuple

from ..domain.pose import Joint, LandmarkSet, PoseLandmark, PoseMetrics


class PoseMetricsExtractor:
    """
    Calculates body angle and stance width from a LandmarkSet.

    All methods are static - no state needed.
    """

    @staticmethod
    def calculate_midpoint(p1: PoseLandmark, p2: PoseLandmark) -> Tuple[float, float]:
        """Calculate midpoint between two landmarks."""
        return ((p1.x + p2.x) / 2, (p1.y + p2.y) / 2)

    @staticmethod
    def calculate_body_angle(
        shoulder_mid: Tuple[float, float],
        hip_mid: Tuple[float, float],
    ) -> float:
        """
        Signed angle of the hip-to-shoulder vector in image coordinates.

        Image y grows downward, so a perfectly upright torso gives -pi/2 and
        leaning toward +x moves the angle toward 0.
        """
        return math.atan2(shoulder_mid[1] - hip_mid[1], shoulder_mid[0] - hip_mid[0])

    @staticmethod
    def calculate_stance_width(left_hip: PoseLandmark, right_hip: PoseLandmark) -> float:
        """Horizontal hip spread, a proxy for how far apart the feet are."""
        return abs(left_hip.x - right_hip.x)

    @classmethod
    def extract(cls, landmarks: LandmarkSet) -> Optional[PoseMetrics]:
        """
        Compute PoseMetrics for one frame.

        Args:
            landmarks: Joints detected in the frame

        Returns:
            PoseMetrics, or None if any shoulder or hip is missing. A partial
            set never yields partial metrics.
        """
        if not landmarks.is_complete():
            return None

        left_shoulder = landmarks.joints[Joint.LEFT_SHOULDER]
        right_shoulder = landmarks.joints[Joint.RIGHT_SHOULDER]
        left_hip = landmarks.joints[Joint.LEFT_HIP]
        right_hip = landmarks.joints[Joint.RIGHT_HIP]

        shoulder_mid = cls.calculate_midpoint(left_shoulder, right_shoulder)
        hip_mid = cls.calculate_midpoint(left_hip, right_hip)

        return PoseMetrics(
            body_angle_radians=cls.calculate_body_angle(shoulder_mid, hip_mid),
            stance_width=cls.calculate_stance_width(left_hip, right_hip),
            frame_number=landmarks.frame_number,
            timestamp=landmarks.timestamp,
        )


def extract_metrics(landmarks: Optional[LandmarkSet]) -> Optional[PoseMetrics]:
    """Like PoseMetricsExtractor.extract, but also accepts a failed detection."""
    if landmarks is None:
        return None
    return PoseMetricsExtractor.extract(landmarks)
