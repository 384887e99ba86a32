"""
Pose Domain Models

Data structures for the stance landmarks and the metrics derived from them.

Only the four joints the stance metrics need are modelled. Their values are
the MediaPipe Pose landmark indices:
https://developers.google.com/mediapipe/solutions/vision/pose_landmarker
"""
import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Mapping, Optional


class Joint(IntEnum):
    """Joints used for stance analysis, keyed by MediaPipe index."""
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_HIP = 23
    RIGHT_HIP = 24


REQUIRED_JOINTS = (
    Joint.LEFT_SHOULDER,
    Joint.RIGHT_SHOULDER,
    Joint.LEFT_HIP,
    Joint.RIGHT_HIP,
)


@dataclass(frozen=True)
class PoseLandmark:
    """
    A single joint position in normalized image coordinates.

    Attributes:
        x: Horizontal position (0.0 = left edge, 1.0 = right edge)
        y: Vertical position (0.0 = top edge, 1.0 = bottom edge)
        visibility: Confidence score (0.0 to 1.0)
    """
    x: float
    y: float
    visibility: float = 1.0

    def is_visible(self, threshold: float = 0.5) -> bool:
        """Check if landmark is visible above confidence threshold."""
        return self.visibility >= threshold


@dataclass(frozen=True)
class LandmarkSet:
    """
    Joints detected in one frame.

    A joint missing from `joints` was not detected with enough confidence.
    """
    joints: Mapping[Joint, PoseLandmark] = field(default_factory=dict)
    frame_number: int = 0
    timestamp: float = 0.0

    def get(self, joint: Joint) -> Optional[PoseLandmark]:
        return self.joints.get(joint)

    def is_complete(self) -> bool:
        """True when every joint in REQUIRED_JOINTS is present."""
        return all(joint in self.joints for joint in REQUIRED_JOINTS)

    def missing(self) -> list[Joint]:
        return [joint for joint in REQUIRED_JOINTS if joint not in self.joints]

    @classmethod
    def from_points(
        cls,
        points: Mapping[Joint, tuple[float, float]],
        frame_number: int = 0,
        timestamp: float = 0.0,
    ) -> "LandmarkSet":
        """Build a set from plain (x, y) pairs with full visibility."""
        joints: Dict[Joint, PoseLandmark] = {
            joint: PoseLandmark(x=float(x), y=float(y))
            for joint, (x, y) in points.items()
        }
        return cls(joints=joints, frame_number=frame_number, timestamp=timestamp)


@dataclass(frozen=True)
class PoseMetrics:
    """
    Stance metrics for a single frame.

    Attributes:
        body_angle_radians: Signed angle of the hip-mid to shoulder-mid vector,
            measured with atan2 in image coordinates (y grows downward, so an
            upright stance is about -pi/2)
        stance_width: Horizontal distance between the hips, normalized units
        frame_number: Frame the metrics were computed from
        timestamp: Capture time of that frame (monotonic seconds)
    """
    body_angle_radians: float
    stance_width: float
    frame_number: int = 0
    timestamp: float = 0.0

    @property
    def body_angle_degrees(self) -> float:
        return math.degrees(self.body_angle_radians)
