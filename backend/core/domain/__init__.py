"""
Domain Models

Pure data structures for the putting setup: world points, calibration
states and stance landmarks. No external dependencies.
"""

from .geometry import SpatialPoint
from .calibration import (
    CalibrationState,
    CalibrationSnapshot,
    IdleState,
    HoleSetState,
    PuttingSetState,
    CameraSuggestedState,
    LockedState,
    FEET_PER_METER,
)
from .pose import Joint, PoseLandmark, LandmarkSet, PoseMetrics, REQUIRED_JOINTS

__all__ = [
    "SpatialPoint",
    "CalibrationState",
    "CalibrationSnapshot",
    "IdleState",
    "HoleSetState",
    "PuttingSetState",
    "CameraSuggestedState",
    "LockedState",
    "FEET_PER_METER",
    "Joint",
    "PoseLandmark",
    "LandmarkSet",
    "PoseMetrics",
    "REQUIRED_JOINTS",
]
