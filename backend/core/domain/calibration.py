"""
Calibration Domain Models

Tagged states for the putting-setup flow. Each state carries exactly the
positions that exist at that point of the flow, so a putting position without
a hole position cannot be represented.

Flow:
    IDLE -> HOLE_SET -> PUTTING_SET -> CAMERA_SUGGESTED -> LOCKED
    reset() returns to IDLE from anywhere.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .geometry import SpatialPoint

FEET_PER_METER = 3.28084


class CalibrationState(str, Enum):
    """Setup step the session is in."""
    IDLE = "idle"
    HOLE_SET = "hole_set"
    PUTTING_SET = "putting_set"            # transient, see CalibrationSession
    CAMERA_SUGGESTED = "camera_suggested"
    LOCKED = "locked"


@dataclass(frozen=True)
class IdleState:
    kind = CalibrationState.IDLE


@dataclass(frozen=True)
class HoleSetState:
    hole: SpatialPoint
    kind = CalibrationState.HOLE_SET


@dataclass(frozen=True)
class PuttingSetState:
    """Both points known, camera suggestion not yet stored."""
    hole: SpatialPoint
    putting: SpatialPoint
    kind = CalibrationState.PUTTING_SET


@dataclass(frozen=True)
class CameraSuggestedState:
    hole: SpatialPoint
    putting: SpatialPoint
    camera: SpatialPoint
    kind = CalibrationState.CAMERA_SUGGESTED


@dataclass(frozen=True)
class LockedState:
    hole: SpatialPoint
    putting: SpatialPoint
    camera: SpatialPoint
    kind = CalibrationState.LOCKED


SessionState = Union[IdleState, HoleSetState, PuttingSetState, CameraSuggestedState, LockedState]


@dataclass(frozen=True)
class CalibrationSnapshot:
    """
    Read-only view of a calibration session for display.

    Attributes:
        state: Current setup step
        hole_position: Hole location, None until marked
        putting_position: Ball location, None until marked
        suggested_camera_position: Viewpoint at eye height, None until both
            points are marked
        distance_meters: Hole to ball distance, 0 until both points are marked
        distance_in_feet: Same distance in feet
        is_locked: Setup finished; positions are frozen until reset
        camera_guide_visible: Whether the viewpoint guide should be shown
    """
    state: CalibrationState
    hole_position: Optional[SpatialPoint] = None
    putting_position: Optional[SpatialPoint] = None
    suggested_camera_position: Optional[SpatialPoint] = None
    distance_meters: float = 0.0
    distance_in_feet: float = 0.0
    is_locked: bool = False
    camera_guide_visible: bool = False

    @classmethod
    def from_state(cls, state: SessionState) -> "CalibrationSnapshot":
        hole = getattr(state, "hole", None)
        putting = getattr(state, "putting", None)
        camera = getattr(state, "camera", None)

        distance = 0.0
        if hole is not None and putting is not None:
            distance = hole.distance_to(putting)

        return cls(
            state=state.kind,
            hole_position=hole,
            putting_position=putting,
            suggested_camera_position=camera,
            distance_meters=distance,
            distance_in_feet=distance * FEET_PER_METER,
            is_locked=state.kind is CalibrationState.LOCKED,
            camera_guide_visible=state.kind is CalibrationState.CAMERA_SUGGESTED,
        )
