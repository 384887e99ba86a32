"""
Calibration API Schemas

Pydantic models for the putting-setup calibration endpoints.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from core.domain.calibration import CalibrationSnapshot
from core.domain.geometry import SpatialPoint


class SpatialPointSchema(BaseModel):
    """
    A point in AR world space.

    Meters, y is up. Produced by the client's raycast against detected planes.
    """
    x: float = Field(..., description="Horizontal axis (meters)")
    y: float = Field(..., description="Vertical axis (meters)")
    z: float = Field(..., description="Horizontal axis (meters)")

    class Config:
        allow_inf_nan = False
        json_schema_extra = {
            "example": {"x": 0.12, "y": -1.35, "z": -2.4}
        }

    def to_domain(self) -> SpatialPoint:
        return SpatialPoint(self.x, self.y, self.z)

    @classmethod
    def from_domain(cls, point: Optional[SpatialPoint]) -> Optional["SpatialPointSchema"]:
        if point is None:
            return None
        return cls(x=point.x, y=point.y, z=point.z)


class CalibrationStateEnum(str, Enum):
    """Setup steps for API."""
    IDLE = "idle"
    HOLE_SET = "hole_set"
    PUTTING_SET = "putting_set"
    CAMERA_SUGGESTED = "camera_suggested"
    LOCKED = "locked"


class PositionRequest(BaseModel):
    """Explicit hole or putting position."""
    position: SpatialPointSchema


class TapRequest(BaseModel):
    """
    Result of a tap on the AR view.

    `position` is null when the raycast hit no surface.
    """
    position: Optional[SpatialPointSchema] = Field(
        None, description="World point under the tap, null if no surface was found"
    )


class CalibrationSnapshotSchema(BaseModel):
    """Current calibration, as shown by the setup screen."""
    state: CalibrationStateEnum
    hole_position: Optional[SpatialPointSchema] = None
    putting_position: Optional[SpatialPointSchema] = None
    suggested_camera_position: Optional[SpatialPointSchema] = None
    distance_meters: float = Field(0.0, ge=0.0)
    distance_in_feet: float = Field(0.0, ge=0.0)
    is_locked: bool = False
    camera_guide_visible: bool = False

    @classmethod
    def from_domain(cls, snapshot: CalibrationSnapshot) -> "CalibrationSnapshotSchema":
        return cls(
            state=CalibrationStateEnum(snapshot.state.value),
            hole_position=SpatialPointSchema.from_domain(snapshot.hole_position),
            putting_position=SpatialPointSchema.from_domain(snapshot.putting_position),
            suggested_camera_position=SpatialPointSchema.from_domain(
                snapshot.suggested_camera_position
            ),
            distance_meters=snapshot.distance_meters,
            distance_in_feet=snapshot.distance_in_feet,
            is_locked=snapshot.is_locked,
            camera_guide_visible=snapshot.camera_guide_visible,
        )


class CameraSuggestionResponse(BaseModel):
    available: bool = Field(..., description="False until hole and putting are set")
    position: Optional[SpatialPointSchema] = None


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Error type, e.g. 'InvalidTransition'")
    detail: str
