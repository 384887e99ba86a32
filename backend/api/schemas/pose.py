"""
Pose API Schemas

Pydantic models for pose-detection requests and responses.
These define the JSON structure for communication with frontend.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field

from core.domain.pose import LandmarkSet, PoseMetrics
from core.services.capture_pipeline import PipelineStatus


class LandmarkSchema(BaseModel):
    """
    Single joint in API response.

    Coordinates are normalized (0.0 to 1.0).
    Frontend multiplies by canvas dimensions to get pixel positions.
    """
    x: float = Field(..., description="Horizontal position (0=left, 1=right)")
    y: float = Field(..., description="Vertical position (0=top, 1=bottom)")
    visibility: float = Field(..., ge=0.0, le=1.0, description="Detection confidence")


class PoseMetricsSchema(BaseModel):
    """
    Stance metrics for one frame.
    """
    body_angle_radians: float = Field(..., description="Hip-mid to shoulder-mid angle (atan2, image coords)")
    body_angle_degrees: float = Field(..., description="Same angle in degrees")
    stance_width: float = Field(..., ge=0.0, description="Hip spread in normalized image units")
    frame_number: int = Field(0, ge=0, description="Source frame")

    class Config:
        json_schema_extra = {
            "example": {
                "body_angle_radians": -1.5708,
                "body_angle_degrees": -90.0,
                "stance_width": 0.16,
                "frame_number": 120
            }
        }

    @classmethod
    def from_domain(cls, metrics: Optional[PoseMetrics]) -> Optional["PoseMetricsSchema"]:
        if metrics is None:
            return None
        return cls(
            body_angle_radians=metrics.body_angle_radians,
            body_angle_degrees=metrics.body_angle_degrees,
            stance_width=metrics.stance_width,
            frame_number=metrics.frame_number,
        )


class PipelineStateEnum(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"


class PipelineStatusSchema(BaseModel):
    state: PipelineStateEnum
    frames_captured: int = Field(0, ge=0)
    frames_processed: int = Field(0, ge=0)
    frames_dropped: int = Field(0, ge=0)
    last_error: Optional[str] = None

    @classmethod
    def from_domain(cls, status: PipelineStatus) -> "PipelineStatusSchema":
        return cls(
            state=PipelineStateEnum(status.state.value),
            frames_captured=status.frames_captured,
            frames_processed=status.frames_processed,
            frames_dropped=status.frames_dropped,
            last_error=status.last_error,
        )


class PoseDetectionControlResponse(BaseModel):
    """Response of /pose/start and /pose/stop."""
    changed: bool = Field(..., description="False if detection was already in the requested state")
    pipeline: PipelineStatusSchema


class LatestMetricsResponse(BaseModel):
    """
    Latest live metrics.

    `metrics` is null while detection is stopped or until a frame with all
    four joints has been processed.
    """
    available: bool
    metrics: Optional[PoseMetricsSchema] = None
    pipeline: PipelineStatusSchema


class PoseDetectionRequest(BaseModel):
    """
    Request to compute metrics for a base64-encoded image.

    Used for single-frame checks via REST API.
    """
    image_base64: str = Field(..., description="Base64 encoded JPEG/PNG image")
    frame_number: int = Field(0, ge=0, description="Optional frame number")

    class Config:
        json_schema_extra = {
            "example": {
                "image_base64": "/9j/4AAQSkZJRg...",
                "frame_number": 0
            }
        }


class PoseDetectionResponse(BaseModel):
    """
    Response from single-image metrics.
    """
    success: bool = Field(..., description="Whether metrics could be computed")
    landmarks: Dict[str, LandmarkSchema] = Field(default_factory=dict, description="Detected joints by name")
    metrics: Optional[PoseMetricsSchema] = Field(None, description="Null if a joint is missing")
    error: Optional[str] = Field(None, description="Error message if failed")
    processing_time_ms: float = Field(..., description="Time taken to process in milliseconds")

    @staticmethod
    def landmarks_from_domain(landmarks: Optional[LandmarkSet]) -> Dict[str, LandmarkSchema]:
        if landmarks is None:
            return {}
        return {
            joint.name: LandmarkSchema(x=lm.x, y=lm.y, visibility=lm.visibility)
            for joint, lm in landmarks.joints.items()
        }


# =============================================================================
# WebSocket Message Schemas
# =============================================================================

class WebSocketMessageType(str, Enum):
    """Types of WebSocket messages."""
    # Client -> Server
    TAP = "tap"                        # Tap result from the AR view
    LOCK = "lock"                      # Finish setup
    RESET = "reset"                    # Start over
    END_SESSION = "end_session"        # Close the connection

    # Server -> Client
    SNAPSHOT = "snapshot"              # Calibration changed
    METRICS = "metrics"                # New stance metrics
    PIPELINE = "pipeline"              # Pose detection started/stopped
    ERROR = "error"                    # Error message
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"

