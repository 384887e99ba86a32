"""
API Schemas

Pydantic models for request/response validation.
"""

from .calibration import (
    SpatialPointSchema,
    CalibrationStateEnum,
    PositionRequest,
    TapRequest,
    CalibrationSnapshotSchema,
    CameraSuggestionResponse,
    ErrorResponse,
)

from .pose import (
    LandmarkSchema,
    PoseMetricsSchema,
    PipelineStateEnum,
    PipelineStatusSchema,
    PoseDetectionControlResponse,
    LatestMetricsResponse,
    PoseDetectionRequest,
    PoseDetectionResponse,
    WebSocketMessageType,
)

from .session import SessionSnapshotSchema, HealthResponse

__all__ = [
    # Calibration schemas
    "SpatialPointSchema",
    "CalibrationStateEnum",
    "PositionRequest",
    "TapRequest",
    "CalibrationSnapshotSchema",
    "CameraSuggestionResponse",
    "ErrorResponse",
    # Pose schemas
    "LandmarkSchema",
    "PoseMetricsSchema",
    "PipelineStateEnum",
    "PipelineStatusSchema",
    "PoseDetectionControlResponse",
    "LatestMetricsResponse",
    "PoseDetectionRequest",
    "PoseDetectionResponse",
    "WebSocketMessageType",
    # Session schemas
    "SessionSnapshotSchema",
    "HealthResponse",
]
