"""
Session API Schemas

Combined view of calibration and live metrics, plus service health.
"""

from typing import Optional

from pydantic import BaseModel, Field

from core.services.setup_coordinator import SessionSnapshot
from .calibration import CalibrationSnapshotSchema
from .pose import PipelineStatusSchema, PoseMetricsSchema


class SessionSnapshotSchema(BaseModel):
    """Everything the setup screen displays."""
    calibration: CalibrationSnapshotSchema
    metrics: Optional[PoseMetricsSchema] = None
    pipeline: PipelineStatusSchema

    @classmethod
    def from_domain(cls, snapshot: SessionSnapshot) -> "SessionSnapshotSchema":
        return cls(
            calibration=CalibrationSnapshotSchema.from_domain(snapshot.calibration),
            metrics=PoseMetricsSchema.from_domain(snapshot.metrics),
            pipeline=PipelineStatusSchema.from_domain(snapshot.pipeline),
        )


class HealthResponse(BaseModel):
    """
    Health check response.
    """
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    mediapipe_available: bool = Field(..., description="Whether MediaPipe can be loaded")
