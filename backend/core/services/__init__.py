"""
Services Layer

Business logic for the putting setup: the calibration state machine, the
viewpoint geometry, stance metrics and the live capture pipeline.
"""

from .camera_suggester import CameraPositionSuggester, suggest_camera_position
from .calibration_session import CalibrationSession
from .metrics_extractor import PoseMetricsExtractor, extract_metrics
from .capture import CaptureResource, OpenCVCaptureResource, CapturedFrame
from .capture_pipeline import PoseCapturePipeline, PipelineState, PipelineStatus
from .pose_detector import PoseDetector
from .setup_coordinator import SetupCoordinator, SessionSnapshot

__all__ = [
    "CameraPositionSuggester",
    "suggest_camera_position",
    "CalibrationSession",
    "PoseMetricsExtractor",
    "extract_metrics",
    "CaptureResource",
    "OpenCVCaptureResource",
    "CapturedFrame",
    "PoseCapturePipeline",
    "PipelineState",
    "PipelineStatus",
    "PoseDetector",
    "SetupCoordinator",
    "SessionSnapshot",
]
