"""
REST API Routes

FastAPI routes for the putting setup.
Calibration changes go through the SetupCoordinator; errors raised by it
(InvalidTransition, NoSurfaceFound, CaptureUnavailable) are turned into HTTP
responses by the handlers registered in main.py.
"""

import time
import logging
from fastapi import APIRouter, Depends, Request

from .schemas import (
    PositionRequest,
    TapRequest,
    CalibrationSnapshotSchema,
    CameraSuggestionResponse,
    ErrorResponse,
    SpatialPointSchema,
    PoseDetectionControlResponse,
    LatestMetricsResponse,
    PipelineStatusSchema,
    PoseMetricsSchema,
    PoseDetectionRequest,
    PoseDetectionResponse,
    SessionSnapshotSchema,
    HealthResponse,
)
from core.services import PoseDetector, SetupCoordinator
from core.services.metrics_extractor import extract_metrics

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter()

API_VERSION = "1.0.0"

CONFLICT = {409: {"model": ErrorResponse, "description": "Not allowed in the current setup step"}}


def get_coordinator(request: Request) -> SetupCoordinator:
    """Dependency: the coordinator created in the app lifespan."""
    return request.app.state.coordinator


# =============================================================================
# Health Check
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Health check endpoint"
)
def health_check() -> HealthResponse:
    """
    Check if the API is running and MediaPipe is available.
    """
    mediapipe_ok = False
    try:
        with PoseDetector(static_image_mode=True):
            mediapipe_ok = True
    except Exception as e:
        logger.warning(f"MediaPipe not available: {e}")

    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        mediapipe_available=mediapipe_ok
    )


@router.get(
    "/session",
    response_model=SessionSnapshotSchema,
    tags=["Session"],
    summary="Calibration, live metrics and pipeline status in one call"
)
async def get_session(coordinator: SetupCoordinator = Depends(get_coordinator)) -> SessionSnapshotSchema:
    return SessionSnapshotSchema.from_domain(coordinator.snapshot())


# =============================================================================
# Calibration
# =============================================================================

@router.get(
    "/calibration",
    response_model=CalibrationSnapshotSchema,
    tags=["Calibration"],
    summary="Current calibration state"
)
async def get_calibration(
    coordinator: SetupCoordinator = Depends(get_coordinator),
) -> CalibrationSnapshotSchema:
    return CalibrationSnapshotSchema.from_domain(coordinator.calibration_snapshot())


@router.post(
    "/calibration/hole",
    response_model=CalibrationSnapshotSchema,
    responses=CONFLICT,
    tags=["Calibration"],
    summary="Mark the hole position"
)
async def set_hole_position(
    request: PositionRequest,
    coordinator: SetupCoordinator = Depends(get_coordinator),
) -> CalibrationSnapshotSchema:
    """
    Set the hole position. Only allowed while nothing is marked yet.
    """
    snapshot = await coordinator.set_hole_position(request.position.to_domain())
    return CalibrationSnapshotSchema.from_domain(snapshot)


@router.post(
    "/calibration/putting",
    response_model=CalibrationSnapshotSchema,
    responses=CONFLICT,
    tags=["Calibration"],
    summary="Mark the putting position"
)
async def set_putting_position(
    request: PositionRequest,
    coordinator: SetupCoordinator = Depends(get_coordinator),
) -> CalibrationSnapshotSchema:
    """
    Set the ball position. Requires the hole to be marked; the response
    already contains the distance and the suggested camera position.
    """
    snapshot = await coordinator.set_putting_position(request.position.to_domain())
    return CalibrationSnapshotSchema.from_domain(snapshot)


@router.post(
    "/calibration/tap",
    response_model=CalibrationSnapshotSchema,
    responses={
        **CONFLICT,
        422: {"model": ErrorResponse, "description": "No surface under the tap"},
    },
    tags=["Calibration"],
    summary="Apply a tap from the AR view"
)
async def handle_tap(
    request: TapRequest,
    coordinator: SetupCoordinator = Depends(get_coordinator),
) -> CalibrationSnapshotSchema:
    """
    The first successful tap marks the hole, the second the ball.

    Send `position: null` when the raycast found no surface; the session is
    left unchanged and 422 is returned so the client can ask for another tap.
    """
    position = request.position.to_domain() if request.position else None
    snapshot = await coordinator.handle_tap(position)
    return CalibrationSnapshotSchema.from_domain(snapshot)


@router.post(
    "/calibration/lock",
    response_model=CalibrationSnapshotSchema,
    responses=CONFLICT,
    tags=["Calibration"],
    summary="Finish the setup"
)
async def lock_setup(coordinator: SetupCoordinator = Depends(get_coordinator)) -> CalibrationSnapshotSchema:
    snapshot = await coordinator.lock_setup()
    return CalibrationSnapshotSchema.from_domain(snapshot)


@router.post(
    "/calibration/reset",
    response_model=CalibrationSnapshotSchema,
    tags=["Calibration"],
    summary="Clear the setup"
)
async def reset_setup(coordinator: SetupCoordinator = Depends(get_coordinator)) -> CalibrationSnapshotSchema:
    snapshot = await coordinator.reset()
    return CalibrationSnapshotSchema.from_domain(snapshot)


@router.get(
    "/calibration/camera-suggestion",
    response_model=CameraSuggestionResponse,
    tags=["Calibration"],
    summary="Suggested viewpoint"
)
async def get_camera_suggestion(
    coordinator: SetupCoordinator = Depends(get_coordinator),
) -> CameraSuggestionResponse:
    position = coordinator.suggested_camera_position()
    return CameraSuggestionResponse(
        available=position is not None,
        position=SpatialPointSchema.from_domain(position),
    )


# =============================================================================
# Pose Detection
# =============================================================================

@router.post(
    "/pose/start",
    response_model=PoseDetectionControlResponse,
    responses={503: {"model": ErrorResponse, "description": "No capture device available"}},
    tags=["Pose Detection"],
    summary="Start live stance analysis"
)
async def start_pose_detection(
    coordinator: SetupCoordinator = Depends(get_coordinator),
) -> PoseDetectionControlResponse:
    """
    Open the camera and start detecting. Calling it again while running
    changes nothing and returns `changed: false`.
    """
    started = await coordinator.start_pose_detection()
    return PoseDetectionControlResponse(
        changed=started,
        pipeline=PipelineStatusSchema.from_domain(coordinator.pipeline.status()),
    )


@router.post(
    "/pose/stop",
    response_model=PoseDetectionControlResponse,
    tags=["Pose Detection"],
    summary="Stop live stance analysis"
)
async def stop_pose_detection(
    coordinator: SetupCoordinator = Depends(get_coordinator),
) -> PoseDetectionControlResponse:
    stopped = await coordinator.stop_pose_detection()
    return PoseDetectionControlResponse(
        changed=stopped,
        pipeline=PipelineStatusSchema.from_domain(coordinator.pipeline.status()),
    )


@router.get(
    "/pose/metrics",
    response_model=LatestMetricsResponse,
    tags=["Pose Detection"],
    summary="Latest live stance metrics"
)
async def get_latest_metrics(
    coordinator: SetupCoordinator = Depends(get_coordinator),
) -> LatestMetricsResponse:
    metrics = coordinator.latest_metrics()
    return LatestMetricsResponse(
        available=metrics is not None,
        metrics=PoseMetricsSchema.from_domain(metrics),
        pipeline=PipelineStatusSchema.from_domain(coordinator.pipeline.status()),
    )


@router.post(
    "/pose/metrics",
    response_model=PoseDetectionResponse,
    tags=["Pose Detection"],
    summary="Stance metrics for a single image"
)
def detect_metrics(request: PoseDetectionRequest) -> PoseDetectionResponse:
    """
    Detect the stance in a base64-encoded image and compute its metrics.

    Independent of the live pipeline; useful for checking the camera
    placement with a still photo.
    """
    start_time = time.time()

    try:
        with PoseDetector(static_image_mode=True) as detector:
            landmarks = detector.detect_from_base64(
                request.image_base64,
                frame_number=request.frame_number,
            )
    except Exception as e:
        logger.error(f"Pose detection failed: {e}")
        return PoseDetectionResponse(
            success=False,
            error=str(e),
            processing_time_ms=(time.time() - start_time) * 1000,
        )

    metrics = extract_metrics(landmarks)
    processing_time = (time.time() - start_time) * 1000

    if landmarks is None:
        error = "No person detected in image"
    elif metrics is None:
        missing = ", ".join(joint.name for joint in landmarks.missing())
        error = f"Joints not visible: {missing}"
    else:
        error = None

    return PoseDetectionResponse(
        success=metrics is not None,
        landmarks=PoseDetectionResponse.landmarks_from_domain(landmarks),
        metrics=PoseMetricsSchema.from_domain(metrics),
        error=error,
        processing_time_ms=processing_time,
    )
