"""
PuttSetup Backend API

FastAPI application that drives the putting setup: hole and ball
calibration, the suggested camera viewpoint, and live stance metrics.

Run with:
    uvicorn main:app --reload --host 0.0.0.0 --port 8000

API docs available at:
    http://localhost:8000/docs (Swagger UI)
    http://localhost:8000/redoc (ReDoc)
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import router as api_router, API_VERSION
from api.websocket import websocket_endpoint
from core.config import Settings
from core.errors import (
    CaptureUnavailable,
    InvalidPosition,
    InvalidTransition,
    NoSurfaceFound,
    SetupError,
)
from core.services import SetupCoordinator

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=Settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# Error Handling
# =============================================================================

ERROR_STATUS = {
    InvalidTransition: 409,
    NoSurfaceFound: 422,
    InvalidPosition: 422,
    CaptureUnavailable: 503,
}


async def setup_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map setup errors to status codes; the session is never changed by them."""
    status_code = 400
    for error_type, code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status_code = code
            break

    logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


# =============================================================================
# App Factory
# =============================================================================

def create_app(
    coordinator_factory: Optional[Callable[[], SetupCoordinator]] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        coordinator_factory: Creates the SetupCoordinator at startup.
            Defaults to the configured camera and MediaPipe detector.
    """
    factory = coordinator_factory or SetupCoordinator.create_default

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Starts the coordinator before requests are accepted and stops pose
        detection (releasing the camera) on shutdown.
        """
        logger.info(" PuttSetup API starting up...")
        coordinator = factory()
        await coordinator.start()
        app.state.coordinator = coordinator
        logger.info(" WebSocket: ws://localhost:8000/ws/session")

        yield  # App runs here

        logger.info(" PuttSetup API shutting down...")
        await coordinator.close()

    app = FastAPI(
        title="PuttSetup API",
        description="""
    **Putting setup and stance analysis**

    ## Flow

    1. `POST /api/calibration/tap` - mark the hole, then the ball
    2. `GET /api/calibration/camera-suggestion` - where to stand
    3. `POST /api/calibration/lock` - finish the setup
    4. `POST /api/pose/start` - live stance metrics
    5. `WS /ws/session` - pushed snapshots and metrics
    """,
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SetupError, setup_error_handler)

    # Include REST API routes
    app.include_router(api_router, prefix="/api")

    # WebSocket endpoint
    app.websocket("/ws/session")(websocket_endpoint)

    @app.get("/", tags=["Root"])
    async def root():
        """
        Root endpoint - API information.
        """
        return {
            "name": "PuttSetup API",
            "version": API_VERSION,
            "docs": "/docs",
            "health": "/api/health",
            "websocket": "/ws/session"
        }

    return app


app = create_app()


# =============================================================================
# Run directly (for development)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
