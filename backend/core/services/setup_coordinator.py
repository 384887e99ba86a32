"""
Setup Coordinator

Single owner of the calibration session and the capture pipeline.

All calibration mutations arrive as commands on an asyncio queue and are
applied, one at a time, by one task on the event loop. Metrics produced on the
pipeline's detection thread are marshaled onto that same loop with
call_soon_threadsafe before they touch any shared state. Readers (routes,
WebSocket clients) only ever see immutable snapshots.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..domain.calibration import CalibrationSnapshot
from ..domain.geometry import SpatialPoint
from ..domain.pose import PoseMetrics
from .calibration_session import CalibrationSession
from .capture import OpenCVCaptureResource
from .capture_pipeline import PipelineStatus, PoseCapturePipeline
from .pose_detector import PoseDetector

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 16


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything a display needs, frozen at one point in time."""
    calibration: CalibrationSnapshot
    metrics: Optional[PoseMetrics]
    pipeline: PipelineStatus


@dataclass(frozen=True)
class _Command:
    name: str
    position: Optional[SpatialPoint] = None


# Queued when new metrics are waiting in _pending_metrics
_METRICS_READY = object()


class SetupCoordinator:
    """
    Serializes every session operation through one asyncio task.

    Usage:
        coordinator = SetupCoordinator.create_default()
        await coordinator.start()

        await coordinator.set_hole_position(SpatialPoint(0, 0, 0))
        await coordinator.start_pose_detection()
        coordinator.latest_metrics()

        await coordinator.close()
    """

    def __init__(
        self,
        pipeline: PoseCapturePipeline,
        session: Optional[CalibrationSession] = None,
    ):
        self.session = session or CalibrationSession()
        self.pipeline = pipeline
        self.pipeline.on_metrics = self._on_worker_metrics

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._subscribers: List[asyncio.Queue] = []

        self._calibration = self.session.snapshot()
        self._metrics: Optional[PoseMetrics] = None
        self._pending_metrics: Optional[PoseMetrics] = None
        self._metrics_pending = False

    @classmethod
    def create_default(cls) -> "SetupCoordinator":
        """Coordinator backed by the configured camera and MediaPipe."""
        pipeline = PoseCapturePipeline(
            resource_factory=OpenCVCaptureResource,
            detector_factory=PoseDetector,
        )
        return cls(pipeline=pipeline)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_started(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the state-owning task on the running loop."""
        if self.is_started:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._task = asyncio.create_task(self._run(), name="setup-coordinator")
        logger.info("Setup coordinator started")

    async def close(self) -> None:
        """Stop pose detection and the coordinator task."""
        await self.stop_pose_detection()

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._queue is not None:
            while not self._queue.empty():
                _, future = self._queue.get_nowait()
                if future is not None and not future.done():
                    future.cancel()

        logger.info("Setup coordinator closed")

    # -------------------------------------------------------------------------
    # Calibration operations
    # -------------------------------------------------------------------------

    async def set_hole_position(self, position: SpatialPoint) -> CalibrationSnapshot:
        return await self._submit(_Command("set_hole_position", position))

    async def set_putting_position(self, position: SpatialPoint) -> CalibrationSnapshot:
        return await self._submit(_Command("set_putting_position", position))

    async def handle_tap(self, position: Optional[SpatialPoint]) -> CalibrationSnapshot:
        return await self._submit(_Command("handle_tap", position))

    async def lock_setup(self) -> CalibrationSnapshot:
        return await self._submit(_Command("lock_setup"))

    async def reset(self) -> CalibrationSnapshot:
        return await self._submit(_Command("reset"))

    # -------------------------------------------------------------------------
    # Pose detection operations
    # -------------------------------------------------------------------------

    async def start_pose_detection(self) -> bool:
        """
        Start the capture pipeline without blocking the loop.

        Returns:
            False if it was already running

        Raises:
            CaptureUnavailable: no camera, or the camera is in use
        """
        loop = asyncio.get_running_loop()
        started = await loop.run_in_executor(None, self.pipeline.start)
        if started:
            self._metrics = None
        self._publish("pipeline")
        return started

    async def stop_pose_detection(self) -> bool:
        """Stop the pipeline; the camera is released when this returns."""
        loop = asyncio.get_running_loop()
        stopped = await loop.run_in_executor(None, self.pipeline.stop)
        self._metrics = None
        if stopped:
            self._publish("pipeline")
        return stopped

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    def calibration_snapshot(self) -> CalibrationSnapshot:
        return self._calibration

    def suggested_camera_position(self) -> Optional[SpatialPoint]:
        return self._calibration.suggested_camera_position

    def latest_metrics(self) -> Optional[PoseMetrics]:
        """Newest metrics, or None when detection is not running."""
        if not self.pipeline.is_running:
            return None
        return self._metrics

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            calibration=self._calibration,
            metrics=self.latest_metrics(),
            pipeline=self.pipeline.status(),
        )

    def subscribe(self) -> asyncio.Queue:
        """
        Register for (event, SessionSnapshot) updates.

        event is "snapshot" after a calibration change, "metrics" after new
        metrics and "pipeline" after pose detection starts or stops. A slow
        subscriber loses its oldest updates, never blocks the coordinator.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _submit(self, command: _Command) -> CalibrationSnapshot:
        if not self.is_started or self._queue is None or self._loop is None:
            raise RuntimeError("SetupCoordinator.start() has not been awaited")
        future = self._loop.create_future()
        await self._queue.put((command, future))
        return await future

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            message, future = await self._queue.get()

            if message is _METRICS_READY:
                metrics, self._pending_metrics = self._pending_metrics, None
                self._metrics_pending = False
                # Metrics still in flight when detection was stopped are ignored
                if metrics is not None and self.pipeline.is_running:
                    self._metrics = metrics
                    self._publish("metrics")
                continue

            try:
                result = self._apply(message)
            except Exception as e:
                if future is not None and not future.done():
                    future.set_exception(e)
                continue

            self._calibration = result
            if future is not None and not future.done():
                future.set_result(result)
            self._publish("snapshot")

    def _apply(self, command: _Command) -> CalibrationSnapshot:
        if command.name == "set_hole_position":
            return self.session.set_hole_position(command.position)
        if command.name == "set_putting_position":
            return self.session.set_putting_position(command.position)
        if command.name == "handle_tap":
            return self.session.handle_tap(command.position)
        if command.name == "lock_setup":
            return self.session.lock_setup()
        if command.name == "reset":
            return self.session.reset()
        raise ValueError(f"Unknown command: {command.name}")

    def _on_worker_metrics(self, metrics: PoseMetrics) -> None:
        """Called on the detection thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._enqueue_metrics, metrics)
        except RuntimeError:
            # Loop shut down between the check and the call
            logger.debug("Event loop closed, metrics dropped")

    def _enqueue_metrics(self, metrics: PoseMetrics) -> None:
        """Runs on the loop. Keeps at most one metrics update queued."""
        if self._queue is None:
            return
        self._pending_metrics = metrics
        if not self._metrics_pending:
            self._metrics_pending = True
            self._queue.put_nowait((_METRICS_READY, None))

    def _publish(self, event: str) -> None:
        update: Tuple[str, SessionSnapshot] = (event, self.snapshot())
        for queue in list(self._subscribers):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(update)
