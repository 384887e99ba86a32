"""
Pose Capture Pipeline

Live stance analysis: frames from a capture device go through the landmark
detector and the metrics extractor on background threads.

Threads (per run):
    PoseCaptureThread   - the only reader of the capture device. Puts each
                          frame into a one-slot mailbox, overwriting a frame
                          the detector has not picked up yet.
    PoseDetectionThread - owns the landmark detector. Takes the newest frame,
                          detects, extracts metrics, publishes them.

A slow detector therefore never blocks the camera and never works through a
backlog: frames it cannot keep up with are dropped.

States:
    STOPPED -> STARTING -> RUNNING -> STOPPED
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

import numpy as np

from ..config import Settings
from ..domain.pose import LandmarkSet, PoseMetrics
from ..errors import CaptureUnavailable, DetectionUnavailable
from .capture import CapturedFrame, CaptureResource
from .metrics_extractor import extract_metrics

logger = logging.getLogger(__name__)


class LandmarkDetector(Protocol):
    """What the pipeline needs from a detector (PoseDetector satisfies it)."""

    def detect_landmarks(
        self, image: np.ndarray, frame_number: int = 0, timestamp: float = 0.0
    ) -> Optional[LandmarkSet]: ...

    def close(self) -> None: ...


MetricsCallback = Callable[[PoseMetrics], Any]


class PipelineState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"


@dataclass(frozen=True)
class PipelineStatus:
    """
    Counters for one pipeline.

    Attributes:
        state: Lifecycle state
        frames_captured: Frames read from the device in the current run
        frames_processed: Frames that produced metrics
        frames_dropped: Frames overwritten before detection, or whose
            detection failed, returned too few joints or took too long
        last_error: Why the last run stopped on its own, if it did
    """
    state: PipelineState
    frames_captured: int = 0
    frames_processed: int = 0
    frames_dropped: int = 0
    last_error: Optional[str] = None


class FrameMailbox:
    """Holds at most one frame. put() replaces whatever is waiting."""

    def __init__(self):
        self._cond = threading.Condition()
        self._frame: Optional[CapturedFrame] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, frame: CapturedFrame) -> bool:
        """
        Store a frame for the consumer.

        Returns:
            True if an unconsumed frame was overwritten (i.e. dropped)
        """
        with self._cond:
            if self._closed:
                return False
            overwritten = self._frame is not None
            self._frame = frame
            self._cond.notify()
            return overwritten

    def take(self, timeout: Optional[float] = None) -> Optional[CapturedFrame]:
        """Wait for a frame. Returns None on timeout or once closed."""
        with self._cond:
            if self._frame is None and not self._closed:
                self._cond.wait(timeout)
            if self._closed:
                return None
            frame, self._frame = self._frame, None
            return frame

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._frame = None
            self._cond.notify_all()


class PoseCapturePipeline:
    """
    Runs capture and landmark detection off the caller's thread.

    Usage:
        pipeline = PoseCapturePipeline(
            resource_factory=OpenCVCaptureResource,
            detector_factory=PoseDetector,
            on_metrics=print,
        )
        pipeline.start()      # raises CaptureUnavailable if no camera
        ...
        pipeline.latest_metrics()
        pipeline.stop()       # camera is released when this returns

    start() and stop() block briefly and must not be called on an event loop
    thread; SetupCoordinator runs them in an executor.
    """

    def __init__(
        self,
        resource_factory: Callable[[], CaptureResource],
        detector_factory: Callable[[], LandmarkDetector],
        on_metrics: Optional[MetricsCallback] = None,
        max_detection_seconds: float = Settings.MAX_DETECTION_SECONDS,
        max_consecutive_read_failures: int = Settings.MAX_CONSECUTIVE_READ_FAILURES,
        stop_join_timeout: float = Settings.STOP_JOIN_TIMEOUT,
        read_retry_delay: float = 0.01,
    ):
        """
        Args:
            resource_factory: Opens the capture device; raises CaptureUnavailable
            detector_factory: Creates a landmark detector; called on the
                detection thread, which also closes it
            on_metrics: Called on the detection thread with each new PoseMetrics
            max_detection_seconds: Results of slower detections are discarded
            max_consecutive_read_failures: Failed reads in a row before the
                device is considered lost
            stop_join_timeout: Upper bound for waiting on each thread in stop()
            read_retry_delay: Pause after a failed read
        """
        self._resource_factory = resource_factory
        self._detector_factory = detector_factory
        self.on_metrics = on_metrics
        self.max_detection_seconds = max_detection_seconds
        self.max_consecutive_read_failures = max(1, int(max_consecutive_read_failures))
        self.stop_join_timeout = stop_join_timeout
        self.read_retry_delay = read_retry_delay

        # Serializes start() and stop()
        self._lifecycle_lock = threading.Lock()
        # Guards the fields below; never held while joining threads
        self._state_lock = threading.Lock()

        self._state = PipelineState.STOPPED
        self._resource: Optional[CaptureResource] = None
        self._stop_event = threading.Event()
        self._mailbox = FrameMailbox()
        self._capture_thread: Optional[threading.Thread] = None
        self._detection_thread: Optional[threading.Thread] = None

        self._latest: Optional[PoseMetrics] = None
        self._frames_captured = 0
        self._frames_processed = 0
        self._frames_dropped = 0
        self._last_error: Optional[str] = None

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        with self._state_lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is PipelineState.RUNNING

    def latest_metrics(self) -> Optional[PoseMetrics]:
        """Metrics of the most recent successfully processed frame, if any."""
        with self._state_lock:
            return self._latest

    def status(self) -> PipelineStatus:
        with self._state_lock:
            return PipelineStatus(
                state=self._state,
                frames_captured=self._frames_captured,
                frames_processed=self._frames_processed,
                frames_dropped=self._frames_dropped,
                last_error=self._last_error,
            )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> bool:
        """
        Acquire the capture device and start the threads.

        Returns:
            True if the pipeline was started, False if it was already
            starting or running (no second device is acquired)

        Raises:
            CaptureUnavailable: no device, device in use, or the threads
                could not be started. Nothing is left held in that case.
        """
        with self._lifecycle_lock:
            with self._state_lock:
                if self._state is not PipelineState.STOPPED:
                    logger.info(f"Pose detection already {self._state.value}, start ignored")
                    return False
                self._state = PipelineState.STARTING

            # Threads of a run that ended on its own may still be finishing
            self._join_threads()

            try:
                resource = self._resource_factory()
            except CaptureUnavailable as e:
                self._mark_start_failed(str(e))
                raise
            except Exception as e:
                self._mark_start_failed(str(e))
                raise CaptureUnavailable(f"Could not acquire capture device: {e}") from e

            stop_event = threading.Event()
            mailbox = FrameMailbox()
            capture_thread = threading.Thread(
                target=self._capture_loop,
                args=(resource, stop_event, mailbox),
                name="PoseCaptureThread",
                daemon=True,
            )
            detection_thread = threading.Thread(
                target=self._detection_loop,
                args=(stop_event, mailbox),
                name="PoseDetectionThread",
                daemon=True,
            )

            with self._state_lock:
                self._resource = resource
                self._stop_event = stop_event
                self._mailbox = mailbox
                self._capture_thread = capture_thread
                self._detection_thread = detection_thread
                self._latest = None
                self._frames_captured = 0
                self._frames_processed = 0
                self._frames_dropped = 0
                self._last_error = None
                self._state = PipelineState.RUNNING

            try:
                detection_thread.start()
                capture_thread.start()
            except Exception as e:
                stop_event.set()
                mailbox.close()
                resource.release()
                self._mark_start_failed(str(e))
                raise CaptureUnavailable(f"Could not start capture threads: {e}") from e

            logger.info("Pose detection started")
            return True

    def stop(self) -> bool:
        """
        Stop both threads and release the capture device.

        Safe to call at any time, including while a frame is being detected
        and from the detection thread itself. The device is released before
        this returns, so start() can reacquire it right away. The exception
        is a capture read blocked for longer than stop_join_timeout: the
        device is then released by the capture thread once read() returns.

        Returns:
            True if a run was stopped, False if nothing was running
        """
        with self._lifecycle_lock:
            with self._state_lock:
                resource = self._resource
                was_active = self._state is not PipelineState.STOPPED
                self._resource = None

            if not was_active and resource is None and not self._threads_alive():
                return False

            self._stop_event.set()
            self._mailbox.close()

            if self._join(self._capture_thread):
                if resource is not None:
                    resource.release()
            else:
                # Releasing now would close the device under a blocked read();
                # the capture thread releases it in its finally block instead
                logger.error(
                    "PoseCaptureThread is still reading, capture device will be "
                    "released when the read returns"
                )
            self._join(self._detection_thread)

            with self._state_lock:
                self._state = PipelineState.STOPPED
                self._latest = None

            logger.info("Pose detection stopped")
            return True

    # -------------------------------------------------------------------------
    # Thread bodies
    # -------------------------------------------------------------------------

    def _capture_loop(
        self,
        resource: CaptureResource,
        stop_event: threading.Event,
        mailbox: FrameMailbox,
    ) -> None:
        failures = 0
        frame_number = 0

        try:
            while not stop_event.is_set():
                ok, image = resource.read()
                if stop_event.is_set():
                    break

                if not ok or image is None:
                    failures += 1
                    if failures >= self.max_consecutive_read_failures:
                        self._fail(
                            stop_event,
                            mailbox,
                            f"Capture device stopped delivering frames ({failures} failed reads)",
                        )
                        break
                    time.sleep(self.read_retry_delay)
                    continue

                failures = 0
                frame = CapturedFrame(image=image, frame_number=frame_number, timestamp=time.monotonic())
                frame_number += 1

                overwritten = mailbox.put(frame)
                with self._state_lock:
                    self._frames_captured += 1
                    if overwritten:
                        self._frames_dropped += 1
        except Exception as e:
            logger.exception("Capture thread crashed")
            self._fail(stop_event, mailbox, f"Capture error: {e}")
        finally:
            resource.release()
            mailbox.close()
            with self._state_lock:
                # A run that ended on its own; stop() handles the normal case
                if self._stop_event is stop_event and self._state is PipelineState.RUNNING:
                    self._state = PipelineState.STOPPED
                    self._resource = None
                    self._latest = None

    def _detection_loop(self, stop_event: threading.Event, mailbox: FrameMailbox) -> None:
        try:
            detector = self._detector_factory()
        except Exception as e:
            logger.error(f"Landmark detector could not be created: {e}")
            self._fail(stop_event, mailbox, f"Detector unavailable: {e}")
            return

        try:
            while not stop_event.is_set():
                frame = mailbox.take(timeout=0.1)
                if frame is None:
                    if mailbox.closed:
                        break
                    continue
                self._process_frame(detector, frame, stop_event)
        finally:
            try:
                detector.close()
            except Exception as e:
                logger.warning(f"Error closing landmark detector: {e}")

    def _process_frame(
        self,
        detector: LandmarkDetector,
        frame: CapturedFrame,
        stop_event: threading.Event,
    ) -> None:
        """Detect and publish one frame. Any failure drops just this frame."""
        try:
            metrics = self._detect_metrics(detector, frame)
        except DetectionUnavailable as e:
            logger.debug(f"Frame {frame.frame_number} dropped: {e}")
            self._count_dropped()
            return

        if stop_event.is_set():
            return

        with self._state_lock:
            self._latest = metrics
            self._frames_processed += 1

        callback = self.on_metrics
        if callback is not None:
            try:
                callback(metrics)
            except Exception:
                logger.exception("on_metrics callback failed")

    def _detect_metrics(self, detector: LandmarkDetector, frame: CapturedFrame) -> PoseMetrics:
        """
        Raises:
            DetectionUnavailable: detector error, nobody found, a joint
                missing, or the result arrived too late to be useful
        """
        started = time.monotonic()
        try:
            landmarks = detector.detect_landmarks(
                frame.image,
                frame_number=frame.frame_number,
                timestamp=frame.timestamp,
            )
        except Exception as e:
            raise DetectionUnavailable(f"detector error: {e}") from e

        elapsed = time.monotonic() - started
        if elapsed > self.max_detection_seconds:
            raise DetectionUnavailable(f"took {elapsed * 1000:.0f} ms, result discarded")

        if landmarks is None:
            raise DetectionUnavailable("no person detected")

        metrics = extract_metrics(landmarks)
        if metrics is None:
            missing = ", ".join(joint.name for joint in landmarks.missing())
            raise DetectionUnavailable(f"joints not visible: {missing}")
        return metrics

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _fail(self, stop_event: threading.Event, mailbox: FrameMailbox, reason: str) -> None:
        logger.error(f"Pose detection stopped: {reason}")
        with self._state_lock:
            if self._stop_event is stop_event:
                self._last_error = reason
        stop_event.set()
        mailbox.close()

    def _mark_start_failed(self, reason: str) -> None:
        logger.warning(f"Pose detection failed to start: {reason}")
        with self._state_lock:
            self._state = PipelineState.STOPPED
            self._resource = None
            self._last_error = reason

    def _count_dropped(self) -> None:
        with self._state_lock:
            self._frames_dropped += 1

    def _threads_alive(self) -> bool:
        return any(
            t is not None and t.is_alive()
            for t in (self._capture_thread, self._detection_thread)
        )

    def _join(self, thread: Optional[threading.Thread]) -> bool:
        """Wait up to stop_join_timeout. Returns False if the thread is still alive."""
        if thread is None or thread is threading.current_thread():
            return True
        thread.join(timeout=self.stop_join_timeout)
        if thread.is_alive():
            logger.warning(f"{thread.name} did not finish within {self.stop_join_timeout}s")
            return False
        return True

    def _join_threads(self) -> None:
        self._stop_event.set()
        self._mailbox.close()
        self._join(self._capture_thread)
        self._join(self._detection_thread)
