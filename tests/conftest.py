"""
Shared fixtures: a scripted capture device and landmark detector, so the
pipeline, coordinator and API can be exercised without a camera or MediaPipe.
"""

import threading
import time
from typing import Callable, Optional

import numpy as np
import pytest

from core.domain.pose import Joint, LandmarkSet
from core.services import capture
from core.services.capture import CaptureResource
from core.services.capture_pipeline import PoseCapturePipeline

STANCE_POINTS = {
    Joint.LEFT_SHOULDER: (0.4, 0.2),
    Joint.RIGHT_SHOULDER: (0.6, 0.2),
    Joint.LEFT_HIP: (0.42, 0.6),
    Joint.RIGHT_HIP: (0.58, 0.6),
}


class FakeCaptureResource(CaptureResource):
    """Delivers small black frames; can be told to fail opening or reading."""

    def __init__(
        self,
        device_key="fake-camera",
        fail_open: bool = False,
        fail_reads: bool = False,
        read_delay: float = 0.005,
    ):
        self.fail_open = fail_open
        self.fail_reads = fail_reads
        self.read_delay = read_delay
        self.reads = 0
        self.close_calls = 0
        self.reading = threading.Event()
        super().__init__(device_key=device_key)

    def _open(self) -> None:
        if self.fail_open:
            raise RuntimeError("camera not connected")

    def _read(self):
        self.reading.set()
        time.sleep(self.read_delay)
        self.reads += 1
        if self.fail_reads:
            return False, None
        return True, np.zeros((4, 4, 3), dtype=np.uint8)

    def _close(self) -> None:
        self.close_calls += 1


class FakeDetector:
    """
    Landmark detector with scripted behaviour.

    mode:
        "ok"      - all four joints
        "partial" - left hip missing
        "none"    - nobody in frame
        "raise"   - detector error
    """

    def __init__(self, mode: str = "ok", delay: float = 0.0):
        self.mode = mode
        self.delay = delay
        self.calls = 0
        self.closed = False

    def detect_landmarks(self, image, frame_number: int = 0, timestamp: float = 0.0) -> Optional[LandmarkSet]:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.mode == "raise":
            raise RuntimeError("graph failure")
        if self.mode == "none":
            return None
        points = dict(STANCE_POINTS)
        if self.mode == "partial":
            del points[Joint.LEFT_HIP]
        return LandmarkSet.from_points(points, frame_number=frame_number, timestamp=timestamp)

    def close(self) -> None:
        self.closed = True


class ResourceFactory:
    """Counts acquisitions and remembers the resources it handed out."""

    def __init__(self, **resource_kwargs):
        self.resource_kwargs = resource_kwargs
        self.created: list[FakeCaptureResource] = []
        self.calls = 0

    def __call__(self) -> FakeCaptureResource:
        self.calls += 1
        resource = FakeCaptureResource(**self.resource_kwargs)
        self.created.append(resource)
        return resource


class DetectorFactory:
    def __init__(self, mode: str = "ok", delay: float = 0.0, fail: bool = False):
        self.mode = mode
        self.delay = delay
        self.fail = fail
        self.created: list[FakeDetector] = []

    def __call__(self) -> FakeDetector:
        if self.fail:
            raise RuntimeError("model file missing")
        detector = FakeDetector(self.mode, self.delay)
        self.created.append(detector)
        return detector


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture(autouse=True)
def clean_device_registry():
    yield
    with capture._registry_lock:
        capture._holder = None


@pytest.fixture
def stance_landmarks() -> LandmarkSet:
    return LandmarkSet.from_points(STANCE_POINTS)


@pytest.fixture
def make_pipeline():
    """Build a pipeline on fakes; every pipeline built here is stopped afterwards."""
    pipelines: list[PoseCapturePipeline] = []

    def _make(
        resource_factory: Optional[Callable] = None,
        detector_factory: Optional[Callable] = None,
        **kwargs,
    ) -> PoseCapturePipeline:
        kwargs.setdefault("stop_join_timeout", 2.0)
        pipeline = PoseCapturePipeline(
            resource_factory=resource_factory or ResourceFactory(),
            detector_factory=detector_factory or DetectorFactory(),
            **kwargs,
        )
        pipelines.append(pipeline)
        return pipeline

    yield _make

    for pipeline in pipelines:
        pipeline.stop()
