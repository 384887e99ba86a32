"""
Capture Resources

Exclusive, scoped ownership of a video capture device.

At most one CaptureResource is alive in the process at any time, whatever
device it opens: creating a second one fails with CaptureUnavailable until
the first is released. The device key (the OpenCV camera index for real
cameras) only says which device is held. release() is idempotent and safe to
call from any thread.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Hashable, Optional, Tuple

import cv2
import numpy as np

from ..config import Settings
from ..errors import CaptureUnavailable

logger = logging.getLogger(__name__)

_holder: Optional["CaptureResource"] = None
_registry_lock = threading.Lock()


def held_device() -> Optional[Hashable]:
    """Key of the device currently held by this process, if any."""
    with _registry_lock:
        return _holder.device_key if _holder is not None else None


@dataclass(frozen=True)
class CapturedFrame:
    """A frame read from a capture device."""
    image: np.ndarray
    frame_number: int
    timestamp: float


class CaptureResource:
    """
    Base class for an exclusively held capture device.

    Subclasses implement _open(), _read() and _close(). The base class
    handles the process-wide slot so that:
      - the slot is claimed before the device is opened,
      - a failed open frees the slot before CaptureUnavailable is raised,
      - release() closes the device and frees the slot exactly once.

    Usage:
        with OpenCVCaptureResource(camera_index=0) as capture:
            ok, image = capture.read()
    """

    def __init__(self, device_key: Hashable):
        self.device_key = device_key
        self._release_lock = threading.Lock()
        self._released = False

        global _holder
        with _registry_lock:
            if _holder is not None:
                raise CaptureUnavailable(
                    f"Capture device {_holder.device_key!r} is already held, "
                    f"cannot open {device_key!r}"
                )
            _holder = self

        try:
            self._open()
        except CaptureUnavailable:
            self._unregister()
            raise
        except Exception as e:
            self._unregister()
            raise CaptureUnavailable(f"Could not open capture device {device_key!r}: {e}") from e

        logger.info(f"Capture device {device_key!r} acquired")

    def __enter__(self) -> "CaptureResource":
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any]
    ) -> None:
        self.release()

    @property
    def is_released(self) -> bool:
        return self._released

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        """
        Block until the next frame is available.

        Returns:
            (ok, image) like cv2.VideoCapture.read(); (False, None) once released
        """
        if self._released:
            return False, None
        return self._read()

    def release(self) -> None:
        """Close the device and free its key. Later calls do nothing."""
        with self._release_lock:
            if self._released:
                return
            self._released = True
            try:
                self._close()
            finally:
                self._unregister()
        logger.info(f"Capture device {self.device_key!r} released")

    # -------------------------------------------------------------------------
    # Subclass hooks
    # -------------------------------------------------------------------------

    def _open(self) -> None:
        raise NotImplementedError

    def _read(self) -> Tuple[bool, Optional[np.ndarray]]:
        raise NotImplementedError

    def _close(self) -> None:
        raise NotImplementedError

    def _unregister(self) -> None:
        global _holder
        with _registry_lock:
            if _holder is self:
                _holder = None


class OpenCVCaptureResource(CaptureResource):
    """A camera opened through cv2.VideoCapture."""

    def __init__(
        self,
        camera_index: int = Settings.CAMERA_INDEX,
        frame_width: int = Settings.FRAME_WIDTH,
        frame_height: int = Settings.FRAME_HEIGHT,
        target_fps: int = Settings.TARGET_FPS,
    ):
        self.camera_index = camera_index
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.target_fps = target_fps
        self._cap: Optional[cv2.VideoCapture] = None
        super().__init__(device_key=camera_index)

    def _open(self) -> None:
        cap = cv2.VideoCapture(self.camera_index, cv2.CAP_ANY)
        if not cap.isOpened():
            cap.release()
            raise CaptureUnavailable(f"Could not open camera {self.camera_index}")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.frame_width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.frame_height)
        cap.set(cv2.CAP_PROP_FPS, self.target_fps)
        # Keep the driver queue short so read() returns a fresh frame
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self._cap = cap

    def _read(self) -> Tuple[bool, Optional[np.ndarray]]:
        if self._cap is None:
            return False, None
        ok, frame = self._cap.read()
        return bool(ok), frame if ok else None

    def _close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
