"""
Pose Detector Service

Wrapper around MediaPipe Pose for detecting stance landmarks in video frames.
Handles all MediaPipe-specific logic and converts to our domain models.

Note: MediaPipe's type stubs are incomplete, so we use type: ignore comments
for mp.solutions access. This is a known issue with the mediapipe package.
"""

import base64
import logging
from typing import Any, Dict, Optional

import cv2
import numpy as np

from ..config import Settings
from ..domain.pose import Joint, LandmarkSet, PoseLandmark

logger = logging.getLogger(__name__)


class PoseDetector:
    """
    Detects the shoulders and hips of a person using MediaPipe Pose.

    MediaPipe returns 33 landmarks; only the joints in `Joint` are kept, and
    only when their visibility clears `visibility_threshold`.

    A MediaPipe graph must not be shared between threads. The capture
    pipeline creates one detector on its worker thread and closes it there.

    Usage:
        with PoseDetector() as detector:
            landmarks = detector.detect_landmarks(image)
    """

    # MediaPipe solution module (type stubs are incomplete, so we store as Any)
    _mp_pose: Any

    def __init__(
        self,
        model_complexity: int = Settings.MODEL_COMPLEXITY,
        min_detection_confidence: float = Settings.MIN_DETECTION_CONFIDENCE,
        min_tracking_confidence: float = Settings.MIN_TRACKING_CONFIDENCE,
        visibility_threshold: float = Settings.LANDMARK_VISIBILITY_THRESHOLD,
        static_image_mode: bool = False,
    ):
        """
        Initialize the pose detector.

        Args:
            model_complexity: 0, 1, or 2. Higher = more accurate but slower.
            min_detection_confidence: Minimum confidence for person detection.
            min_tracking_confidence: Minimum confidence for landmark tracking.
            visibility_threshold: Joints below this visibility are dropped.
            static_image_mode: True for unrelated single images.
        """
        # Imported here so the domain and pipeline can be used without the
        # (large) mediapipe runtime loaded
        import mediapipe as mp

        # MediaPipe's type stubs don't include solutions, but it exists at runtime
        self._mp_pose = mp.solutions.pose  # type: ignore[attr-defined]
        self.visibility_threshold = visibility_threshold

        self.pose = self._mp_pose.Pose(
            static_image_mode=static_image_mode,
            model_complexity=model_complexity,
            smooth_landmarks=True,
            enable_segmentation=False,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def __enter__(self) -> "PoseDetector":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any]
    ) -> None:
        """Context manager exit - cleanup resources."""
        self.close()

    def close(self) -> None:
        """Release MediaPipe resources."""
        self.pose.close()

    # -------------------------------------------------------------------------
    # Core Detection Methods
    # -------------------------------------------------------------------------

    def detect_landmarks(
        self,
        image: np.ndarray,
        frame_number: int = 0,
        timestamp: float = 0.0,
    ) -> Optional[LandmarkSet]:
        """
        Detect stance landmarks in a single image.

        Args:
            image: BGR image (OpenCV format) or RGB image
            frame_number: Sequential frame number
            timestamp: Capture time of the frame

        Returns:
            LandmarkSet with the visible joints, or None if no person detected
        """
        # Convert BGR to RGB if needed (MediaPipe expects RGB)
        if len(image.shape) == 3 and image.shape[2] == 3:
            image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        else:
            image_rgb = image

        results = self.pose.process(image_rgb)

        if not results.pose_landmarks:
            return None

        return LandmarkSet(
            joints=self._convert_landmarks(results.pose_landmarks.landmark),
            frame_number=frame_number,
            timestamp=timestamp,
        )

    def detect_from_base64(
        self,
        base64_image: str,
        frame_number: int = 0,
        timestamp: float = 0.0,
    ) -> Optional[LandmarkSet]:
        """
        Detect landmarks in a base64-encoded JPEG/PNG image.

        Returns:
            LandmarkSet or None if the image could not be decoded or nobody
            was found in it
        """
        image_bytes = base64.b64decode(base64_image)
        nparr = np.frombuffer(image_bytes, np.uint8)
        image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

        if image is None:
            logger.debug("Could not decode base64 image")
            return None

        return self.detect_landmarks(image, frame_number, timestamp)

    # -------------------------------------------------------------------------
    # Private Helper Methods
    # -------------------------------------------------------------------------

    def _convert_landmarks(self, mp_landmarks: Any) -> Dict[Joint, PoseLandmark]:
        """Convert MediaPipe landmarks to our domain model, dropping low-visibility joints."""
        joints: Dict[Joint, PoseLandmark] = {}

        for joint in Joint:
            if joint.value >= len(mp_landmarks):
                continue
            mp_lm = mp_landmarks[joint.value]
            landmark = PoseLandmark(x=mp_lm.x, y=mp_lm.y, visibility=mp_lm.visibility)
            if landmark.is_visible(self.visibility_threshold):
                joints[joint] = landmark

        return joints
