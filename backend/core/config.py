from __future__ import annotations

import os


def env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default)


def env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return default


class Settings:
    """Runtime settings for the capture pipeline and pose detector.

    Every value can be overridden with an environment variable of the same
    name. Geometry constants live next to the code that uses them.
    """

    # Capture device
    CAMERA_INDEX = env_int("CAMERA_INDEX", 0)
    FRAME_WIDTH = env_int("FRAME_WIDTH", 1280)
    FRAME_HEIGHT = env_int("FRAME_HEIGHT", 720)
    TARGET_FPS = env_int("TARGET_FPS", 30)

    # MediaPipe Pose
    MODEL_COMPLEXITY = env_int("MODEL_COMPLEXITY", 1)
    MIN_DETECTION_CONFIDENCE = env_float("MIN_DETECTION_CONFIDENCE", 0.5)
    MIN_TRACKING_CONFIDENCE = env_float("MIN_TRACKING_CONFIDENCE", 0.5)
    # Joints below this visibility are treated as absent
    LANDMARK_VISIBILITY_THRESHOLD = env_float("LANDMARK_VISIBILITY_THRESHOLD", 0.5)

    # Pipeline limits
    MAX_DETECTION_SECONDS = env_float("MAX_DETECTION_SECONDS", 0.5)
    MAX_CONSECUTIVE_READ_FAILURES = env_int("MAX_CONSECUTIVE_READ_FAILURES", 30)
    STOP_JOIN_TIMEOUT = env_float("STOP_JOIN_TIMEOUT", 2.0)

    LOG_LEVEL = env_str("LOG_LEVEL", "INFO").upper() or "INFO"
