"""
Setup Errors

Exception types raised by the calibration session and the capture pipeline.
The API layer maps each of these to an HTTP status code.
"""


class SetupError(Exception):
    """Base class for all putting-setup errors."""


class NoSurfaceFound(SetupError):
    """
    Spatial tracking could not resolve a world point for a tap.

    Recoverable: the user taps again. The session is not touched.
    """

    def __init__(self, message: str = "Couldn't find a surface. Try again."):
        super().__init__(message)


class InvalidPosition(SetupError):
    """A world point with a NaN or infinite coordinate. The session is not touched."""


class InvalidTransition(SetupError):
    """
    An operation was invoked in a state that does not permit it.

    Attributes:
        operation: Name of the rejected operation (e.g. "set_hole_position")
        state: Name of the state the session was in
    """

    def __init__(self, operation: str, state: str, reason: str = ""):
        self.operation = operation
        self.state = state
        message = f"{operation} not allowed in state {state}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class CaptureUnavailable(SetupError):
    """No capture device could be opened, or the device is already held."""


class DetectionUnavailable(SetupError):
    """
    Landmark detection failed for a single frame.

    Only raised inside the detection worker; the frame is dropped.
    """
