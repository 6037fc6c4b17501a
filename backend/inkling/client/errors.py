"""
Client-side error types.

Neither escapes the state machine during normal use: CameraUnavailableError
becomes a user-visible message, and InvalidTransitionError only fires on a
programming error in a UI that drives the machine.
"""

CAMERA_UNAVAILABLE_MESSAGE = "Camera access denied or unavailable"
CAPTURE_FAILED_MESSAGE = "Could not capture photo. Please try again."
NOT_AN_IMAGE_MESSAGE = "Only image files are allowed"


class CameraUnavailableError(Exception):
    """Permission denied, no device, or the device refused to open."""

    def __init__(self, reason: str = CAMERA_UNAVAILABLE_MESSAGE):
        self.reason = reason
        super().__init__(reason)


class InvalidTransitionError(RuntimeError):

    def __init__(self, from_mode, to_mode):
        self.from_mode = from_mode
        self.to_mode = to_mode
        super().__init__(f"Invalid mode transition: {from_mode.value} -> {to_mode.value}")
