"""
Errors raised by the camera, the OCR engine and the capture pipeline.
"""


class CaptureError(Exception):
    """Base class for every user-facing failure in the capture pipeline."""

    notice = "Capture failed"


class PermissionDenied(CaptureError):
    notice = "Camera permission is required"


class DeviceUnavailable(CaptureError):
    notice = "Camera is not available"


class InitError(CaptureError):
    notice = "OCR engine failed to initialize"


class EngineNotReady(CaptureError):
    notice = "OCR engine is still loading, please wait"


class RecognitionError(CaptureError):
    notice = "OCR failed"
