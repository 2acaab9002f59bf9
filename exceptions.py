"""Custom exception classes for stdvis."""

from __future__ import annotations

from typing import Optional


class StdVisError(Exception):
    """Base exception for all stdvis errors."""

    pass


class CameraError(StdVisError):
    """Base exception for camera-related errors."""

    def __init__(self, message: str, camera_id: Optional[int] = None):
        self.camera_id = camera_id
        super().__init__(message)


class CameraOpenError(CameraError):
    """Raised when a camera cannot be opened."""

    pass


class CameraNotFoundError(CameraOpenError):
    """Raised when the device path or index does not exist."""

    pass


class CameraUnsupportedError(CameraOpenError):
    """Raised when the negotiated format is not 3-channel 8-bit."""

    pass


class CaptureError(CameraError):
    """Base exception for frame capture errors."""

    pass


class DeviceUnavailableError(CaptureError):
    """Raised when the device is disconnected or not open.

    Fatal to the camera instance; reopen before grabbing again.
    """

    pass


class ReadFailedError(CaptureError):
    """Raised on a transient read failure, e.g. a dropped frame."""

    pass


class CaptureTimeoutError(ReadFailedError):
    """Raised when a frame did not arrive before the deadline."""

    pass


class ShapeError(StdVisError):
    """Raised when buffer or view dimensions are inconsistent or insufficient."""

    pass


class ControlError(StdVisError):
    """Base exception for device control errors."""

    def __init__(self, message: str, control_id: Optional[int] = None):
        self.control_id = control_id
        super().__init__(message)


class UnsupportedControlError(ControlError):
    """Raised when the device does not expose the requested control."""

    pass


class DeviceBusyError(ControlError):
    """Raised when the device rejects a control request because it is busy."""

    pass


class CalibrationError(StdVisError):
    """Base exception for calibration-related errors."""

    pass


class CheckerboardNotFoundError(CalibrationError):
    """Raised when checkerboard pattern cannot be detected."""

    pass


class InsufficientCalibrationDataError(CalibrationError):
    """Raised when too few images produced usable corner detections."""

    pass


class ConfigError(StdVisError):
    """Base exception for configuration errors."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when configuration file is invalid or corrupted."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(message)
