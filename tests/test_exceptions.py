"""Tests for the exception hierarchy."""

from __future__ import annotations

import pytest

from exceptions import (
    CameraError,
    CameraNotFoundError,
    CameraOpenError,
    CameraUnsupportedError,
    CaptureError,
    CaptureTimeoutError,
    ConfigValidationError,
    ControlError,
    DeviceBusyError,
    DeviceUnavailableError,
    ReadFailedError,
    ShapeError,
    StdVisError,
    UnsupportedControlError,
)


class TestHierarchy:
    """Callers can catch by category."""

    @pytest.mark.parametrize("exc_type", [CameraNotFoundError, CameraUnsupportedError])
    def test_open_errors(self, exc_type):
        assert issubclass(exc_type, CameraOpenError)
        assert issubclass(exc_type, CameraError)

    @pytest.mark.parametrize("exc_type", [DeviceUnavailableError, ReadFailedError, CaptureTimeoutError])
    def test_capture_errors(self, exc_type):
        assert issubclass(exc_type, CaptureError)

    @pytest.mark.parametrize("exc_type", [UnsupportedControlError, DeviceBusyError])
    def test_control_errors_are_not_capture_errors(self, exc_type):
        assert issubclass(exc_type, ControlError)
        assert not issubclass(exc_type, CaptureError)

    def test_shape_error_is_rooted(self):
        assert issubclass(ShapeError, StdVisError)


class TestAttributes:
    """Errors carry the identifiers needed to act on them."""

    def test_camera_id(self):
        error = ReadFailedError("dropped", camera_id=3)

        assert error.camera_id == 3
        assert str(error) == "dropped"

    def test_control_id(self):
        assert DeviceBusyError("busy", control_id=0x009A0902).control_id == 0x009A0902

    def test_validation_messages(self):
        error = ConfigValidationError("bad", validation_errors=["camera -> id: required"])

        assert error.validation_errors == ["camera -> id: required"]
