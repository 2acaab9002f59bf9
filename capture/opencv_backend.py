"""OpenCV-based camera backend for USB/V4L devices."""

from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from contracts import CameraConfig, Image
from exceptions import (
    CameraNotFoundError,
    CameraUnsupportedError,
    DeviceUnavailableError,
    ReadFailedError,
)
from log_config.logger import get_logger

from .camera_device import Camera, CameraState, capture_timestamp
from .controls import CaptureControls, DeviceControls, V4l2Controls
from .devices import default_capture_api, device_path, device_present, is_linux

logger = get_logger(__name__)

REQUIRED_CHANNELS = 3


def is_bgr8(frame: Optional[np.ndarray]) -> bool:
    return (
        frame is not None
        and frame.dtype == np.uint8
        and frame.ndim == 3
        and frame.shape[2] == REQUIRED_CHANNELS
    )


class OpenCVCamera(Camera):
    """Camera backed by ``cv2.VideoCapture``.

    ``grab_frame`` splits the read into ``grab()`` and ``retrieve()`` and
    stamps the frame in between, before any decode or copy.
    """

    def __init__(
        self,
        config: CameraConfig,
        capture: "cv2.VideoCapture",
        control_channel: str = "auto",
    ) -> None:
        super().__init__(config)
        self._capture: Optional[cv2.VideoCapture] = capture
        self._control_channel = control_channel
        self._controls: Optional[DeviceControls] = None

    @classmethod
    def open(cls, config: CameraConfig, control_channel: str = "auto") -> "OpenCVCamera":
        """Open the camera at ``config.id`` and negotiate its resolution.

        Args:
            config: Requested configuration; the stored config carries the
                negotiated resolution instead of the requested one
            control_channel: "v4l2", "capture", or "auto" (v4l2 on Linux)

        Raises:
            CameraNotFoundError: If the device node or index does not exist
            CameraUnsupportedError: If frames are not 3-channel 8-bit
        """
        camera_id = config.id
        logger.info(f"Opening OpenCV camera {camera_id}")

        if not device_present(camera_id):
            logger.error(f"Camera device {device_path(camera_id)} not found")
            raise CameraNotFoundError(f"No device at {device_path(camera_id)}", camera_id=camera_id)

        capture = cv2.VideoCapture(camera_id, default_capture_api())
        if not capture.isOpened():
            capture.release()
            logger.error(f"Failed to open camera index {camera_id}")
            raise CameraNotFoundError(
                f"Failed to open camera index {camera_id} - camera may be in use or not found",
                camera_id=camera_id,
            )

        try:
            resolution = _negotiate_resolution(capture, config.resolution, camera_id)
            exposure = capture.get(cv2.CAP_PROP_EXPOSURE)
        except Exception:
            capture.release()
            raise

        negotiated = config.replace(
            resolution=resolution,
            exposure=float(exposure) if exposure > 0 else config.exposure,
        )
        logger.info(f"Camera {camera_id} opened at {resolution[0]}x{resolution[1]}")
        return cls(negotiated, capture, control_channel=control_channel)

    def grab_frame(self) -> Image:
        self._require_open()
        capture = self._capture

        if not capture.grab():
            self._raise_read_failure("grab")
        timestamp = capture_timestamp()

        ok, frame = capture.retrieve()
        if not ok or frame is None:
            self._raise_read_failure("retrieve")

        return self._deliver(timestamp, frame)

    def controls(self) -> DeviceControls:
        self._require_open()
        if self._controls is None:
            channel = self._control_channel
            if channel == "auto":
                channel = "v4l2" if is_linux() else "capture"
            if channel == "v4l2":
                self._controls = V4l2Controls(device_path(self._config.id))
            elif channel == "capture":
                self._controls = CaptureControls(self._capture)
            else:
                raise ValueError(f"Unknown control channel: {channel}")
        return self._controls

    def close(self) -> None:
        """Close camera and release resources. Idempotent."""
        if self._capture is None:
            logger.debug(f"Camera {self._config.id}: Already closed")
            return

        logger.info(f"Camera {self._config.id}: Closing")
        try:
            self._capture.release()
            logger.info(f"Camera {self._config.id}: Closed successfully")
        except cv2.error as e:
            logger.error(f"Camera {self._config.id}: Error during close: {e}")
        finally:
            # Always clear capture reference
            self._capture = None
            self._controls = None
            self._state = CameraState.CLOSED

    def _raise_read_failure(self, stage: str) -> None:
        self._stats.record_drop()
        camera_id = self._config.id

        if not self._capture.isOpened() or not device_present(camera_id):
            logger.error(f"Camera {camera_id} disappeared during {stage}")
            self.close()
            raise DeviceUnavailableError(
                f"Camera {camera_id} is no longer available. Camera may be disconnected.",
                camera_id=camera_id,
            )

        logger.warning(f"Failed to {stage} frame from camera {camera_id}")
        raise ReadFailedError(f"Failed to read frame from camera at port {camera_id}", camera_id=camera_id)


def _negotiate_resolution(
    capture: "cv2.VideoCapture",
    requested: Tuple[int, int],
    camera_id: int,
) -> Tuple[int, int]:
    """Request ``requested`` and return what the device actually settled on.

    A probe frame confirms the pixel format, and supplies the size when the
    driver does not report one.
    """
    width, height = requested
    capture.set(cv2.CAP_PROP_CONVERT_RGB, 1)
    if width > 0 and height > 0:
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

    # Verify settings were applied (drivers may silently substitute a mode)
    actual_width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
    actual_height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))

    ok, frame = capture.read()
    if ok and frame is not None:
        if not is_bgr8(frame):
            raise CameraUnsupportedError(
                f"Camera {camera_id} delivers {frame.dtype} frames of shape {frame.shape}; "
                f"expected {REQUIRED_CHANNELS}-channel 8-bit",
                camera_id=camera_id,
            )
        if actual_width <= 0 or actual_height <= 0:
            actual_height, actual_width = frame.shape[:2]
    else:
        logger.warning(f"Camera {camera_id}: probe frame unavailable, pixel format not verified")

    if actual_width <= 0 or actual_height <= 0:
        actual_width, actual_height = width, height

    if (actual_width, actual_height) != (width, height):
        logger.warning(
            f"Camera {camera_id}: Requested {width}x{height} but got {actual_width}x{actual_height}"
        )
    return actual_width, actual_height
