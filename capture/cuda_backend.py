"""Hardware-accelerated capture through OpenCV's ``cudacodec`` reader."""

from __future__ import annotations

from typing import Any, Optional, Tuple

import cv2

from contracts import CameraConfig, Image
from exceptions import (
    CameraNotFoundError,
    CameraUnsupportedError,
    DeviceUnavailableError,
    ReadFailedError,
)
from log_config.logger import get_logger

from .camera_device import Camera, CameraState, capture_timestamp
from .controls import DeviceControls, V4l2Controls
from .devices import device_path, device_present

logger = get_logger(__name__)


def _load_cudacodec() -> Optional[Any]:
    return getattr(cv2, "cudacodec", None)


class CudaCamera(Camera):
    """Camera decoding frames on the GPU and downloading them to host memory."""

    def __init__(self, config: CameraConfig, reader: Any) -> None:
        super().__init__(config)
        self._reader = reader
        self._controls: Optional[DeviceControls] = None

    @classmethod
    def open(cls, config: CameraConfig) -> "CudaCamera":
        """Open ``/dev/video{id}`` with a cudacodec reader.

        Raises:
            CameraUnsupportedError: If OpenCV was built without cudacodec
            CameraNotFoundError: If the device node does not exist or cannot be read
        """
        camera_id = config.id
        cudacodec = _load_cudacodec()
        if cudacodec is None:
            raise CameraUnsupportedError(
                "OpenCV was built without cudacodec; use the v4l backend instead",
                camera_id=camera_id,
            )

        path = device_path(camera_id)
        if not device_present(camera_id):
            raise CameraNotFoundError(f"No device at {path}", camera_id=camera_id)

        width, height = config.resolution
        params = [cv2.CAP_PROP_FRAME_WIDTH, width, cv2.CAP_PROP_FRAME_HEIGHT, height]
        logger.info(f"Opening CUDA reader for {path} at {width}x{height}")
        try:
            reader = cudacodec.createVideoReader(path, sourceParams=params)
        except cv2.error as e:
            logger.error(f"Failed to create CUDA reader for {path}: {e}")
            raise CameraNotFoundError(f"Failed to open {path}: {e}", camera_id=camera_id)

        if hasattr(cudacodec, "ColorFormat_BGR"):
            reader.set(cudacodec.ColorFormat_BGR)

        resolution = _reader_resolution(reader, config.resolution)
        if resolution != config.resolution:
            logger.warning(
                f"Camera {camera_id}: Requested {width}x{height} but got {resolution[0]}x{resolution[1]}"
            )
        return cls(config.replace(resolution=resolution), reader)

    def grab_frame(self) -> Image:
        self._require_open()
        camera_id = self._config.id

        try:
            ok, gpu_frame = self._reader.nextFrame()
        except cv2.error as e:
            self._stats.record_drop()
            logger.error(f"CUDA reader for camera {camera_id} failed: {e}")
            self.close()
            raise DeviceUnavailableError(f"Camera {camera_id} reader failed: {e}", camera_id=camera_id)
        timestamp = capture_timestamp()

        if not ok or gpu_frame is None:
            self._stats.record_drop()
            if not device_present(camera_id):
                self.close()
                raise DeviceUnavailableError(f"Camera {camera_id} is no longer available", camera_id=camera_id)
            logger.warning(f"Failed to read frame from camera {camera_id}")
            raise ReadFailedError(f"Failed to read frame from camera at port {camera_id}", camera_id=camera_id)

        frame = gpu_frame.download()
        if frame.ndim == 3 and frame.shape[2] == 4:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
        return self._deliver(timestamp, frame)

    def controls(self) -> DeviceControls:
        self._require_open()
        if self._controls is None:
            self._controls = V4l2Controls(device_path(self._config.id))
        return self._controls

    def close(self) -> None:
        if self._reader is None:
            return
        logger.info(f"Camera {self._config.id}: Closing CUDA reader")
        self._reader = None
        self._controls = None
        self._state = CameraState.CLOSED


def _reader_resolution(reader: Any, requested: Tuple[int, int]) -> Tuple[int, int]:
    fmt = reader.format()
    width = int(getattr(fmt, "width", 0))
    height = int(getattr(fmt, "height", 0))
    if width <= 0 or height <= 0:
        return requested
    return width, height
