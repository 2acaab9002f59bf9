"""Simulated camera backend for pipeline testing."""

from __future__ import annotations

import time
from typing import Iterable, Optional, Sequence, Tuple

from contracts import CameraConfig, Image
from exceptions import (
    CameraNotFoundError,
    CameraUnsupportedError,
    DeviceUnavailableError,
    ReadFailedError,
)
from log_config.logger import get_logger
from pixels import PixelBuffer

from .camera_device import Camera, CameraState, capture_timestamp
from .controls import (
    V4L2_CID_EXPOSURE_ABSOLUTE,
    V4L2_CID_EXPOSURE_AUTO,
    DeviceControls,
    MemoryControls,
)

logger = get_logger(__name__)

DEFAULT_MODES: Tuple[Tuple[int, int], ...] = (
    (320, 240),
    (640, 480),
    (1280, 720),
    (1920, 1080),
)

# Dark blue-gray in BGR order
BASE_COLOR = (40, 30, 20)


def negotiate_mode(requested: Tuple[int, int], modes: Sequence[Tuple[int, int]]) -> Tuple[int, int]:
    """Pick the mode a driver would settle on for ``requested``.

    An exact match wins. Otherwise the largest mode fitting inside the request
    is used, and failing that the smallest mode the device offers.
    """
    if not modes:
        raise ValueError("Device offers no modes")
    width, height = requested
    if (width, height) in modes:
        return width, height
    fitting = [m for m in modes if m[0] <= width and m[1] <= height]
    if fitting:
        return max(fitting, key=lambda m: m[0] * m[1])
    return min(modes, key=lambda m: m[0] * m[1])


class SimulatedCamera(Camera):
    """Camera producing synthetic BGR frames with padded rows.

    Read failures and disconnects can be injected to exercise recovery paths.
    """

    def __init__(
        self,
        config: CameraConfig,
        channels: int = 3,
        row_align: int = 64,
        fps: int = 0,
    ) -> None:
        super().__init__(config)
        self._channels = channels
        self._row_align = row_align
        self._fps = fps
        self._frame_index = 0
        self._last_frame_time = time.monotonic()
        self._pending_failures = 0
        self._connected = True
        self._controls = MemoryControls(
            {
                V4L2_CID_EXPOSURE_AUTO: 3,
                V4L2_CID_EXPOSURE_ABSOLUTE: int(config.exposure),
            }
        )

    @classmethod
    def open(
        cls,
        config: CameraConfig,
        modes: Sequence[Tuple[int, int]] = DEFAULT_MODES,
        channels: int = 3,
        row_align: int = 64,
        fps: int = 0,
        available_ids: Optional[Iterable[int]] = None,
    ) -> "SimulatedCamera":
        camera_id = config.id
        if available_ids is not None and camera_id not in set(available_ids):
            raise CameraNotFoundError(f"No simulated device with id {camera_id}", camera_id=camera_id)
        if channels != 3:
            raise CameraUnsupportedError(
                f"Simulated device {camera_id} delivers {channels}-channel frames; expected 3",
                camera_id=camera_id,
            )

        resolution = negotiate_mode(config.resolution, modes)
        if resolution != config.resolution:
            logger.warning(
                f"Camera {camera_id}: Requested {config.resolution[0]}x{config.resolution[1]} "
                f"but got {resolution[0]}x{resolution[1]}"
            )
        logger.info(f"Simulated camera {camera_id} opened at {resolution[0]}x{resolution[1]}")
        return cls(config.replace(resolution=resolution), channels, row_align, fps)

    def fail_next_reads(self, count: int) -> None:
        """Make the next ``count`` reads fail recoverably."""
        self._pending_failures = count

    def disconnect(self) -> None:
        """Simulate unplugging the device; the next read reports it gone."""
        self._connected = False

    @property
    def frame_index(self) -> int:
        return self._frame_index

    def grab_frame(self) -> Image:
        self._require_open()
        camera_id = self._config.id

        if not self._connected:
            self._stats.record_drop()
            self.close()
            raise DeviceUnavailableError(
                f"Camera {camera_id} is no longer available. Camera may be disconnected.",
                camera_id=camera_id,
            )
        if self._pending_failures > 0:
            self._pending_failures -= 1
            self._stats.record_drop()
            raise ReadFailedError(f"Failed to read frame from camera at port {camera_id}", camera_id=camera_id)

        self._pace()
        timestamp = capture_timestamp()
        self._frame_index += 1
        return self._deliver(timestamp, self._render())

    def controls(self) -> DeviceControls:
        self._require_open()
        return self._controls

    def close(self) -> None:
        if self._state is CameraState.CLOSED:
            return
        logger.info(f"Camera {self._config.id}: Closing simulated device")
        self._state = CameraState.CLOSED

    def _pace(self) -> None:
        if self._fps > 0:
            target_delay = 1.0 / self._fps
            elapsed = time.monotonic() - self._last_frame_time
            if elapsed < target_delay:
                time.sleep(target_delay - elapsed)
        self._last_frame_time = time.monotonic()

    def _render(self) -> PixelBuffer:
        width, height = self._config.resolution
        buffer = PixelBuffer.allocate(height, width, self._channels, align=self._row_align)
        frame = buffer.mat(writable=True)
        frame[:, :] = BASE_COLOR
        # Moving bar so consecutive frames differ
        if width > 0:
            column = self._frame_index % width
            frame[:, column] = (255, 255, 255)
        return buffer
