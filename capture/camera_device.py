"""Camera abstraction for capture backends."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Union

import numpy as np

from contracts import CameraConfig, Image
from exceptions import DeviceUnavailableError, UnsupportedControlError
from pixels import MatImageData, PixelBuffer

from .controls import ControlValue, DeviceControls, read_exposure, set_manual_exposure


class CameraState(Enum):
    CLOSED = "closed"
    OPEN = "open"


@dataclass(frozen=True)
class CaptureStats:
    fps_avg: float
    fps_instant: float
    jitter_p95_ms: float
    frames: int
    dropped_frames: int


class FrameStats:
    """Running frame-rate and drop counters for one capture stream."""

    def __init__(self) -> None:
        self.last_frame_ns = 0
        self.frames = 0
        self.dropped = 0
        self.fps_avg = 0.0
        self.fps_instant = 0.0
        self._deltas_ns: Deque[int] = deque(maxlen=240)

    def record_frame(self, now_ns: int) -> None:
        if self.last_frame_ns:
            delta_ns = now_ns - self.last_frame_ns
            self._deltas_ns.append(delta_ns)
            delta_s = delta_ns / 1e9
            if delta_s > 0:
                self.fps_instant = 1.0 / delta_s
                self.fps_avg = ((self.fps_avg * self.frames) + self.fps_instant) / (self.frames + 1)
        self.frames += 1
        self.last_frame_ns = now_ns

    def record_drop(self) -> None:
        self.dropped += 1

    def snapshot(self) -> CaptureStats:
        jitter_p95_ms = 0.0
        if self._deltas_ns:
            samples = sorted(self._deltas_ns)
            index = int(0.95 * (len(samples) - 1))
            jitter_p95_ms = samples[index] / 1e6
        return CaptureStats(
            fps_avg=self.fps_avg,
            fps_instant=self.fps_instant,
            jitter_p95_ms=jitter_p95_ms,
            frames=self.frames,
            dropped_frames=self.dropped,
        )


class Camera(ABC):
    """A device that produces ``Image`` values on demand.

    One capture stream per instance: ``grab_frame`` blocks and must not be
    called concurrently on the same camera. Distinct cameras share no state
    and may be driven from separate threads.

    The config is shared with every image the camera produces. Refinements
    replace it with a new object, so earlier images keep the config they were
    captured with.
    """

    def __init__(self, config: CameraConfig) -> None:
        self._config = config
        self._state = CameraState.OPEN
        self._stats = FrameStats()

    @classmethod
    @abstractmethod
    def open(cls, config: CameraConfig) -> "Camera":
        """Open the device at ``config.id`` and negotiate its mode.

        Raises:
            CameraNotFoundError: If the device does not exist
            CameraUnsupportedError: If the device cannot deliver 3-channel 8-bit frames
        """

    def config(self) -> CameraConfig:
        """Return the config fixed at open time plus runtime refinements."""
        return self._config

    @abstractmethod
    def grab_frame(self) -> Image:
        """Block until the next frame arrives.

        Raises:
            DeviceUnavailableError: If the device is gone or the camera is closed
            ReadFailedError: If this read failed but the device is still usable
        """

    @abstractmethod
    def close(self) -> None:
        """Release the device. Idempotent."""

    @property
    def state(self) -> CameraState:
        return self._state

    def controls(self) -> DeviceControls:
        """Return the device control channel, if the backend has one."""
        raise UnsupportedControlError(f"{type(self).__name__} exposes no device controls")

    def get_stats(self) -> CaptureStats:
        return self._stats.snapshot()

    def exposure(self) -> ControlValue:
        return read_exposure(self.controls())

    def set_exposure(self, exposure: ControlValue) -> None:
        """Switch to manual exposure and record the new value in the config.

        Raises:
            ControlError: If the device rejects the change; capture is unaffected
        """
        set_manual_exposure(self.controls(), exposure)
        self._refine_config(exposure=float(exposure))

    def _refine_config(self, **changes) -> None:
        self._config = self._config.replace(**changes)

    def _require_open(self) -> None:
        if self._state is not CameraState.OPEN:
            raise DeviceUnavailableError(
                f"Camera {self._config.id} is closed; reopen it before grabbing frames",
                camera_id=self._config.id,
            )

    def _deliver(self, timestamp: int, frame: Union[np.ndarray, PixelBuffer]) -> Image:
        self._stats.record_frame(timestamp)
        return Image(timestamp=timestamp, camera=self._config, pixels=MatImageData(frame))

    @property
    def is_open(self) -> bool:
        return self.state is CameraState.OPEN

    def __enter__(self) -> "Camera":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def capture_timestamp() -> int:
    """Monotonic timestamp in nanoseconds for a frame that just left the device."""
    return time.monotonic_ns()
