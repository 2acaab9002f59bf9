"""Capture module."""

from __future__ import annotations

from typing import Any, Dict, Type

from contracts import CameraConfig
from exceptions import CameraUnsupportedError

from .camera_device import Camera, CameraState, CaptureStats
from .controls import (
    CaptureControls,
    DeviceControls,
    MemoryControls,
    V4l2Controls,
    read_exposure,
    set_manual_exposure,
)
from .cuda_backend import CudaCamera
from .opencv_backend import OpenCVCamera
from .simulated_camera import SimulatedCamera
from .timeout_utils import (
    RetryPolicy,
    grab_frame_with_retry,
    grab_frame_with_timeout,
    retry_on_failure,
    run_with_timeout,
)

BACKENDS: Dict[str, Type[Camera]] = {
    "v4l": OpenCVCamera,
    "cuda": CudaCamera,
    "sim": SimulatedCamera,
}


def open_camera(config: CameraConfig, backend: str = "v4l", **options: Any) -> Camera:
    """Open a camera with the named backend.

    Extra keyword options are passed to the backend's ``open``.

    Raises:
        CameraUnsupportedError: If ``backend`` is not a known backend name
    """
    try:
        camera_cls = BACKENDS[backend]
    except KeyError:
        raise CameraUnsupportedError(
            f"Unknown capture backend {backend!r}; expected one of {sorted(BACKENDS)}",
            camera_id=config.id,
        )
    return camera_cls.open(config, **options)


__all__ = [
    "BACKENDS",
    "Camera",
    "CameraState",
    "CaptureControls",
    "CaptureStats",
    "CudaCamera",
    "DeviceControls",
    "MemoryControls",
    "OpenCVCamera",
    "RetryPolicy",
    "SimulatedCamera",
    "V4l2Controls",
    "grab_frame_with_retry",
    "grab_frame_with_timeout",
    "open_camera",
    "read_exposure",
    "retry_on_failure",
    "run_with_timeout",
    "set_manual_exposure",
]
