"""Core data contracts for capture, contour extraction and target analysis."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from exceptions import ShapeError
from pixels.buffer import PixelBuffer
from pixels.convert import view_to_native
from pixels.image_data import ImageData

INTRINSIC_MATRIX_SHAPE = (3, 3)
DISTORTION_COEFFS_LEN = 5


def _frozen_array(value, shape: Tuple[int, ...], name: str) -> Optional[np.ndarray]:
    if value is None:
        return None
    array = np.array(value, dtype=np.float64)
    if array.shape != shape:
        raise ShapeError(f"{name} must have shape {shape}, got {array.shape}")
    array.flags.writeable = False
    return array


@dataclass(frozen=True)
class Pose:
    """Position and rotation of a camera relative to the robot frame."""

    angle: float = 0.0
    dist: float = 0.0
    height: float = 0.0
    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0


@dataclass(frozen=True, eq=False)
class CameraConfig:
    """Camera properties, shared by the camera and every image it produces.

    Instances are immutable; refinements made after open (negotiated
    resolution, measured exposure) create a new instance with
    ``dataclasses.replace``. ``intrinsic_matrix`` (3x3) and
    ``distortion_coeffs`` (5) are only present once the camera is calibrated
    and are stored as read-only float64 arrays.
    """

    id: int = 0
    resolution: Tuple[int, int] = (0, 0)
    pose: Pose = field(default_factory=Pose)
    fov: Tuple[float, float] = (0.0, 0.0)
    focal_length: float = 0.0
    sensor_width: float = 0.0
    sensor_height: float = 0.0
    exposure: float = 0.0
    intrinsic_matrix: Optional[np.ndarray] = None
    distortion_coeffs: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        if not 0 <= self.id <= 255:
            raise ValueError(f"Camera id must fit in a byte, got {self.id}")
        object.__setattr__(self, "resolution", (int(self.resolution[0]), int(self.resolution[1])))
        object.__setattr__(self, "fov", (float(self.fov[0]), float(self.fov[1])))
        object.__setattr__(
            self,
            "intrinsic_matrix",
            _frozen_array(self.intrinsic_matrix, INTRINSIC_MATRIX_SHAPE, "intrinsic_matrix"),
        )
        object.__setattr__(
            self,
            "distortion_coeffs",
            _frozen_array(self.distortion_coeffs, (DISTORTION_COEFFS_LEN,), "distortion_coeffs"),
        )

    @property
    def width(self) -> int:
        return self.resolution[0]

    @property
    def height(self) -> int:
        return self.resolution[1]

    @property
    def is_calibrated(self) -> bool:
        return self.intrinsic_matrix is not None and self.distortion_coeffs is not None

    def replace(self, **changes) -> "CameraConfig":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True, eq=False)
class Image:
    """A captured or loaded frame bound to the config of its camera.

    Pixel and raw-buffer access is delegated to ``pixels``.
    """

    timestamp: int
    camera: CameraConfig
    pixels: ImageData

    def config(self) -> CameraConfig:
        return self.camera

    @property
    def channels(self) -> int:
        return self.pixels.channels

    def as_pixels(self) -> np.ndarray:
        return self.pixels.as_pixels()

    def as_pixels_mut(self) -> np.ndarray:
        return self.pixels.as_pixels_mut()

    def as_raw(self) -> PixelBuffer:
        return self.pixels.as_raw()

    def as_raw_mut(self) -> PixelBuffer:
        return self.pixels.as_raw_mut()

    def as_mat(self) -> np.ndarray:
        """Read-only OpenCV matrix over the image pixels, no copy."""
        return view_to_native(self.as_pixels(), self.channels).mat()

    def as_mat_mut(self) -> np.ndarray:
        """Writable OpenCV matrix over the image pixels, no copy."""
        return self.pixels.as_mat_mut()

    def resolution(self) -> Tuple[int, int]:
        """(width, height) of the pixel data."""
        shape = self.pixels.shape
        return shape[1], shape[0]

    def check_resolution(self) -> None:
        """Raise ShapeError if the pixel data does not match the camera resolution."""
        actual = self.resolution()
        if actual != self.camera.resolution:
            raise ShapeError(
                f"Image is {actual[0]}x{actual[1]} but camera {self.camera.id} "
                f"is configured for {self.camera.resolution[0]}x{self.camera.resolution[1]}"
            )


@dataclass(frozen=True)
class Contour:
    """Ordered 2-D points forming an open or closed curve."""

    points: Tuple[Tuple[float, float], ...]

    @classmethod
    def from_array(cls, points: np.ndarray) -> "Contour":
        array = np.asarray(points, dtype=np.float32).reshape(-1, 2)
        return cls(points=tuple((float(x), float(y)) for x, y in array))

    def as_array(self) -> np.ndarray:
        return np.asarray(self.points, dtype=np.float32).reshape(-1, 2)

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True, eq=False)
class ContourGroup:
    """Contours sharing one logical origin, e.g. a single target."""

    id: int
    camera: CameraConfig
    contours: List[Contour] = field(default_factory=list)


@dataclass(frozen=True)
class VisionTarget:
    id: int = 0
    beta: float = 0.0
    theta: float = 0.0
    dist: float = 0.0
    height: float = 0.0
    confidence: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be within [0, 1], got {self.confidence}")

