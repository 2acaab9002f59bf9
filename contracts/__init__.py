"""Shared data contracts for cameras, images and vision targets."""

from .types import (
    CameraConfig,
    Contour,
    ContourGroup,
    Image,
    Pose,
    VisionTarget,
)

__all__ = [
    "CameraConfig",
    "Contour",
    "ContourGroup",
    "Image",
    "Pose",
    "VisionTarget",
]
