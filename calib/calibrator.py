"""Calibration interfaces for camera intrinsics."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from contracts import Image


@dataclass(frozen=True)
class IntrinsicsResult:
    camera_matrix: np.ndarray
    distortion_coeffs: np.ndarray
    reprojection_error_px: float
    image_size: Tuple[int, int]
    images_used: int


class Calibrator(ABC):
    @abstractmethod
    def calibrate_intrinsics(self, images: Sequence[Image]) -> IntrinsicsResult:
        """Compute camera intrinsics from calibration images."""
