"""Checkerboard intrinsics calibration."""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from contracts import CameraConfig, Image
from exceptions import (
    CalibrationError,
    CheckerboardNotFoundError,
    InsufficientCalibrationDataError,
)
from log_config.logger import get_logger, log_performance
from pixels import as_array_view

from .calibrator import Calibrator, IntrinsicsResult

logger = get_logger(__name__)

MIN_CALIBRATION_IMAGES = 3

CORNER_FLAGS = (
    cv2.CALIB_CB_NORMALIZE_IMAGE
    | cv2.CALIB_CB_EXHAUSTIVE
    | cv2.CALIB_CB_ACCURACY
    | cv2.CALIB_CB_MARKER
    | cv2.CALIB_CB_LARGER
)

# Default termination criteria for calibrateCameraRO
SOLVER_CRITERIA = (
    cv2.TERM_CRITERIA_COUNT + cv2.TERM_CRITERIA_EPS,
    30,
    sys.float_info.epsilon,
)


class CheckerboardCalibrator(Calibrator):
    """Solve intrinsics from images of a planar checkerboard.

    ``board_rows`` and ``board_cols`` count squares; corner detection runs on
    the inner-corner grid, one smaller in each direction. Object points are in
    meters.

    Args:
        board_rows: Squares along the board's vertical edge
        board_cols: Squares along the board's horizontal edge
        square_size_mm: Side length of one square
        min_images: Minimum successful detections needed to solve
        debug_dir: If set, corner overlays are written here per image
    """

    def __init__(
        self,
        board_rows: int,
        board_cols: int,
        square_size_mm: float,
        min_images: int = MIN_CALIBRATION_IMAGES,
        debug_dir: Optional[Path] = None,
    ) -> None:
        if board_rows < 2 or board_cols < 2:
            raise CalibrationError(f"Board needs at least 2x2 squares, got {board_rows}x{board_cols}")
        if square_size_mm <= 0:
            raise CalibrationError(f"Square size must be positive, got {square_size_mm}")
        self.board_rows = board_rows
        self.board_cols = board_cols
        self.square_size_mm = square_size_mm
        self.min_images = min_images
        self.debug_dir = Path(debug_dir) if debug_dir is not None else None

    @property
    def pattern_size(self) -> Tuple[int, int]:
        """Inner-corner grid as (width, height)."""
        return self.board_cols - 1, self.board_rows - 1

    def object_points(self) -> np.ndarray:
        """Board corners in meters, walking down each column in turn."""
        width, height = self.pattern_size
        square_size = self.square_size_mm / 1000.0
        points = np.zeros((width * height, 3), dtype=np.float32)
        index = 0
        for col in range(width):
            for row in range(height):
                points[index] = (square_size * col, square_size * row, 0.0)
                index += 1
        return points

    def find_corners(self, image: Image, name: str = "image") -> np.ndarray:
        """Locate the inner corners of the board in ``image``.

        Raises:
            CheckerboardNotFoundError: If the full grid was not detected
        """
        mat = image.as_mat()
        found, corners = cv2.findChessboardCornersSB(mat, self.pattern_size, flags=CORNER_FLAGS)

        if self.debug_dir is not None:
            self._write_overlay(mat, corners, bool(found), name)

        if not found or corners is None:
            raise CheckerboardNotFoundError(f"Failed to find checkerboard corners for image: {name}")

        sharpness, _ = cv2.estimateChessboardSharpness(mat, self.pattern_size, corners, 0.8, False)
        logger.info(
            f"avg. sharpness: {sharpness[0]:.3f}, avg. brightness (min, max): "
            f"({sharpness[1]:.1f}, {sharpness[2]:.1f}) for image: {name}"
        )
        return corners

    def calibrate_intrinsics(self, images: Sequence[Image]) -> IntrinsicsResult:
        """Detect corners in every image and solve for intrinsics.

        Images where the board is not found are skipped.

        Raises:
            CalibrationError: If the images do not all share one size
            InsufficientCalibrationDataError: If fewer than ``min_images`` detections succeed
        """
        template = self.object_points()
        object_points: List[np.ndarray] = []
        image_points: List[np.ndarray] = []
        image_size: Optional[Tuple[int, int]] = None

        for index, image in enumerate(images):
            name = _image_name(image, index)
            size = image.resolution()
            if image_size is None:
                image_size = size
            elif size != image_size:
                raise CalibrationError(f"Expected all images to be the same size. Failed on image: {name}")

            try:
                corners = self.find_corners(image, name)
            except CheckerboardNotFoundError as e:
                logger.warning(str(e))
                continue

            object_points.append(template)
            image_points.append(corners)

        logger.info(f"Successfully performed corner-finding on {len(image_points)} images")
        if len(image_points) < self.min_images:
            raise InsufficientCalibrationDataError(
                f"Insufficient successful corner-finding results to continue to calibration "
                f"({len(image_points)} of {self.min_images} required)"
            )

        # Fix the top-right board corner
        fixed_point = len(template) - 2

        start = time.perf_counter()
        error, camera_matrix, dist_coeffs, _rvecs, _tvecs, _new_obj = cv2.calibrateCameraRO(
            object_points,
            image_points,
            image_size,
            fixed_point,
            None,
            None,
            flags=0,
            criteria=SOLVER_CRITERIA,
        )
        log_performance("calibrateCameraRO", (time.perf_counter() - start) * 1000.0, threshold_ms=5000.0)
        logger.info(f"Calibration finished with reprojection error: {error}")

        return IntrinsicsResult(
            camera_matrix=camera_matrix,
            distortion_coeffs=dist_coeffs,
            reprojection_error_px=float(error),
            image_size=image_size,
            images_used=len(image_points),
        )

    def _write_overlay(self, mat: np.ndarray, corners: Optional[np.ndarray], found: bool, name: str) -> None:
        overlay = mat.copy()
        if corners is not None:
            cv2.drawChessboardCorners(overlay, self.pattern_size, corners, found)
        self.debug_dir.mkdir(parents=True, exist_ok=True)
        out_path = self.debug_dir / name
        if not out_path.suffix:
            out_path = out_path.with_suffix(".png")
        if not cv2.imwrite(str(out_path), overlay):
            logger.warning(f"Failed to write debug image {out_path}")


def apply_calibration(config: CameraConfig, result: IntrinsicsResult) -> CameraConfig:
    """Return ``config`` with the solved intrinsics and distortion."""
    return config.replace(
        intrinsic_matrix=as_array_view(result.camera_matrix, (3, 3)),
        distortion_coeffs=as_array_view(result.distortion_coeffs, (5,)),
    )


def _image_name(image: Image, index: int) -> str:
    path = getattr(image.pixels, "path", None)
    if path is not None:
        return Path(path).name
    return f"image_{index}.png"
