"""Tests for checkerboard calibration."""

from __future__ import annotations

from unittest.mock import patch

import cv2
import numpy as np
import pytest

from calib import CheckerboardCalibrator, IntrinsicsResult, apply_calibration
from contracts import CameraConfig, Image
from exceptions import CalibrationError, InsufficientCalibrationDataError
from pixels import MatImageData

TRUE_K = np.array([[800.0, 0.0, 320.0], [0.0, 800.0, 240.0], [0.0, 0.0, 1.0]])

VIEWS = [
    ((0.0, 0.0, 0.0), (-0.1, -0.06, 0.5)),
    ((0.3, 0.0, 0.0), (-0.1, -0.06, 0.55)),
    ((0.0, 0.3, 0.0), (-0.12, -0.05, 0.6)),
    ((-0.25, 0.2, 0.1), (-0.08, -0.07, 0.5)),
    ((0.2, -0.3, -0.1), (-0.1, -0.04, 0.65)),
]


def _blank(config: CameraConfig, width: int = 640, height: int = 480) -> Image:
    return Image(timestamp=0, camera=config, pixels=MatImageData(np.zeros((height, width, 3), dtype=np.uint8)))


def _projected_corners(calibrator: CheckerboardCalibrator):
    object_points = calibrator.object_points().astype(np.float64)
    detections = []
    for rvec, tvec in VIEWS:
        points, _ = cv2.projectPoints(object_points, np.array(rvec), np.array(tvec), TRUE_K, None)
        detections.append((True, points.astype(np.float32)))
    return detections


class TestBoardGeometry:
    """Test the board model."""

    def test_pattern_is_inner_corners(self):
        calibrator = CheckerboardCalibrator(board_rows=7, board_cols=10, square_size_mm=25.0)

        assert calibrator.pattern_size == (9, 6)

    def test_object_points_in_meters_column_major(self):
        calibrator = CheckerboardCalibrator(board_rows=4, board_cols=3, square_size_mm=20.0)

        points = calibrator.object_points()

        assert points.shape == (6, 3)
        np.testing.assert_allclose(points[:3], [[0, 0, 0], [0, 0.02, 0], [0, 0.04, 0]], atol=1e-7)
        np.testing.assert_allclose(points[3], [0.02, 0, 0], atol=1e-7)

    def test_degenerate_board_rejected(self):
        with pytest.raises(CalibrationError):
            CheckerboardCalibrator(board_rows=1, board_cols=5, square_size_mm=10.0)


class TestCalibrateIntrinsics:
    """Test corner collection and the solver call."""

    def test_recovers_known_intrinsics(self):
        calibrator = CheckerboardCalibrator(board_rows=7, board_cols=10, square_size_mm=25.0)
        images = [_blank(CameraConfig()) for _ in VIEWS]

        with patch("calib.checkerboard.cv2.findChessboardCornersSB", side_effect=_projected_corners(calibrator)), patch(
            "calib.checkerboard.cv2.estimateChessboardSharpness", return_value=((1.5, 40.0, 220.0, 0.0), None)
        ):
            result = calibrator.calibrate_intrinsics(images)

        assert result.images_used == len(VIEWS)
        assert result.image_size == (640, 480)
        assert result.reprojection_error_px < 0.5
        np.testing.assert_allclose(result.camera_matrix[0, 0], 800.0, rtol=0.02)
        np.testing.assert_allclose(result.camera_matrix[1, 1], 800.0, rtol=0.02)

    def test_insufficient_detections(self):
        calibrator = CheckerboardCalibrator(board_rows=7, board_cols=10, square_size_mm=25.0)
        images = [_blank(CameraConfig()) for _ in range(4)]

        with patch("calib.checkerboard.cv2.findChessboardCornersSB", return_value=(False, None)):
            with pytest.raises(InsufficientCalibrationDataError):
                calibrator.calibrate_intrinsics(images)

    def test_mixed_image_sizes_rejected(self):
        calibrator = CheckerboardCalibrator(board_rows=7, board_cols=10, square_size_mm=25.0)
        images = [_blank(CameraConfig()), _blank(CameraConfig(), width=320, height=240)]

        with patch("calib.checkerboard.cv2.findChessboardCornersSB", return_value=(False, None)):
            with pytest.raises(CalibrationError, match="same size"):
                calibrator.calibrate_intrinsics(images)

    def test_debug_overlays_written(self, tmp_path):
        calibrator = CheckerboardCalibrator(
            board_rows=7, board_cols=10, square_size_mm=25.0, min_images=1, debug_dir=tmp_path / "debug"
        )

        with patch("calib.checkerboard.cv2.findChessboardCornersSB", return_value=(False, None)):
            with pytest.raises(InsufficientCalibrationDataError):
                calibrator.calibrate_intrinsics([_blank(CameraConfig())])

        assert (tmp_path / "debug" / "image_0.png").exists()


class TestApplyCalibration:
    """Test writing solver output into a camera config."""

    def test_config_gains_intrinsics(self):
        config = CameraConfig(id=2, resolution=(640, 480))
        result = IntrinsicsResult(
            camera_matrix=TRUE_K.copy(),
            distortion_coeffs=np.array([[0.1, -0.2, 0.0, 0.0, 0.03]]),
            reprojection_error_px=0.2,
            image_size=(640, 480),
            images_used=5,
        )

        calibrated = apply_calibration(config, result)

        assert calibrated.is_calibrated
        assert not config.is_calibrated
        assert calibrated.resolution == (640, 480)
        assert calibrated.distortion_coeffs.shape == (5,)
        np.testing.assert_array_equal(calibrated.intrinsic_matrix, TRUE_K)
