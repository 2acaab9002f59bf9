"""Tests for contour extraction and analysis."""

from __future__ import annotations

import math

import cv2
import numpy as np

from contracts import CameraConfig, Contour, ContourGroup, Image
from detect import CentroidAnalyzer, ThresholdContourExtractor
from pixels import MatImageData


def _image_with_squares(config: CameraConfig) -> Image:
    mat = np.zeros((config.height, config.width, 3), dtype=np.uint8)
    cv2.rectangle(mat, (10, 10), (29, 29), (255, 255, 255), thickness=-1)
    cv2.rectangle(mat, (100, 50), (159, 109), (255, 255, 255), thickness=-1)
    cv2.rectangle(mat, (200, 200), (201, 201), (255, 255, 255), thickness=-1)
    return Image(timestamp=0, camera=config, pixels=MatImageData(mat))


class TestThresholdContourExtractor:
    """Test the reference extractor."""

    def test_groups_sorted_by_area(self):
        config = CameraConfig(resolution=(320, 240))

        groups = ThresholdContourExtractor(min_area=10.0).extract_from(_image_with_squares(config))

        assert len(groups) == 2
        assert [g.id for g in groups] == [0, 1]
        assert cv2.contourArea(groups[0].contours[0].as_array()) > cv2.contourArea(groups[1].contours[0].as_array())
        assert all(g.camera is config for g in groups)

    def test_max_groups(self):
        config = CameraConfig(resolution=(320, 240))

        groups = ThresholdContourExtractor(max_groups=1).extract_from(_image_with_squares(config))

        assert len(groups) == 1

    def test_extraction_does_not_modify_pixels(self):
        image = _image_with_squares(CameraConfig(resolution=(320, 240)))
        before = image.as_pixels().copy()

        ThresholdContourExtractor().extract_from(image)

        assert np.array_equal(image.as_pixels(), before)


class TestCentroidAnalyzer:
    """Test bearing computation."""

    def test_center_target_has_zero_bearing(self):
        config = CameraConfig(resolution=(200, 100), fov=(60.0, 40.0))
        square = Contour(points=((90.0, 40.0), (110.0, 40.0), (110.0, 60.0), (90.0, 60.0)))

        target = CentroidAnalyzer().analyze(ContourGroup(id=3, camera=config, contours=[square]))

        assert target.id == 3
        assert math.isclose(target.beta, 0.0, abs_tol=1e-9)
        assert math.isclose(target.theta, 0.0, abs_tol=1e-9)
        assert 0.0 < target.confidence <= 1.0

    def test_uses_intrinsics_when_calibrated(self):
        k = np.array([[100.0, 0.0, 50.0], [0.0, 100.0, 50.0], [0.0, 0.0, 1.0]])
        config = CameraConfig(resolution=(100, 100), intrinsic_matrix=k, distortion_coeffs=np.zeros(5))
        point = Contour(points=((150.0, 50.0),))

        target = CentroidAnalyzer().analyze(ContourGroup(id=0, camera=config, contours=[point]))

        assert math.isclose(target.beta, math.pi / 4)
        assert target.confidence == 0.0

    def test_empty_group(self):
        target = CentroidAnalyzer().analyze(ContourGroup(id=1, camera=CameraConfig()))

        assert target.id == 1
        assert target.confidence == 0.0
