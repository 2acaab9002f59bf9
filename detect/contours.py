"""Contour extraction and analysis over captured images."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import List, Optional

import cv2
import numpy as np

from contracts import CameraConfig, Contour, ContourGroup, Image, VisionTarget


class ContourExtractor(ABC):
    @abstractmethod
    def extract_from(self, image: Image) -> List[ContourGroup]:
        """Find contours in ``image``, grouped by logical origin."""


class ContourAnalyzer(ABC):
    @abstractmethod
    def analyze(self, group: ContourGroup) -> VisionTarget:
        """Compute a target from one contour group."""


class ThresholdContourExtractor(ContourExtractor):
    """Binary threshold followed by external contour finding.

    Each contour above ``min_area`` becomes its own group, largest first.
    """

    def __init__(self, threshold: int = 127, min_area: float = 10.0, max_groups: Optional[int] = None) -> None:
        self.threshold = threshold
        self.min_area = min_area
        self.max_groups = max_groups

    def extract_from(self, image: Image) -> List[ContourGroup]:
        mat = image.as_mat()
        gray = cv2.cvtColor(mat, cv2.COLOR_BGR2GRAY) if mat.ndim == 3 else mat
        _, binary = cv2.threshold(gray, self.threshold, 255, cv2.THRESH_BINARY)
        found, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        scored = [(cv2.contourArea(c), c) for c in found]
        scored = [item for item in scored if item[0] >= self.min_area]
        scored.sort(key=lambda item: item[0], reverse=True)
        if self.max_groups is not None:
            scored = scored[: self.max_groups]

        config = image.config()
        return [
            ContourGroup(id=index, camera=config, contours=[Contour.from_array(points)])
            for index, (_, points) in enumerate(scored)
        ]


class CentroidAnalyzer(ContourAnalyzer):
    """Bearing to the centroid of a group, from the camera intrinsics.

    Falls back to the field of view when the camera is not calibrated.
    Confidence is the share of the frame's area covered by the group's hull,
    scaled by ``area_for_full_confidence``.
    """

    def __init__(self, area_for_full_confidence: float = 0.01) -> None:
        self.area_for_full_confidence = area_for_full_confidence

    def analyze(self, group: ContourGroup) -> VisionTarget:
        points = np.concatenate([c.as_array() for c in group.contours]) if group.contours else np.zeros((0, 2))
        if len(points) == 0:
            return VisionTarget(id=group.id)

        cx, cy = points.mean(axis=0)
        beta, theta = _bearing(group.camera, float(cx), float(cy))

        confidence = 0.0
        frame_area = group.camera.width * group.camera.height
        if frame_area > 0 and len(points) >= 3:
            hull_area = cv2.contourArea(cv2.convexHull(points.astype(np.float32)))
            confidence = min(1.0, hull_area / frame_area / self.area_for_full_confidence)
        return VisionTarget(id=group.id, beta=beta, theta=theta, confidence=confidence)


def _bearing(config: CameraConfig, x: float, y: float) -> tuple[float, float]:
    if config.intrinsic_matrix is not None:
        k = config.intrinsic_matrix
        return math.atan2(x - k[0, 2], k[0, 0]), math.atan2(k[1, 2] - y, k[1, 1])

    width, height = config.resolution
    if width <= 0 or height <= 0:
        return 0.0, 0.0
    h_fov, v_fov = (math.radians(v) for v in config.fov)
    beta = (x / width - 0.5) * h_fov
    theta = (0.5 - y / height) * v_fov
    return beta, theta
