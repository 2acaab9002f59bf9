"""Tests for image file load/save."""

from __future__ import annotations

import cv2
import numpy as np
import pytest

from capture import SimulatedCamera
from contracts import CameraConfig
from exceptions import ShapeError
from pixels.image_io import load_image, save_image


class TestImageIO:
    """Test codec glue over Image pixels."""

    def test_save_padded_frame_then_load(self, tmp_path):
        camera = SimulatedCamera.open(CameraConfig(resolution=(320, 240)), row_align=512)
        image = camera.grab_frame()
        path = tmp_path / "frame.png"

        save_image(image, path)
        loaded = load_image(path, camera.config())

        assert loaded.config() is camera.config()
        assert np.array_equal(loaded.as_pixels(), image.as_pixels())
        loaded.check_resolution()

    def test_loaded_image_is_mutable(self, tmp_path):
        path = tmp_path / "gray.png"
        cv2.imwrite(str(path), np.zeros((6, 8), dtype=np.uint8))

        image = load_image(path, CameraConfig(resolution=(8, 6)))
        image.as_pixels_mut()[0, 0] = (1, 2, 3)

        assert image.channels == 3
        assert image.as_raw().at(0, 0) == (1, 2, 3)

    def test_unwritable_path(self, tmp_path):
        camera = SimulatedCamera.open(CameraConfig(resolution=(320, 240)))

        with pytest.raises(ShapeError, match="Failed to write"):
            save_image(camera.grab_frame(), tmp_path / "frame.unknownext")
