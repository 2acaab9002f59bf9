"""Tests for application config loading and camera config persistence."""

from __future__ import annotations

import json

import numpy as np
import pytest

from configs.camera_io import (
    camera_config_from_dict,
    camera_config_to_dict,
    load_camera_config,
    save_camera_config,
)
from configs.settings import DEFAULT_CONFIG_PATH, load_config
from configs.validator import validate_config
from contracts import CameraConfig, Pose
from exceptions import ConfigValidationError, InvalidConfigError


class TestLoadConfig:
    """Test YAML application config loading."""

    def test_bundled_default(self):
        config = load_config(DEFAULT_CONFIG_PATH)

        assert config.camera.backend == "v4l"
        assert config.sample.frames == 10
        assert config.sample.exposure_step == 20
        assert config.calibration.min_images == 3

    def test_missing_sections_take_defaults(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("camera:\n  id: 2\n  backend: sim\n")

        config = load_config(path)

        assert config.camera.id == 2
        assert config.camera.width == 640
        assert config.capture.retry_attempts == 3
        assert config.logging.level == "INFO"

    def test_unknown_backend_rejected(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("camera:\n  id: 0\n  backend: gige\n")

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(path)
        assert any("backend" in msg for msg in exc_info.value.validation_errors)

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidConfigError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "app.yaml"
        path.write_text("camera: [unclosed\n")

        with pytest.raises(InvalidConfigError):
            load_config(path)

    def test_validate_fills_nested_defaults(self):
        data = {"camera": {"id": 0}}

        validate_config(data)

        assert data["sample"]["warmup_ms"] == 1000
        assert data["camera"]["config_path"] is None


class TestCameraConfigIO:
    """Test the persisted CameraConfig record."""

    def _calibrated(self) -> CameraConfig:
        return CameraConfig(
            id=3,
            resolution=(1280, 720),
            pose=Pose(angle=0.1, dist=0.5, height=0.3, yaw=1.0, pitch=-0.2, roll=0.0),
            fov=(68.5, 41.2),
            focal_length=3.6,
            sensor_width=4.8,
            sensor_height=3.6,
            exposure=120.0,
            intrinsic_matrix=np.array([[900.123456789, 0.0, 640.5], [0.0, 901.987654321, 360.25], [0.0, 0.0, 1.0]]),
            distortion_coeffs=np.array([0.1, -0.25, 0.001, -0.002, 0.05]),
        )

    def test_file_round_trip_is_lossless(self, tmp_path):
        path = tmp_path / "camera.json"
        original = self._calibrated()

        save_camera_config(path, original)
        loaded = load_camera_config(path)

        assert loaded.resolution == original.resolution
        assert loaded.pose == original.pose
        assert loaded.fov == original.fov
        assert loaded.exposure == original.exposure
        assert np.array_equal(loaded.intrinsic_matrix, original.intrinsic_matrix)
        assert np.array_equal(loaded.distortion_coeffs, original.distortion_coeffs)

    def test_record_layout(self):
        record = camera_config_to_dict(self._calibrated())

        assert set(record) == {
            "id",
            "resolution",
            "pose",
            "fov",
            "focal_length",
            "sensor_width",
            "sensor_height",
            "exposure",
            "intrinsic_matrix",
            "distortion_coeffs",
        }
        assert record["resolution"] == [1280, 720]
        assert len(record["intrinsic_matrix"]) == 3

    def test_uncalibrated_record(self):
        record = camera_config_to_dict(CameraConfig())

        assert record["intrinsic_matrix"] is None
        assert not camera_config_from_dict(record).is_calibrated

    def test_partial_record_uses_defaults(self):
        config = camera_config_from_dict({"id": 1, "resolution": [640, 480]})

        assert config.resolution == (640, 480)
        assert config.pose == Pose()

    def test_bad_distortion_length(self):
        record = camera_config_to_dict(CameraConfig())
        record["distortion_coeffs"] = [0.0, 0.0, 0.0]

        with pytest.raises(ConfigValidationError):
            camera_config_from_dict(record)

    def test_unknown_field_rejected(self):
        with pytest.raises(ConfigValidationError):
            camera_config_from_dict({"id": 0, "gain": 4})

    def test_empty_file_gives_default(self, tmp_path):
        path = tmp_path / "camera.json"
        path.write_text("")

        assert load_camera_config(path).resolution == (0, 0)

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "camera.json"
        path.write_text("{not json")

        with pytest.raises(InvalidConfigError, match="out of date"):
            load_camera_config(path)

    def test_saved_file_is_plain_json(self, tmp_path):
        path = tmp_path / "camera.json"

        save_camera_config(path, CameraConfig(id=5))

        assert json.loads(path.read_text())["id"] == 5
