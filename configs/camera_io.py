"""Persist CameraConfig records as JSON."""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Any, Dict

from configs.validator import validate_camera_config
from contracts import CameraConfig, Pose
from exceptions import InvalidConfigError
from log_config.logger import get_logger

logger = get_logger(__name__)


def camera_config_to_dict(config: CameraConfig) -> Dict[str, Any]:
    return {
        "id": config.id,
        "resolution": list(config.resolution),
        "pose": dataclasses.asdict(config.pose),
        "fov": list(config.fov),
        "focal_length": config.focal_length,
        "sensor_width": config.sensor_width,
        "sensor_height": config.sensor_height,
        "exposure": config.exposure,
        "intrinsic_matrix": None if config.intrinsic_matrix is None else config.intrinsic_matrix.tolist(),
        "distortion_coeffs": None if config.distortion_coeffs is None else config.distortion_coeffs.tolist(),
    }


def camera_config_from_dict(record: Dict[str, Any]) -> CameraConfig:
    """Build a CameraConfig from a record; missing fields take their defaults.

    Raises:
        ConfigValidationError: If the record does not match the schema
    """
    validate_camera_config(record)
    fields = dict(record)
    if "pose" in fields:
        fields["pose"] = Pose(**fields["pose"])
    if "resolution" in fields:
        fields["resolution"] = tuple(fields["resolution"])
    if "fov" in fields:
        fields["fov"] = tuple(fields["fov"])
    return CameraConfig(**fields)


def load_camera_config(path: Path) -> CameraConfig:
    """Read a persisted camera config. An empty file yields the default config.

    Raises:
        InvalidConfigError: If the file is missing or is not valid JSON
        ConfigValidationError: If the record does not match the schema
    """
    path = Path(path)
    if not path.exists():
        raise InvalidConfigError(f"Camera config not found: {path}")

    text = path.read_text()
    if not text.strip():
        logger.info(f"{path} is empty, starting from a default camera config")
        return CameraConfig()
    try:
        record = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse camera config {path}: {e}")
        raise InvalidConfigError(
            f"Failed to parse camera configuration {path}; the schema used may be out of date"
        )
    if not isinstance(record, dict):
        raise InvalidConfigError(f"Camera configuration {path} must hold a JSON object")
    return camera_config_from_dict(record)


def save_camera_config(path: Path, config: CameraConfig) -> None:
    path = Path(path)
    path.write_text(json.dumps(camera_config_to_dict(config), indent=2))
    logger.info(f"Saved camera {config.id} config to {path}")
