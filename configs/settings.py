"""Configuration loading for stdvis tools."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from configs.validator import validate_config
from exceptions import InvalidConfigError
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default.yaml")


@dataclass(frozen=True)
class CameraSection:
    id: int
    backend: str = "v4l"
    width: int = 640
    height: int = 480
    exposure: float = 0.0
    config_path: Optional[str] = None  # Persisted CameraConfig JSON


@dataclass(frozen=True)
class CaptureSection:
    timeout_s: Optional[float] = 2.0
    retry_attempts: int = 3
    retry_base_delay_s: float = 0.5
    retry_max_delay_s: float = 5.0


@dataclass(frozen=True)
class CalibrationSection:
    board_rows: int = 7
    board_cols: int = 10
    square_size_mm: float = 25.0
    min_images: int = 3


@dataclass(frozen=True)
class SampleSection:
    frames: int = 10
    exposure_step: float = 20
    warmup_ms: int = 1000
    output_format: str = "png"


@dataclass(frozen=True)
class LoggingSection:
    level: str = "INFO"
    log_dir: Optional[str] = None


@dataclass(frozen=True)
class AppConfig:
    camera: CameraSection
    capture: CaptureSection
    calibration: CalibrationSection
    sample: SampleSection
    logging: LoggingSection


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    path = Path(path)
    try:
        logger.info(f"Loading configuration from {path}")
        if not path.exists():
            raise InvalidConfigError(f"Configuration file not found: {path}")

        data = yaml.safe_load(path.read_text())
        if not isinstance(data, dict):
            raise InvalidConfigError(f"Configuration root must be a mapping: {path}")

    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise InvalidConfigError(f"Failed to parse configuration file: {e}")

    # Fills schema defaults into ``data``
    validate_config(data)

    try:
        config = AppConfig(
            camera=CameraSection(**data["camera"]),
            capture=CaptureSection(**data["capture"]),
            calibration=CalibrationSection(**data["calibration"]),
            sample=SampleSection(**data["sample"]),
            logging=LoggingSection(**data["logging"]),
        )
    except (KeyError, TypeError) as e:
        logger.error(f"Failed to construct configuration objects: {e}")
        raise InvalidConfigError(f"Failed to construct configuration: {e}")

    logger.info(
        f"Configuration loaded successfully: {config.camera.backend} backend, "
        f"camera {config.camera.id} at {config.camera.width}x{config.camera.height}"
    )
    return config
