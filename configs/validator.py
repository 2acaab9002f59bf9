"""Configuration validation using JSON Schema."""

from __future__ import annotations

from typing import Any, Dict, Mapping

import jsonschema
from jsonschema import Draft7Validator, validators

from exceptions import ConfigValidationError
from log_config.logger import get_logger

logger = get_logger(__name__)

BACKEND_NAMES = ["v4l", "cuda", "sim"]

_NUMBER_PAIR = {
    "type": "array",
    "items": {"type": "number"},
    "minItems": 2,
    "maxItems": 2,
}

# JSON Schema for default.yaml configuration
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["camera"],
    "properties": {
        "camera": {
            "type": "object",
            "required": ["id"],
            "properties": {
                "id": {"type": "integer", "minimum": 0, "maximum": 255},
                "backend": {"type": "string", "enum": BACKEND_NAMES, "default": "v4l"},
                "width": {"type": "integer", "minimum": 0, "maximum": 7680, "default": 640},
                "height": {"type": "integer", "minimum": 0, "maximum": 4320, "default": 480},
                "exposure": {"type": "number", "minimum": 0, "default": 0},
                "config_path": {"type": ["string", "null"], "default": None},
            },
        },
        "capture": {
            "type": "object",
            "default": {},
            "properties": {
                "timeout_s": {"type": ["number", "null"], "exclusiveMinimum": 0, "default": 2.0},
                "retry_attempts": {"type": "integer", "minimum": 1, "maximum": 20, "default": 3},
                "retry_base_delay_s": {"type": "number", "minimum": 0, "default": 0.5},
                "retry_max_delay_s": {"type": "number", "minimum": 0, "default": 5.0},
            },
        },
        "calibration": {
            "type": "object",
            "default": {},
            "properties": {
                "board_rows": {"type": "integer", "minimum": 3, "maximum": 64, "default": 7},
                "board_cols": {"type": "integer", "minimum": 3, "maximum": 64, "default": 10},
                "square_size_mm": {"type": "number", "exclusiveMinimum": 0, "default": 25.0},
                "min_images": {"type": "integer", "minimum": 1, "default": 3},
            },
        },
        "sample": {
            "type": "object",
            "default": {},
            "properties": {
                "frames": {"type": "integer", "minimum": 1, "maximum": 1000, "default": 10},
                "exposure_step": {"type": "number", "minimum": 0, "default": 20},
                "warmup_ms": {"type": "integer", "minimum": 0, "maximum": 60000, "default": 1000},
                "output_format": {"type": "string", "enum": ["png", "jpg", "bmp", "tiff"], "default": "png"},
            },
        },
        "logging": {
            "type": "object",
            "default": {},
            "properties": {
                "level": {
                    "type": "string",
                    "enum": ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"],
                    "default": "INFO",
                },
                "log_dir": {"type": ["string", "null"], "default": None},
            },
        },
    },
}

# JSON Schema for a persisted CameraConfig record
CAMERA_CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "id": {"type": "integer", "minimum": 0, "maximum": 255},
        "resolution": {
            "type": "array",
            "items": {"type": "integer", "minimum": 0},
            "minItems": 2,
            "maxItems": 2,
        },
        "pose": {
            "type": "object",
            "properties": {
                key: {"type": "number"}
                for key in ("angle", "dist", "height", "yaw", "pitch", "roll")
            },
            "additionalProperties": False,
        },
        "fov": _NUMBER_PAIR,
        "focal_length": {"type": "number"},
        "sensor_width": {"type": "number"},
        "sensor_height": {"type": "number"},
        "exposure": {"type": "number"},
        "intrinsic_matrix": {
            "oneOf": [
                {"type": "null"},
                {
                    "type": "array",
                    "items": {
                        "type": "array",
                        "items": {"type": "number"},
                        "minItems": 3,
                        "maxItems": 3,
                    },
                    "minItems": 3,
                    "maxItems": 3,
                },
            ]
        },
        "distortion_coeffs": {
            "oneOf": [
                {"type": "null"},
                {"type": "array", "items": {"type": "number"}, "minItems": 5, "maxItems": 5},
            ]
        },
    },
    "additionalProperties": False,
}


def extend_with_default(validator_class):
    """Extend JSON Schema validator to set default values."""
    validate_properties = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        if isinstance(instance, dict):
            for prop, subschema in properties.items():
                if "default" in subschema:
                    instance.setdefault(prop, _copy_default(subschema["default"]))

        for error in validate_properties(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


def _copy_default(value: Any) -> Any:
    return dict(value) if isinstance(value, dict) else value


DefaultValidatingValidator = extend_with_default(Draft7Validator)


def _check(schema: Mapping[str, Any], instance: Any, label: str, fill_defaults: bool) -> None:
    validator_cls = DefaultValidatingValidator if fill_defaults else Draft7Validator
    try:
        validator = validator_cls(schema)
        errors = list(validator.iter_errors(instance))
    except jsonschema.exceptions.SchemaError as e:
        logger.error(f"Invalid schema: {e}")
        raise ConfigValidationError(f"Invalid schema definition: {e}")

    if errors:
        error_messages = []
        for error in errors:
            path = " -> ".join(str(p) for p in error.path) if error.path else "root"
            error_messages.append(f"{path}: {error.message}")

        logger.error(f"{label} validation failed with {len(errors)} errors")
        for msg in error_messages:
            logger.error(f"  - {msg}")

        raise ConfigValidationError(
            f"{label} validation failed with {len(errors)} error(s). See logs for details.",
            validation_errors=error_messages,
        )


def validate_config(config: Dict[str, Any]) -> None:
    """Validate application configuration, filling in schema defaults in place.

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    _check(CONFIG_SCHEMA, config, "Configuration", fill_defaults=True)
    logger.info("Configuration validation passed")


def validate_camera_config(record: Dict[str, Any]) -> None:
    """Validate a persisted camera config record.

    Raises:
        ConfigValidationError: If the record does not match the schema
    """
    _check(CAMERA_CONFIG_SCHEMA, record, "Camera config", fill_defaults=False)


__all__ = [
    "BACKEND_NAMES",
    "CAMERA_CONFIG_SCHEMA",
    "CONFIG_SCHEMA",
    "validate_camera_config",
    "validate_config",
]
