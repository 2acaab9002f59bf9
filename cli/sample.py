"""``sample`` subcommand: capture an exposure sweep with metadata."""

from __future__ import annotations

import argparse
import dataclasses
import json
import time
from pathlib import Path
from typing import Any, Dict

from capture import (
    Camera,
    RetryPolicy,
    grab_frame_with_retry,
    grab_frame_with_timeout,
    open_camera,
    retry_on_failure,
)
from configs.camera_io import camera_config_from_dict, camera_config_to_dict, load_camera_config
from configs.settings import AppConfig, CameraSection, CaptureSection
from configs.validator import BACKEND_NAMES
from contracts import CameraConfig, Image, VisionTarget
from exceptions import ControlError, InvalidConfigError
from log_config.logger import get_logger
from pixels.image_io import save_image

logger = get_logger(__name__)

METADATA_FILENAME = "metadata.json"


def add_parser(subparsers) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "sample",
        help="Capture frames across a range of exposures",
    )
    parser.add_argument(
        "params_file",
        type=Path,
        help="Input parameters JSON; a template is written on first run",
    )
    parser.add_argument("output_dir", type=Path, help="Directory for images and metadata")
    parser.add_argument(
        "-d",
        "--delay",
        dest="delay_ms",
        type=int,
        default=None,
        help="Milliseconds to wait between captures",
    )
    parser.set_defaults(handler=run)
    return parser


def default_camera_config(section: CameraSection) -> CameraConfig:
    """Camera config for new params: the persisted record if one is configured."""
    if section.config_path:
        return load_camera_config(Path(section.config_path))
    return CameraConfig(
        id=section.id,
        resolution=(section.width, section.height),
        exposure=section.exposure,
    )


def params_template(section: CameraSection) -> Dict[str, Any]:
    return {
        "label": "",
        "target": dataclasses.asdict(VisionTarget()),
        "camera": camera_config_to_dict(default_camera_config(section)),
        "backend": section.backend,
    }


def load_params(path: Path, section: CameraSection) -> Dict[str, Any]:
    """Read sampling parameters, writing a template when the file is missing or empty.

    Raises:
        InvalidConfigError: If a template was written or the file cannot be parsed
    """
    text = path.read_text() if path.exists() else ""
    if not text.strip():
        path.write_text(json.dumps(params_template(section), indent=2))
        raise InvalidConfigError(
            f"Please configure input parameters. A template file has been created at {path}"
        )

    try:
        params = json.loads(text)
        params["camera"] = camera_config_from_dict(params["camera"])
        params["target"] = VisionTarget(**params.get("target", {}))
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise InvalidConfigError(
            f"Failed to parse input parameters ({e}). The file may be malformed or out of date; "
            f"delete it to generate a new template."
        )
    params.setdefault("label", "")
    params.setdefault("backend", section.backend)
    if params["backend"] not in BACKEND_NAMES:
        raise InvalidConfigError(f"Unknown backend {params['backend']!r}; expected one of {BACKEND_NAMES}")
    return params


def load_metadata(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {"images": []}
    try:
        metadata = json.loads(path.read_text())
    except json.JSONDecodeError:
        logger.warning(f"{path} is not valid JSON, starting a new metadata file")
        return {"images": []}
    if not isinstance(metadata, dict) or not isinstance(metadata.get("images"), list):
        logger.warning(f"{path} has an unexpected layout, starting a new metadata file")
        return {"images": []}
    return metadata


def grab(camera: Camera, settings: CaptureSection) -> Image:
    policy = RetryPolicy(
        max_attempts=settings.retry_attempts,
        base_delay=settings.retry_base_delay_s,
        max_delay=settings.retry_max_delay_s,
    )
    if settings.timeout_s is None:
        return grab_frame_with_retry(camera, policy)
    return retry_on_failure(policy)(grab_frame_with_timeout)(camera, settings.timeout_s)


def run(args: argparse.Namespace, app_config: AppConfig) -> int:
    params = load_params(args.params_file, app_config.camera)
    settings = app_config.sample
    label = params["label"]

    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    metadata_path = output_dir / METADATA_FILENAME
    metadata = load_metadata(metadata_path)

    with open_camera(params["camera"], params["backend"]) as camera:
        # Let the sensor settle before the sweep
        time.sleep(settings.warmup_ms / 1000.0)

        try:
            for step in range(settings.frames):
                exposure = int(step * settings.exposure_step)
                try:
                    camera.set_exposure(exposure)
                except ControlError as e:
                    logger.warning(f"Camera {camera.config().id}: could not set exposure {exposure}: {e}")
                image = grab(camera, app_config.capture)

                index = len(metadata["images"])
                save_image(image, output_dir / f"{label}_{index}.{settings.output_format}")
                metadata["images"].append(
                    {
                        "index": index,
                        "label": label,
                        "config": camera_config_to_dict(image.config()),
                        "exposure": _read_exposure(camera),
                        "timestamp_ns": image.timestamp,
                    }
                )
                logger.info(f"Captured {label}_{index} at exposure {exposure}")

                if args.delay_ms:
                    time.sleep(args.delay_ms / 1000.0)
        finally:
            # Record whatever was saved, even if the sweep stopped early
            metadata_path.write_text(json.dumps(metadata, indent=2))

    logger.info(f"Wrote {settings.frames} samples to {output_dir}")
    return 0


def _read_exposure(camera: Camera) -> Any:
    try:
        return camera.exposure()
    except ControlError as e:
        logger.warning(f"Camera {camera.config().id}: could not read exposure: {e}")
        return None
