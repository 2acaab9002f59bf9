"""``calibrate`` subcommand: solve intrinsics from checkerboard photos."""

from __future__ import annotations

import argparse
from pathlib import Path

from calib import CheckerboardCalibrator, apply_calibration
from configs.camera_io import load_camera_config, save_camera_config
from configs.settings import AppConfig
from contracts import CameraConfig
from exceptions import InsufficientCalibrationDataError
from log_config.logger import get_logger
from pixels.image_io import load_image

logger = get_logger(__name__)


def add_parser(subparsers) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "calibrate",
        help="Compute intrinsics and distortion from checkerboard images",
    )
    parser.add_argument("-s", "--square-size", type=float, default=None, help="Side length of a checkerboard square in mm")
    parser.add_argument("-r", "--board-rows", type=int, default=None, help="Number of checkerboard rows (squares)")
    parser.add_argument("-c", "--board-cols", type=int, default=None, help="Number of checkerboard columns (squares)")
    parser.add_argument(
        "-o",
        "--camera-config",
        type=Path,
        required=True,
        help="Camera config JSON to update (created if missing)",
    )
    parser.add_argument(
        "-d",
        "--debug-dir",
        type=Path,
        default=None,
        help="Write images with detected corners overlaid to this directory",
    )
    parser.add_argument("image_paths", type=Path, nargs="+", help="Checkerboard images")
    parser.set_defaults(handler=run)
    return parser


def run(args: argparse.Namespace, app_config: AppConfig) -> int:
    settings = app_config.calibration
    if len(args.image_paths) < settings.min_images:
        raise InsufficientCalibrationDataError(
            f"At least {settings.min_images} images are required, got {len(args.image_paths)}"
        )

    config_path: Path = args.camera_config
    config = load_camera_config(config_path) if config_path.exists() else CameraConfig()

    calibrator = CheckerboardCalibrator(
        board_rows=args.board_rows or settings.board_rows,
        board_cols=args.board_cols or settings.board_cols,
        square_size_mm=args.square_size or settings.square_size_mm,
        min_images=settings.min_images,
        debug_dir=args.debug_dir,
    )
    images = [load_image(path, config) for path in args.image_paths]
    result = calibrator.calibrate_intrinsics(images)

    save_camera_config(config_path, apply_calibration(config, result))
    logger.info(
        f"Wrote calibration ({result.images_used} images, "
        f"reprojection error {result.reprojection_error_px:.4f}px) to {config_path}"
    )
    return 0
