"""Image file codec glue."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Union

import cv2

from contracts import CameraConfig, Image
from exceptions import ShapeError
from log_config.logger import get_logger
from pixels.image_data import FileImageData

logger = get_logger(__name__)


def load_image(path: Union[str, Path], config: CameraConfig) -> Image:
    """Decode ``path`` as a 3-channel image bound to ``config``.

    The timestamp is the load time on the monotonic clock.

    Raises:
        FileNotFoundError: If the file does not exist
        ShapeError: If OpenCV cannot decode the file
    """
    pixels = FileImageData.load(path, cv2.IMREAD_COLOR)
    return Image(timestamp=time.monotonic_ns(), camera=config, pixels=pixels)


def save_image(image: Image, path: Union[str, Path]) -> None:
    """Encode the image pixels to ``path``; the format follows the extension.

    Raises:
        ShapeError: If OpenCV cannot encode the image
    """
    path = Path(path)
    try:
        written = cv2.imwrite(str(path), image.as_mat())
    except cv2.error as e:
        raise ShapeError(f"Failed to write image: {path}: {e}")
    if not written:
        raise ShapeError(f"Failed to write image: {path}")
    logger.debug(f"Wrote {path}")
