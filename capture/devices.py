"""Video device discovery helpers."""

from __future__ import annotations

import sys
from pathlib import Path

import cv2


def is_linux() -> bool:
    return sys.platform.startswith("linux")


def device_path(camera_id: int) -> str:
    return f"/dev/video{camera_id}"


def device_present(camera_id: int) -> bool:
    """Check for the device node; non-Linux platforms can only tell at open time."""
    if not is_linux():
        return True
    return Path(device_path(camera_id)).exists()


def default_capture_api() -> int:
    return cv2.CAP_V4L2 if is_linux() else cv2.CAP_ANY

