"""Device control channels keyed by integer control IDs.

Controls are independent of frame capture: a failed get/set raises a
``ControlError`` and leaves the capture stream untouched.
"""

from __future__ import annotations

import re
import subprocess
from abc import ABC, abstractmethod
from typing import Dict, Optional, Union

import cv2

from exceptions import ControlError, DeviceBusyError, UnsupportedControlError
from log_config.logger import get_logger

logger = get_logger(__name__)

ControlValue = Union[int, float]

# From linux/v4l2-controls.h
V4L2_CID_EXPOSURE_AUTO = 0x009A0901
V4L2_CID_EXPOSURE_ABSOLUTE = 0x009A0902
V4L2_EXPOSURE_MANUAL = 1

_LIST_CTRLS_PATTERN = re.compile(r"^\s*(\w+)\s+(0x[0-9a-fA-F]+)\s")


class DeviceControls(ABC):
    """Synchronous key/value control channel of a camera device."""

    exposure_id: int
    exposure_auto_id: int
    exposure_manual_value: ControlValue

    @abstractmethod
    def get(self, control_id: int) -> ControlValue:
        """Read a control value.

        Raises:
            UnsupportedControlError: If the device has no such control
            DeviceBusyError: If the device rejected the request
        """

    @abstractmethod
    def set(self, control_id: int, value: ControlValue) -> None:
        """Write a control value.

        Raises:
            UnsupportedControlError: If the device has no such control
            DeviceBusyError: If the device rejected the request
        """


def read_exposure(controls: DeviceControls) -> ControlValue:
    return controls.get(controls.exposure_id)


def set_manual_exposure(controls: DeviceControls, exposure: ControlValue) -> None:
    """Switch auto exposure off, then apply ``exposure``."""
    controls.set(controls.exposure_auto_id, controls.exposure_manual_value)
    controls.set(controls.exposure_id, exposure)


class CaptureControls(DeviceControls):
    """Controls routed through an OpenCV ``VideoCapture`` (``CAP_PROP_*`` IDs)."""

    exposure_id = cv2.CAP_PROP_EXPOSURE
    exposure_auto_id = cv2.CAP_PROP_AUTO_EXPOSURE
    # V4L backend maps 1 to V4L2_EXPOSURE_MANUAL
    exposure_manual_value = 1.0

    def __init__(self, capture: "cv2.VideoCapture") -> None:
        self._capture = capture

    def get(self, control_id: int) -> ControlValue:
        if not self._capture.isOpened():
            raise DeviceBusyError("Capture is not open", control_id=control_id)
        return self._capture.get(control_id)

    def set(self, control_id: int, value: ControlValue) -> None:
        if not self._capture.isOpened():
            raise DeviceBusyError("Capture is not open", control_id=control_id)
        if not self._capture.set(control_id, float(value)):
            raise UnsupportedControlError(
                f"Device rejected property {control_id}={value}",
                control_id=control_id,
            )
        logger.debug(f"Set capture property {control_id}={value}")


class V4l2Controls(DeviceControls):
    """V4L2 controls driven through the ``v4l2-ctl`` utility (V4L2 CIDs)."""

    exposure_id = V4L2_CID_EXPOSURE_ABSOLUTE
    exposure_auto_id = V4L2_CID_EXPOSURE_AUTO
    exposure_manual_value = V4L2_EXPOSURE_MANUAL

    def __init__(self, device_path: str, binary: str = "v4l2-ctl", timeout_s: float = 1.0) -> None:
        self._device_path = device_path
        self._binary = binary
        self._timeout_s = timeout_s
        self._names: Optional[Dict[int, str]] = None

    def get(self, control_id: int) -> ControlValue:
        name = self._control_name(control_id)
        output = self._run([f"--get-ctrl={name}"], control_id)
        # Output format: "<name>: <value>"
        _, _, value = output.strip().partition(":")
        try:
            return int(value.strip())
        except ValueError:
            raise ControlError(f"Unexpected v4l2-ctl output for {name}: {output!r}", control_id=control_id)

    def set(self, control_id: int, value: ControlValue) -> None:
        name = self._control_name(control_id)
        self._run([f"--set-ctrl={name}={int(value)}"], control_id)
        logger.debug(f"V4L2 set {self._device_path}: {name}={int(value)}")

    def _control_name(self, control_id: int) -> str:
        if self._names is None:
            self._names = self._list_controls()
        name = self._names.get(control_id)
        if name is None:
            raise UnsupportedControlError(
                f"{self._device_path} has no control 0x{control_id:08x}",
                control_id=control_id,
            )
        return name

    def _list_controls(self) -> Dict[int, str]:
        output = self._run(["--list-ctrls"], None)
        names: Dict[int, str] = {}
        for line in output.splitlines():
            match = _LIST_CTRLS_PATTERN.match(line)
            if match:
                names[int(match.group(2), 16)] = match.group(1)
        return names

    def _run(self, args: list[str], control_id: Optional[int]) -> str:
        cmd = [self._binary, "-d", self._device_path, *args]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout_s, check=False)
        except FileNotFoundError:
            raise UnsupportedControlError(f"{self._binary} is not installed", control_id=control_id)
        except subprocess.TimeoutExpired:
            logger.warning(f"{self._binary} timed out on {self._device_path}")
            raise DeviceBusyError(f"{self._binary} timed out on {self._device_path}", control_id=control_id)

        if result.returncode != 0:
            stderr = result.stderr.strip()
            logger.warning(f"V4L2 control failure on {self._device_path}: {stderr}")
            if "busy" in stderr.lower():
                raise DeviceBusyError(stderr, control_id=control_id)
            raise ControlError(stderr or f"{self._binary} exited with {result.returncode}", control_id=control_id)
        return result.stdout


class MemoryControls(DeviceControls):
    """In-memory controls used by simulated devices (V4L2 CIDs)."""

    exposure_id = V4L2_CID_EXPOSURE_ABSOLUTE
    exposure_auto_id = V4L2_CID_EXPOSURE_AUTO
    exposure_manual_value = V4L2_EXPOSURE_MANUAL

    def __init__(self, values: Optional[Dict[int, ControlValue]] = None) -> None:
        self._values: Dict[int, ControlValue] = dict(values or {})

    def get(self, control_id: int) -> ControlValue:
        try:
            return self._values[control_id]
        except KeyError:
            raise UnsupportedControlError(f"No control 0x{control_id:08x}", control_id=control_id)

    def set(self, control_id: int, value: ControlValue) -> None:
        if control_id not in self._values:
            raise UnsupportedControlError(f"No control 0x{control_id:08x}", control_id=control_id)
        self._values[control_id] = value
