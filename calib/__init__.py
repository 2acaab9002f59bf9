"""Calibration module."""

from .calibrator import Calibrator, IntrinsicsResult
from .checkerboard import CheckerboardCalibrator, apply_calibration

__all__ = ["Calibrator", "CheckerboardCalibrator", "IntrinsicsResult", "apply_calibration"]
