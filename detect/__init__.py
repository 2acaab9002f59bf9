"""Detection module."""

from .contours import (
    CentroidAnalyzer,
    ContourAnalyzer,
    ContourExtractor,
    ThresholdContourExtractor,
)

__all__ = [
    "CentroidAnalyzer",
    "ContourAnalyzer",
    "ContourExtractor",
    "ThresholdContourExtractor",
]
