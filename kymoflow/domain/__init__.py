"""Domain models: segments, intervals and measurement matrices."""

from .segments import Segment, SegmentCatalog
from .intervals import Interval, IntervalCatalog
from .measurements import (
    AnomalyRecord,
    CellStatus,
    MeasurementMatrices,
    NumericMatrix,
    OrientationResult,
    VelocityEntry,
    VelocityMatrix,
)

__all__ = [
    "Segment",
    "SegmentCatalog",
    "Interval",
    "IntervalCatalog",
    "AnomalyRecord",
    "CellStatus",
    "MeasurementMatrices",
    "NumericMatrix",
    "OrientationResult",
    "VelocityEntry",
    "VelocityMatrix",
]
