"""Orientation estimation strategies."""

from .orientation import (
    OrientationEstimator,
    StructureTensorEstimator,
    FourierEstimator,
    make_orientation_estimator,
    remove_flicker,
)

__all__ = [
    "OrientationEstimator",
    "StructureTensorEstimator",
    "FourierEstimator",
    "make_orientation_estimator",
    "remove_flicker",
]
