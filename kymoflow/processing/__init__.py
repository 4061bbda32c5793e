"""Kymograph construction and velocity computation."""

from .kymograph import (
    build_kymograph,
    kymograph_from_stack,
    resample_polyline,
    sample_stack,
    save_kymograph,
)
from .velocity import (
    VelocityCalculator,
    VelocityThresholds,
    angle_to_velocity,
    classify_velocity,
)

__all__ = [
    "build_kymograph",
    "kymograph_from_stack",
    "resample_polyline",
    "sample_stack",
    "save_kymograph",
    "VelocityCalculator",
    "VelocityThresholds",
    "angle_to_velocity",
    "classify_velocity",
]
