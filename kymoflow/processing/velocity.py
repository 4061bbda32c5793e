# kymoflow/processing/velocity.py
"""Conversion of kymograph orientation to flow velocity, with validity policy."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from ..config.settings import AnalysisSettings
from ..domain.measurements import AnomalyRecord, OrientationResult, VelocityEntry
from ..domain.segments import Segment


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VelocityThresholds:
    """Validity thresholds: minimum segment length (um) and maximum measurable speed (um/s)."""

    min_segment_length: float
    max_measured_speed: float


def angle_to_velocity(angle: float, frame_rate: float, pixel_size: float) -> float:
    """
    velocity = (1 / tan(angle)) * frame_rate * pixel_size, in um/s.

    Returns ``inf`` for a horizontal orientation (tan(angle) == 0) and NaN for
    a non-finite angle.
    """
    if not math.isfinite(angle):
        return float("nan")
    tangent = math.tan(angle)
    if tangent == 0.0:
        return math.inf
    return (1.0 / tangent) * frame_rate * pixel_size


def classify_velocity(
    angle: float,
    frame_rate: float,
    pixel_size: float,
    segment_length: float,
    thresholds: VelocityThresholds,
    segment_id: int,
    interval_id: int,
) -> Tuple[VelocityEntry, Optional[AnomalyRecord]]:
    """
    Apply the validity policy in order:

      1) segment shorter than ``min_segment_length``  -> too short
      2) non-finite orientation/velocity              -> out of range (+ anomaly record)
      3) |velocity| > ``max_measured_speed``           -> out of range
      4) otherwise numeric, rounded to 2 decimals

    Returns:
        The matrix entry and, for a non-finite result, the anomaly record.
    """
    if segment_length < thresholds.min_segment_length:
        return VelocityEntry.too_short(), None

    velocity = angle_to_velocity(angle, frame_rate, pixel_size)
    if math.isnan(velocity):
        anomaly = AnomalyRecord(segment_id=segment_id, interval_id=interval_id, raw_angle=angle)
        logger.warning("Non-finite velocity for segment %d, interval %d (angle=%s)", segment_id, interval_id, angle)
        return VelocityEntry.out_of_range(), anomaly

    if math.isinf(velocity) or abs(velocity) > thresholds.max_measured_speed:
        return VelocityEntry.out_of_range(), None

    return VelocityEntry.numeric(velocity), None


class VelocityCalculator:
    """Applies ``classify_velocity`` with the run's calibration and thresholds."""

    def __init__(self, settings: AnalysisSettings):
        self.frame_rate = settings.frame_rate
        self.pixel_size = settings.pixel_size
        self.thresholds = VelocityThresholds(settings.min_segment_length, settings.max_measured_speed)

    def evaluate(
        self,
        orientation: OrientationResult,
        segment: Segment,
        interval_id: int,
    ) -> Tuple[VelocityEntry, Optional[AnomalyRecord]]:
        return classify_velocity(
            orientation.angle,
            self.frame_rate,
            self.pixel_size,
            segment.length_um,
            self.thresholds,
            segment_id=segment.segment_id,
            interval_id=interval_id,
        )
