"""Measurement values and the (interval x segment) matrices that hold them."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd


class CellStatus(Enum):
    NUMERIC = "numeric"
    TOO_SHORT = "too_short"
    OUT_OF_RANGE = "out_of_range"


@dataclass(frozen=True)
class OrientationResult:
    """Dominant line orientation of a kymograph (radians, in [0, pi)) and its fit goodness."""

    angle: float
    fit_goodness: float


@dataclass(frozen=True)
class VelocityEntry:
    """One velocity matrix cell: a rounded speed in um/s or a sentinel."""

    status: CellStatus
    value: Optional[float] = None

    @classmethod
    def numeric(cls, velocity: float) -> "VelocityEntry":
        return cls(CellStatus.NUMERIC, round(float(velocity), 2))

    @classmethod
    def too_short(cls) -> "VelocityEntry":
        return cls(CellStatus.TOO_SHORT)

    @classmethod
    def out_of_range(cls) -> "VelocityEntry":
        return cls(CellStatus.OUT_OF_RANGE)

    @property
    def is_sentinel(self) -> bool:
        return self.status != CellStatus.NUMERIC


@dataclass(frozen=True)
class AnomalyRecord:
    """Diagnostic record kept for a non-finite orientation/velocity."""

    segment_id: int
    interval_id: int
    raw_angle: float


@dataclass(frozen=True)
class VelocityMatrix:
    """Velocity entries, rows = intervals ascending, columns = segments ascending."""

    interval_ids: Tuple[int, ...]
    segment_names: Tuple[str, ...]
    entries: Tuple[Tuple[VelocityEntry, ...], ...]

    @property
    def shape(self) -> Tuple[int, int]:
        return (len(self.interval_ids), len(self.segment_names))

    def row(self, index: int) -> Tuple[VelocityEntry, ...]:
        return self.entries[index]

    def to_numeric(self) -> np.ndarray:
        """Float array with NaN in sentinel cells."""
        out = np.full(self.shape, np.nan, dtype=float)
        for r, row in enumerate(self.entries):
            for c, entry in enumerate(row):
                if not entry.is_sentinel:
                    out[r, c] = entry.value
        return out


@dataclass(frozen=True)
class NumericMatrix:
    """Angle or fit values, same layout as ``VelocityMatrix``."""

    interval_ids: Tuple[int, ...]
    segment_names: Tuple[str, ...]
    values: np.ndarray

    @property
    def shape(self) -> Tuple[int, int]:
        return (len(self.interval_ids), len(self.segment_names))


@dataclass
class MeasurementMatrices:
    """
    Accumulates velocity, angle and fit per (interval, segment).

    Inserts are keyed, so the final row/column order follows the id order
    given at construction regardless of the order results arrive in.
    """

    interval_ids: Sequence[int]
    segment_ids: Sequence[int]
    segment_names: Sequence[str]
    _velocity: Dict[Tuple[int, int], VelocityEntry] = field(default_factory=dict, repr=False)
    _angle: Dict[Tuple[int, int], float] = field(default_factory=dict, repr=False)
    _fit: Dict[Tuple[int, int], float] = field(default_factory=dict, repr=False)
    anomalies: List[AnomalyRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.interval_ids = tuple(self.interval_ids)
        self.segment_ids = tuple(self.segment_ids)
        self.segment_names = tuple(self.segment_names)
        if len(self.segment_ids) != len(self.segment_names):
            raise ValueError("segment_ids and segment_names must have the same length")

    @property
    def shape(self) -> Tuple[int, int]:
        return (len(self.interval_ids), len(self.segment_ids))

    def insert(
        self,
        interval_id: int,
        segment_id: int,
        entry: VelocityEntry,
        orientation: OrientationResult,
    ) -> None:
        if interval_id not in self.interval_ids:
            raise KeyError(f"Unknown interval id {interval_id}")
        if segment_id not in self.segment_ids:
            raise KeyError(f"Unknown segment id {segment_id}")
        key = (interval_id, segment_id)
        self._velocity[key] = entry
        self._angle[key] = orientation.angle
        self._fit[key] = orientation.fit_goodness

    def record_anomaly(self, record: AnomalyRecord) -> None:
        self.anomalies.append(record)

    def is_complete(self) -> bool:
        return len(self._velocity) == len(self.interval_ids) * len(self.segment_ids)

    def missing(self) -> List[Tuple[int, int]]:
        return [
            (i, s) for i in self.interval_ids for s in self.segment_ids if (i, s) not in self._velocity
        ]

    def velocity_matrix(self) -> VelocityMatrix:
        if not self.is_complete():
            raise ValueError(f"Velocity matrix incomplete, missing cells: {self.missing()[:5]}")
        entries = tuple(
            tuple(self._velocity[(i, s)] for s in self.segment_ids) for i in self.interval_ids
        )
        return VelocityMatrix(self.interval_ids, self.segment_names, entries)

    def _numeric(self, store: Dict[Tuple[int, int], float]) -> NumericMatrix:
        values = np.full(self.shape, np.nan, dtype=float)
        for r, i in enumerate(self.interval_ids):
            for c, s in enumerate(self.segment_ids):
                if (i, s) in store:
                    values[r, c] = store[(i, s)]
        return NumericMatrix(self.interval_ids, self.segment_names, values)

    def angle_matrix(self) -> NumericMatrix:
        return self._numeric(self._angle)

    def fit_matrix(self) -> NumericMatrix:
        return self._numeric(self._fit)

    def anomalies_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(a.segment_id, a.interval_id, a.raw_angle) for a in self.anomalies],
            columns=["segment_id", "interval_id", "raw_angle"],
        )
