"""Vessel segments traced from the skeleton graph.

Segments are produced by the external tracing step and are read-only for
the pipeline. Their order (ascending ``segment_id``) defines the column
order of every matrix and the draw order of the spatial map.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Sequence

import numpy as np


@dataclass(frozen=True)
class Segment:
    """A traced vessel segment as an ordered (x, y) pixel polyline."""

    segment_id: int
    points: np.ndarray
    pixel_size: float = 1.0
    name: str = ""

    def __post_init__(self) -> None:
        pts = np.asarray(self.points, dtype=float).reshape(-1, 2)
        pts.setflags(write=False)
        object.__setattr__(self, "points", pts)
        if not self.name:
            object.__setattr__(self, "name", f"Segment {self.segment_id}")

    @property
    def n_points(self) -> int:
        return len(self.points)

    @property
    def pixel_length(self) -> float:
        """Path length of the polyline in pixels."""
        if len(self.points) < 2:
            return 0.0
        steps = np.diff(self.points, axis=0)
        return float(np.hypot(steps[:, 0], steps[:, 1]).sum())

    @property
    def length_um(self) -> float:
        """Physical length: pixel path length times pixel size."""
        return self.pixel_length * self.pixel_size


@dataclass(frozen=True)
class SegmentCatalog:
    """Ordered, immutable set of segments (ascending, unique ids)."""

    segments: Sequence[Segment] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        ordered = tuple(self.segments)
        ids = [s.segment_id for s in ordered]
        if any(b <= a for a, b in zip(ids, ids[1:])):
            raise ValueError(f"Segment ids must be strictly ascending, got {ids}")
        object.__setattr__(self, "segments", ordered)

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    def __getitem__(self, index: int) -> Segment:
        return self.segments[index]

    @property
    def ids(self) -> List[int]:
        return [s.segment_id for s in self.segments]

    @property
    def names(self) -> List[str]:
        return [s.name for s in self.segments]

    def with_pixel_size(self, pixel_size: float) -> "SegmentCatalog":
        """Return a copy of the catalog calibrated with ``pixel_size``."""
        return SegmentCatalog(
            tuple(Segment(s.segment_id, s.points, pixel_size, s.name) for s in self.segments)
        )
