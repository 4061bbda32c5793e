"""Frame intervals selected for analysis."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Sequence

from ..errors import RangeError


@dataclass(frozen=True)
class Interval:
    """Contiguous frame range; frames are 1-based and both ends inclusive."""

    interval_id: int
    start_frame: int
    end_frame: int

    def __post_init__(self) -> None:
        if self.start_frame < 1:
            raise RangeError(f"Interval {self.interval_id}: start frame {self.start_frame} < 1")
        if self.end_frame < self.start_frame:
            raise RangeError(
                f"Interval {self.interval_id}: end frame {self.end_frame} before start frame {self.start_frame}"
            )

    @property
    def frame_count(self) -> int:
        return self.end_frame - self.start_frame + 1

    def frames(self) -> range:
        return range(self.start_frame, self.end_frame + 1)

    def check_within(self, frame_count: int) -> None:
        """Raise ``RangeError`` if the interval does not fit a video of ``frame_count`` frames."""
        if self.end_frame > frame_count:
            raise RangeError(
                f"Interval {self.interval_id} ({self.start_frame}-{self.end_frame}) exceeds "
                f"the video's {frame_count} frames"
            )


@dataclass(frozen=True)
class IntervalCatalog:
    """Ordered, non-overlapping intervals. Gaps between intervals are allowed."""

    intervals: Sequence[Interval] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        ordered = tuple(self.intervals)
        for a, b in zip(ordered, ordered[1:]):
            if b.interval_id <= a.interval_id:
                raise ValueError("Interval ids must be strictly ascending")
            if b.start_frame < a.start_frame:
                raise RangeError(
                    f"Intervals must be listed in ascending frame order: interval {b.interval_id} "
                    f"starts at frame {b.start_frame}, before interval {a.interval_id} ({a.start_frame})"
                )
            if b.start_frame <= a.end_frame:
                raise RangeError(
                    f"Interval {b.interval_id} ({b.start_frame}-{b.end_frame}) overlaps "
                    f"interval {a.interval_id} ({a.start_frame}-{a.end_frame})"
                )
        object.__setattr__(self, "intervals", ordered)

    @classmethod
    def from_ranges(cls, ranges) -> "IntervalCatalog":
        return cls(tuple(Interval(i, int(start), int(end)) for i, (start, end) in enumerate(ranges, start=1)))

    def __len__(self) -> int:
        return len(self.intervals)

    def __iter__(self) -> Iterator[Interval]:
        return iter(self.intervals)

    def __getitem__(self, index: int) -> Interval:
        return self.intervals[index]

    @property
    def ids(self) -> List[int]:
        return [i.interval_id for i in self.intervals]

    def ranges(self) -> List[tuple]:
        return [(i.start_frame, i.end_frame) for i in self.intervals]

    def check_within(self, frame_count: int) -> None:
        for interval in self.intervals:
            interval.check_within(frame_count)
