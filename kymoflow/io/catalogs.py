# kymoflow/io/catalogs.py
"""Reading and writing of the segment and interval catalogs."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Tuple, Union

import pandas as pd

from ..config.constants import FileFormat
from ..domain.intervals import IntervalCatalog
from ..domain.segments import Segment, SegmentCatalog
from .backup import backup_existing


logger = logging.getLogger(__name__)

SEGMENT_COLUMNS = ["segment", "name", "x", "y"]


def parse_interval_lines(lines: Iterable[str]) -> List[Tuple[int, int]]:
    """Parse ``startFrame,endFrame`` lines; ``//`` comments and blank lines are skipped."""
    ranges: List[Tuple[int, int]] = []
    for lineno, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith(FileFormat.COMMENT_PREFIX):
            continue
        parts = [p.strip() for p in stripped.split(FileFormat.DELIMITER)]
        if len(parts) < 2:
            raise ValueError(f"Line {lineno}: expected 'startFrame,endFrame', got {stripped!r}")
        try:
            ranges.append((int(parts[0]), int(parts[1])))
        except ValueError as exc:
            raise ValueError(f"Line {lineno}: frame numbers must be integers, got {stripped!r}") from exc
    return ranges


def read_intervals(path: Union[str, Path]) -> IntervalCatalog:
    with open(path, "r", encoding="utf-8") as f:
        ranges = parse_interval_lines(f)
    catalog = IntervalCatalog.from_ranges(ranges)
    logger.info("Read %d intervals from %s", len(catalog), path)
    return catalog


def write_intervals(catalog: IntervalCatalog, path: Union[str, Path]) -> Path:
    path = Path(path)
    backup_existing(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(f"{FileFormat.COMMENT_PREFIX} startFrame,endFrame\n")
        for start, end in catalog.ranges():
            f.write(f"{start},{end}\n")
    return path


def segments_from_frame(df: pd.DataFrame, pixel_size: float = 1.0) -> SegmentCatalog:
    """
    Build a catalog from a point table.

    Rows of one segment must appear in polyline order; segments are sorted by
    their id.
    """
    missing = {"segment", "x", "y"} - set(df.columns)
    if missing:
        raise ValueError(f"Segment table lacks columns: {sorted(missing)}")
    segments = []
    for segment_id, group in df.groupby("segment", sort=True):
        name = ""
        if "name" in group.columns and pd.notna(group["name"].iloc[0]):
            name = str(group["name"].iloc[0])
        points = group[["x", "y"]].to_numpy(dtype=float)
        segments.append(Segment(int(segment_id), points, pixel_size, name))
    return SegmentCatalog(tuple(segments))


def read_segments(path: Union[str, Path], pixel_size: float = 1.0) -> SegmentCatalog:
    df = pd.read_csv(path)
    catalog = segments_from_frame(df, pixel_size)
    logger.info("Read %d segments from %s", len(catalog), path)
    return catalog


def segments_to_frame(catalog: SegmentCatalog) -> pd.DataFrame:
    rows = []
    for segment in catalog:
        for x, y in segment.points:
            rows.append((segment.segment_id, segment.name, x, y))
    return pd.DataFrame(rows, columns=SEGMENT_COLUMNS)


def write_segments(catalog: SegmentCatalog, path: Union[str, Path]) -> Path:
    path = Path(path)
    backup_existing(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    segments_to_frame(catalog).to_csv(path, index=False)
    return path
