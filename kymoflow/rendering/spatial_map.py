# kymoflow/rendering/spatial_map.py
"""
Spatial velocity map: one RGB frame per interval.

Each numeric cell of the velocity matrix is drawn onto its segment: the full
polyline in the LUT colour of its speed, plus a direction arrow near the
polyline midpoint when the speed exceeds the arrow cutoff. Sentinel cells are
not drawn. Segments are drawn in catalog order, so later segments paint over
shared pixels of earlier ones.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence, Tuple, Union

import cv2
import numpy as np
import tifffile
from joblib import Parallel, delayed

from ..config.constants import RenderConstants
from ..config.settings import MapSettings
from ..domain.measurements import VelocityEntry, VelocityMatrix
from ..domain.segments import Segment, SegmentCatalog
from ..errors import RangeError
from ..io.backup import backup_existing
from .lut import ColorLUT, color_index


logger = logging.getLogger(__name__)

FORWARD = 1
REVERSED = -1
NO_ARROW = 0


def arrow_anchors(points: np.ndarray) -> Tuple[int, int]:
    """Indices of the arrow start/end: midpoint -/+ 8 samples, clamped to the polyline."""
    n = len(points)
    mid = n // 2
    pre = max(mid - RenderConstants.ARROW_BRACKET_SAMPLES, 0)
    post = min(mid + RenderConstants.ARROW_BRACKET_SAMPLES, n - 1)
    return pre, post


def arrow_direction(velocity: float, arrow_cutoff: float) -> int:
    if velocity > arrow_cutoff:
        return FORWARD
    if velocity < -arrow_cutoff:
        return REVERSED
    return NO_ARROW


def _pixel(point: np.ndarray) -> Tuple[int, int]:
    return (int(round(point[0])), int(round(point[1])))


def draw_segment(
    frame: np.ndarray,
    segment: Segment,
    velocity: float,
    lut: ColorLUT,
    settings: MapSettings,
) -> None:
    """Draw one segment coloured by ``velocity`` (in-place)."""
    color = lut[color_index(velocity, settings.max_plot_speed)]
    pts = np.round(segment.points).astype(np.int32).reshape(-1, 1, 2)
    cv2.polylines(frame, [pts], False, color, settings.line_thickness, cv2.LINE_8)

    direction = arrow_direction(velocity, settings.arrow_cutoff)
    if direction == NO_ARROW:
        return
    pre, post = arrow_anchors(segment.points)
    start, end = _pixel(segment.points[pre]), _pixel(segment.points[post])
    if direction == REVERSED:
        start, end = end, start
    length = float(np.hypot(end[0] - start[0], end[1] - start[1]))
    if length == 0:
        return
    cv2.arrowedLine(
        frame,
        start,
        end,
        color,
        settings.line_thickness,
        cv2.LINE_8,
        0,
        settings.arrow_size / length,
    )


def render_interval_frame(
    row: Sequence[VelocityEntry],
    segments: SegmentCatalog,
    lut: ColorLUT,
    settings: MapSettings,
    frame_shape: Tuple[int, int],
) -> np.ndarray:
    """Render one interval's row of the velocity matrix as an (H, W, 3) uint8 frame."""
    height, width = frame_shape
    frame = np.empty((height, width, 3), dtype=np.uint8)
    frame[:] = settings.background_color
    for entry, segment in zip(row, segments):
        if entry.is_sentinel:
            continue
        draw_segment(frame, segment, entry.value, lut, settings)
    return frame


def render_spatial_map(
    matrix: VelocityMatrix,
    segments: SegmentCatalog,
    lut: ColorLUT,
    settings: MapSettings,
    frame_shape: Tuple[int, int],
    n_jobs: int = 1,
) -> np.ndarray:
    """
    Render every interval of ``matrix``.

    Returns:
        uint8 array of shape (n_intervals, H, W, 3); frame order = row order.
    """
    if matrix.shape[1] != len(segments):
        raise RangeError(
            f"Velocity matrix has {matrix.shape[1]} segment columns but {len(segments)} segments are defined"
        )
    if n_jobs == 1:
        frames: List[np.ndarray] = [
            render_interval_frame(row, segments, lut, settings, frame_shape) for row in matrix.entries
        ]
    else:
        frames = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(render_interval_frame)(row, segments, lut, settings, frame_shape) for row in matrix.entries
        )
    logger.info("Rendered %d spatial map frames (%dx%d)", len(frames), frame_shape[1], frame_shape[0])
    if not frames:
        return np.zeros((0, frame_shape[0], frame_shape[1], 3), dtype=np.uint8)
    return np.stack(frames)


def write_spatial_map(frames: np.ndarray, path: Union[str, Path]) -> Path:
    """Write the frames as a multi-page RGB TIFF (existing file is backed up first)."""
    path = Path(path)
    backup_existing(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tifffile.imwrite(str(path), frames, photometric="rgb")
    return path
