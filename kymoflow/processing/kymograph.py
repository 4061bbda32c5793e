# kymoflow/processing/kymograph.py
"""
Kymograph construction.

A kymograph is a (frames x positions) raster: every row is one frame of the
interval, every column one position along the segment. Positions are taken at
unit arc-length steps along the polyline, identical for all frames, so a
column always refers to the same physical location.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import numpy as np
import tifffile
from scipy.ndimage import map_coordinates

from ..domain.intervals import Interval
from ..domain.segments import Segment
from ..io.backup import backup_existing
from ..io.video import VideoSource


logger = logging.getLogger(__name__)


def resample_polyline(points: np.ndarray, step: float = 1.0) -> np.ndarray:
    """Points at ``step`` pixel spacing along the polyline arc length, starting at the first point."""
    points = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(points) < 2:
        return points.copy()
    lengths = np.hypot(*np.diff(points, axis=0).T)
    keep = np.concatenate([[True], lengths > 0])
    points = points[keep]
    lengths = lengths[lengths > 0]
    if len(points) < 2:
        return points[:1].copy()
    arc = np.concatenate([[0.0], np.cumsum(lengths)])
    # both ends of a sub-step polyline are kept
    n_samples = max(int(np.floor(arc[-1] / step)) + 1, 2)
    s = np.arange(n_samples) * step
    return np.column_stack([np.interp(s, arc, points[:, 0]), np.interp(s, arc, points[:, 1])])


def sample_stack(stack: np.ndarray, positions: np.ndarray) -> np.ndarray:
    """Bilinear samples of every frame of ``stack`` (n, H, W) at ``positions`` (M, 2) in (x, y)."""
    n_frames = stack.shape[0]
    n_pos = len(positions)
    t = np.broadcast_to(np.arange(n_frames, dtype=float)[:, None], (n_frames, n_pos))
    y = np.broadcast_to(positions[:, 1][None, :], (n_frames, n_pos))
    x = np.broadcast_to(positions[:, 0][None, :], (n_frames, n_pos))
    return map_coordinates(stack, [t, y, x], order=1, mode="nearest")


def kymograph_from_stack(stack: np.ndarray, segment: Segment) -> np.ndarray:
    """Kymograph of ``segment`` from an already loaded interval stack."""
    return sample_stack(stack, resample_polyline(segment.points))


def build_kymograph(video: VideoSource, segment: Segment, interval: Interval) -> np.ndarray:
    """
    Build the kymograph of one (segment, interval) pair.

    Only the interval's frames are read from ``video``.

    Raises:
        RangeError: if the interval exceeds the video's frames.
    """
    interval.check_within(video.frame_count)
    stack = video.frames(interval.start_frame, interval.end_frame)
    kymo = kymograph_from_stack(stack, segment)
    logger.debug(
        "Kymograph segment %d / interval %d: %d frames x %d positions",
        segment.segment_id,
        interval.interval_id,
        kymo.shape[0],
        kymo.shape[1],
    )
    return kymo


def save_kymograph(kymograph: np.ndarray, path: Union[str, Path]) -> Path:
    path = Path(path)
    backup_existing(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tifffile.imwrite(str(path), kymograph.astype(np.float32))
    return path
