from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import pytest
import tifffile

from kymoflow.config import PipelineConfig
from kymoflow.domain import IntervalCatalog, Segment, SegmentCatalog
from kymoflow.io import ArrayVideo


def moving_stripes(
    n_frames: int = 64,
    height: int = 24,
    width: int = 64,
    velocity: float = 1.0,
    wavelength: float = 8.0,
) -> np.ndarray:
    """Vertical stripes moving along +x by ``velocity`` px/frame (float32 stack)."""
    t = np.arange(n_frames)[:, None, None]
    x = np.arange(width)[None, None, :]
    stripes = 100.0 + 50.0 * np.sin(2 * np.pi * (x - velocity * t) / wavelength)
    return np.broadcast_to(stripes, (n_frames, height, width)).astype(np.float32)


def stripe_kymograph(n_frames: int, width: int, velocity: float, wavelength: float) -> np.ndarray:
    t = np.arange(n_frames)[:, None]
    x = np.arange(width)[None, :]
    return np.sin(2 * np.pi * (x - velocity * t) / wavelength)


@pytest.fixture
def stripe_stack() -> np.ndarray:
    return moving_stripes()


@pytest.fixture
def stripe_video(stripe_stack) -> ArrayVideo:
    return ArrayVideo(stripe_stack)


@pytest.fixture
def segments() -> SegmentCatalog:
    """Forward segment along row 10, a short segment, and a reversed segment along row 15."""
    return SegmentCatalog(
        (
            Segment(1, np.array([[0.0, 10.0], [63.0, 10.0]]), name="forward"),
            Segment(2, np.array([[10.0, 5.0], [20.0, 5.0]]), name="stub"),
            Segment(3, np.array([[63.0, 15.0], [0.0, 15.0]]), name="backward"),
        )
    )


@pytest.fixture
def intervals() -> IntervalCatalog:
    return IntervalCatalog.from_ranges([(1, 32), (33, 64)])


@pytest.fixture
def analysis_values() -> dict:
    return {
        "pixel_size": 0.5,
        "frame_rate": 30.0,
        "min_segment_length": 20.0,
        "max_measured_speed": 2000.0,
        "max_plot_speed": 30.0,
        "arrow_cutoff": 1.0,
    }


@pytest.fixture
def analysis_config(analysis_values) -> PipelineConfig:
    return PipelineConfig.from_mapping(analysis_values)


@pytest.fixture
def project(tmp_path: Path, stripe_stack, segments, analysis_values) -> PipelineConfig:
    """A complete on-disk project: TIFF recording, segment table, intervals and config."""
    video_path = tmp_path / "flow.tif"
    tifffile.imwrite(str(video_path), stripe_stack)

    rows = []
    for segment in segments:
        for x, y in segment.points:
            rows.append((segment.segment_id, segment.name, x, y))
    segments_path = tmp_path / "segments.csv"
    pd.DataFrame(rows, columns=["segment", "name", "x", "y"]).to_csv(segments_path, index=False)

    intervals_path = tmp_path / "intervals.txt"
    intervals_path.write_text("// startFrame,endFrame\n1,32\n\n33,64\n", encoding="utf-8")

    values = dict(analysis_values)
    values.update(
        {
            "video_path": video_path,
            "segments_path": segments_path,
            "intervals_path": intervals_path,
            "output_dir": tmp_path / "out",
        }
    )
    return PipelineConfig.from_mapping(values)
