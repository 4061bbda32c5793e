# kymoflow/config/settings.py
"""Typed per-stage settings resolved from a ``PipelineConfig``.

Each stage receives only the values it needs. Building the settings calls
``PipelineConfig.require`` for every required key, so a run fails before any
work is done if a key is empty.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

from .config import PipelineConfig


@dataclass(frozen=True)
class AnalysisSettings:
    """Settings for kymograph building, orientation estimation and velocity policy."""

    pixel_size: float
    frame_rate: float
    min_segment_length: float
    max_measured_speed: float
    orientation_method: str = "structure_tensor"
    flicker_corrected: bool = False
    n_jobs: int = 1
    save_kymographs: bool = False

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "AnalysisSettings":
        return cls(
            pixel_size=config.require("pixel_size"),
            frame_rate=config.require("frame_rate"),
            min_segment_length=config.require("min_segment_length"),
            max_measured_speed=config.require("max_measured_speed"),
            orientation_method=config.require("orientation_method"),
            flicker_corrected=config.require("flicker_corrected"),
            n_jobs=config.require("n_jobs"),
            save_kymographs=config.require("save_kymographs"),
        )


@dataclass(frozen=True)
class MapSettings:
    """Settings for the spatial map renderer."""

    max_plot_speed: float
    line_thickness: int = 2
    arrow_size: float = 6.0
    arrow_cutoff: float = 0.0
    background_color: Tuple[int, int, int] = (0, 0, 0)
    lut: str = "jet"

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "MapSettings":
        return cls(
            max_plot_speed=config.require("max_plot_speed"),
            line_thickness=config.require("line_thickness"),
            arrow_size=config.require("arrow_size"),
            arrow_cutoff=config.require("arrow_cutoff"),
            background_color=config.require("background_color"),
            lut=config.require("lut"),
        )


@dataclass(frozen=True)
class ProjectPaths:
    """Input files and output directory of a run."""

    video_path: Path
    segments_path: Path
    intervals_path: Path
    output_dir: Path

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "ProjectPaths":
        return cls(
            video_path=config.require("video_path"),
            segments_path=config.require("segments_path"),
            intervals_path=config.require("intervals_path"),
            output_dir=config.require("output_dir"),
        )
