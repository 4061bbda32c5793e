"""I/O and pipeline utilities."""

from .backup import backup_existing
from .video import VideoSource, ArrayVideo, TiffVideo, OpenCVVideo, open_video
from .catalogs import read_intervals, write_intervals, read_segments, write_segments
from .matrices import (
    read_velocity_matrix,
    write_velocity_matrix,
    read_numeric_matrix,
    write_numeric_matrix,
    require_numeric,
)
from .observers import PipelineObserver, LoggingReporter, ProgressRecorder, UnitProgress
from .pipeline import FlowPipeline, CancellationToken, AnalysisResult

__all__ = [
    "backup_existing",
    "VideoSource",
    "ArrayVideo",
    "TiffVideo",
    "OpenCVVideo",
    "open_video",
    "read_intervals",
    "write_intervals",
    "read_segments",
    "write_segments",
    "read_velocity_matrix",
    "write_velocity_matrix",
    "read_numeric_matrix",
    "write_numeric_matrix",
    "require_numeric",
    "PipelineObserver",
    "LoggingReporter",
    "ProgressRecorder",
    "UnitProgress",
    "FlowPipeline",
    "CancellationToken",
    "AnalysisResult",
]
