# kymoflow/io/pipeline.py
"""Flow pipeline orchestration.

Separates orchestration from CLI and configuration. Two stages:

    analysis:  video x segments x intervals -> velocity/angle/fit matrices
    rendering: persisted velocity matrix x segments -> spatial map frames

All required parameters of a stage are resolved before it starts, so an
empty key fails the run before any frame is read. Artifacts are written only
after a stage has computed everything; earlier artifacts at the same paths
are preserved as backups.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from joblib import Parallel, delayed

from ..config.config import PipelineConfig
from ..config.constants import OutputNames
from ..config.settings import AnalysisSettings, MapSettings, ProjectPaths
from ..domain.intervals import Interval, IntervalCatalog
from ..domain.measurements import (
    AnomalyRecord,
    MeasurementMatrices,
    OrientationResult,
    VelocityEntry,
    VelocityMatrix,
)
from ..domain.segments import Segment, SegmentCatalog
from ..errors import ConfigurationError, PipelineCancelled
from ..plotting import plot_color_bar, plot_velocity_heatmap
from ..processing.kymograph import kymograph_from_stack, save_kymograph
from ..processing.velocity import VelocityCalculator
from ..rendering.lut import ColorLUT
from ..rendering.spatial_map import render_spatial_map, write_spatial_map
from ..strategies.orientation import OrientationEstimator, make_orientation_estimator
from .backup import backup_existing
from .catalogs import read_intervals, read_segments
from .matrices import angles_in_degrees, read_velocity_matrix, write_numeric_matrix, write_velocity_matrix
from .observers import PipelineObserver, UnitProgress
from .video import VideoSource, open_video


logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation, checked before every (interval, segment) unit."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled("Run cancelled")


@dataclass(frozen=True)
class UnitResult:
    interval_id: int
    segment_id: int
    entry: VelocityEntry
    orientation: OrientationResult
    anomaly: Optional[AnomalyRecord]
    kymograph: Optional[np.ndarray] = None


@dataclass
class AnalysisResult:
    matrices: MeasurementMatrices
    segments: SegmentCatalog
    intervals: IntervalCatalog
    written: Dict[str, Path]


class FlowPipeline:
    """Orchestrates kymograph analysis and spatial map rendering.

    Example:
        >>> config = load_configuration("project/kymoflow.cfg")
        >>> pipeline = FlowPipeline(config)
        >>> pipeline.register_observer(LoggingReporter())
        >>> pipeline.analyze()
        >>> pipeline.render()
    """

    def __init__(self, config: PipelineConfig, estimator: Optional[OrientationEstimator] = None):
        self.config = config
        self._estimator = estimator
        self._observers: List[PipelineObserver] = []

    def register_observer(self, observer: PipelineObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unregister_observer(self, observer: PipelineObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, method: str, *args: Any) -> None:
        for observer in self._observers:
            try:
                getattr(observer, method)(*args)
            except Exception:
                logger.warning("Observer %s failed on %s", type(observer).__name__, method, exc_info=True)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _process_unit(
        self,
        stack: np.ndarray,
        segment: Segment,
        interval: Interval,
        estimator: OrientationEstimator,
        calculator: VelocityCalculator,
        settings: AnalysisSettings,
        token: CancellationToken,
    ) -> UnitResult:
        token.check()
        kymograph = kymograph_from_stack(stack, segment)
        orientation = estimator.estimate(kymograph, flicker_corrected=settings.flicker_corrected)
        entry, anomaly = calculator.evaluate(orientation, segment, interval.interval_id)
        return UnitResult(
            interval.interval_id,
            segment.segment_id,
            entry,
            orientation,
            anomaly,
            kymograph if settings.save_kymographs else None,
        )

    def analyze_video(
        self,
        video: VideoSource,
        segments: SegmentCatalog,
        intervals: IntervalCatalog,
        cancel_token: Optional[CancellationToken] = None,
        kymographs: Optional[Dict[Tuple[int, int], np.ndarray]] = None,
    ) -> MeasurementMatrices:
        """
        Compute the measurement matrices without touching any output file.

        When ``kymographs`` is given and ``save_kymographs`` is set, every
        kymograph is collected into it under its (interval id, segment id) key.

        Raises:
            RangeError: if an interval exceeds the video's frames.
            PipelineCancelled: if ``cancel_token`` was cancelled.
        """
        settings = AnalysisSettings.from_config(self.config)
        estimator = self._estimator or make_orientation_estimator(settings.orientation_method)
        calculator = VelocityCalculator(settings)
        token = cancel_token or CancellationToken()

        intervals.check_within(video.frame_count)
        video.set_calibration(pixel_size=settings.pixel_size, frame_rate=settings.frame_rate)
        segments = segments.with_pixel_size(settings.pixel_size)

        matrices = MeasurementMatrices(intervals.ids, segments.ids, segments.names)
        total = len(intervals) * len(segments)
        completed = 0
        self._notify("on_pipeline_start", "analysis", total)
        logger.info(
            "Analysing %d segments x %d intervals with %s",
            len(segments),
            len(intervals),
            estimator.get_description(),
        )

        try:
            for interval in intervals:
                token.check()
                stack = video.frames(interval.start_frame, interval.end_frame)
                args = (interval, estimator, calculator, settings, token)
                if settings.n_jobs == 1:
                    results = (self._process_unit(stack, segment, *args) for segment in segments)
                else:
                    results = Parallel(n_jobs=settings.n_jobs, prefer="threads")(
                        delayed(self._process_unit)(stack, segment, *args) for segment in segments
                    )
                for result in results:
                    matrices.insert(result.interval_id, result.segment_id, result.entry, result.orientation)
                    if result.anomaly is not None:
                        matrices.record_anomaly(result.anomaly)
                    if result.kymograph is not None and kymographs is not None:
                        kymographs[(result.interval_id, result.segment_id)] = result.kymograph
                    completed += 1
                    self._notify(
                        "on_unit_complete",
                        UnitProgress(result.interval_id, result.segment_id, completed, total, result.entry),
                    )
        except Exception as exc:
            self._notify("on_pipeline_error", "analysis", exc)
            raise

        summary = {"units": completed, "anomalies": len(matrices.anomalies)}
        self._notify("on_pipeline_complete", "analysis", summary)
        return matrices

    def analyze(self, cancel_token: Optional[CancellationToken] = None) -> AnalysisResult:
        """Load the project inputs, compute the matrices and persist them."""
        paths = ProjectPaths.from_config(self.config)
        settings = AnalysisSettings.from_config(self.config)

        segments = read_segments(paths.segments_path, settings.pixel_size)
        intervals = read_intervals(paths.intervals_path)
        kymographs: Dict[Tuple[int, int], np.ndarray] = {}

        with open_video(paths.video_path) as video:
            matrices = self.analyze_video(video, segments, intervals, cancel_token, kymographs)

        written = self.write_matrices(matrices, paths.output_dir)
        if settings.save_kymographs:
            kymograph_dir = paths.output_dir / OutputNames.KYMOGRAPH_DIR
            for (interval_id, segment_id), kymograph in sorted(kymographs.items()):
                name = f"interval{interval_id:03d}_segment{segment_id:03d}.tif"
                save_kymograph(kymograph, kymograph_dir / name)
            written["kymographs"] = kymograph_dir
        lut_name = self.config.get("lut", "jet")
        written["heatmap"] = plot_velocity_heatmap(
            matrices.velocity_matrix(), ColorLUT.from_palette(lut_name), paths.output_dir / OutputNames.HEATMAP
        )
        return AnalysisResult(matrices, segments, intervals, written)

    @staticmethod
    def write_matrices(matrices: MeasurementMatrices, output_dir: Path) -> Dict[str, Path]:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        written = {
            "velocity": write_velocity_matrix(matrices.velocity_matrix(), output_dir / OutputNames.VELOCITY_MATRIX),
            "angle": write_numeric_matrix(
                angles_in_degrees(matrices.angle_matrix()), output_dir / OutputNames.ANGLE_MATRIX
            ),
            "fit": write_numeric_matrix(matrices.fit_matrix(), output_dir / OutputNames.FIT_MATRIX),
        }
        anomalies_path = output_dir / OutputNames.ANOMALIES
        backup_existing(anomalies_path)
        matrices.anomalies_frame().to_csv(anomalies_path, index=False)
        written["anomalies"] = anomalies_path
        if matrices.anomalies:
            logger.warning("%d non-finite results recorded in %s", len(matrices.anomalies), anomalies_path)
        return written

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_frames(
        self,
        matrix: VelocityMatrix,
        segments: SegmentCatalog,
        frame_shape: Tuple[int, int],
    ) -> np.ndarray:
        settings = MapSettings.from_config(self.config)
        lut = ColorLUT.from_palette(settings.lut)
        n_jobs = self.config.get("n_jobs", 1)
        self._notify("on_pipeline_start", "rendering", matrix.shape[0])
        try:
            frames = render_spatial_map(matrix, segments, lut, settings, frame_shape, n_jobs=n_jobs)
        except Exception as exc:
            self._notify("on_pipeline_error", "rendering", exc)
            raise
        self._notify("on_pipeline_complete", "rendering", {"frames": len(frames)})
        return frames

    def render(self) -> Dict[str, Path]:
        """Render the persisted velocity matrix into the spatial map TIFF and its legend."""
        paths = ProjectPaths.from_config(self.config)
        settings = MapSettings.from_config(self.config)

        matrix_path = paths.output_dir / OutputNames.VELOCITY_MATRIX
        if not matrix_path.exists():
            raise ConfigurationError(
                f"Velocity matrix not found: {matrix_path}", "output_dir", "analysis (run 'kymoflow analyze' first)"
            )
        intervals = read_intervals(paths.intervals_path)
        segments = read_segments(paths.segments_path, self.config.get("pixel_size", 1.0))
        matrix = read_velocity_matrix(matrix_path, intervals.ids)
        with open_video(paths.video_path) as video:
            frame_shape = video.frame_shape

        frames = self.render_frames(matrix, segments, frame_shape)
        lut = ColorLUT.from_palette(settings.lut)
        return {
            "spatial_map": write_spatial_map(frames, paths.output_dir / OutputNames.SPATIAL_MAP),
            "legend": plot_color_bar(lut, settings.max_plot_speed, paths.output_dir / OutputNames.COLOR_BAR),
        }

    def run(self, cancel_token: Optional[CancellationToken] = None) -> Dict[str, Path]:
        """Fail-fast check of both stages' parameters, then analysis followed by rendering."""
        MapSettings.from_config(self.config)
        result = self.analyze(cancel_token)
        written = dict(result.written)
        written.update(self.render())
        return written
