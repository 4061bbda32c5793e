# kymoflow/io/observers.py
"""
Observer Pattern for progress reporting.

Observers are notified at pipeline start, after every (interval, segment)
unit, and on completion or error. They decouple the pipeline from logging
and progress displays.

Example:
    >>> pipeline = FlowPipeline(config)
    >>> pipeline.register_observer(LoggingReporter())
    >>> pipeline.analyze()
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..domain.measurements import VelocityEntry


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitProgress:
    """Completion of one (interval, segment) unit."""

    interval_id: int
    segment_id: int
    completed: int
    total: int
    entry: VelocityEntry

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.total else 1.0


class PipelineObserver(ABC):
    """Abstract base class for pipeline observers."""

    @abstractmethod
    def on_pipeline_start(self, stage: str, total_units: int):
        """
        Called when a pipeline stage starts.

        Args:
            stage: "analysis" or "rendering"
            total_units: number of units the stage will process
        """
        pass

    def on_unit_complete(self, progress: UnitProgress):
        """Called after each (interval, segment) unit of the analysis."""
        pass

    @abstractmethod
    def on_pipeline_complete(self, stage: str, summary: Dict[str, Any]):
        pass

    @abstractmethod
    def on_pipeline_error(self, stage: str, error: Exception):
        pass


class LoggingReporter(PipelineObserver):
    """Reports progress through the ``logging`` module."""

    def __init__(self, every: int = 1):
        self.every = max(1, every)

    def on_pipeline_start(self, stage: str, total_units: int):
        logger.info("Starting %s (%d units)", stage, total_units)

    def on_unit_complete(self, progress: UnitProgress):
        if progress.completed % self.every == 0 or progress.completed == progress.total:
            logger.info(
                "[%d/%d] interval %d, segment %d: %s",
                progress.completed,
                progress.total,
                progress.interval_id,
                progress.segment_id,
                progress.entry.status.value if progress.entry.is_sentinel else f"{progress.entry.value:.2f} um/s",
            )

    def on_pipeline_complete(self, stage: str, summary: Dict[str, Any]):
        details = ", ".join(f"{k}={v}" for k, v in summary.items())
        logger.info("Finished %s: %s", stage, details)

    def on_pipeline_error(self, stage: str, error: Exception):
        logger.error("%s failed: %s", stage, error)


@dataclass(eq=False)
class ProgressRecorder(PipelineObserver):
    """Keeps every notification in memory (for tests and notebooks)."""

    started: List[str] = field(default_factory=list)
    units: List[UnitProgress] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)
    last_summary: Optional[Dict[str, Any]] = None

    def on_pipeline_start(self, stage: str, total_units: int):
        self.started.append(stage)

    def on_unit_complete(self, progress: UnitProgress):
        self.units.append(progress)

    def on_pipeline_complete(self, stage: str, summary: Dict[str, Any]):
        self.completed.append(stage)
        self.last_summary = summary

    def on_pipeline_error(self, stage: str, error: Exception):
        self.errors.append(error)
