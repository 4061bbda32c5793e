# kymoflow/errors.py
"""Exception hierarchy for the kymograph flow pipeline.

Configuration and range errors abort a run and need operator correction.
Non-finite orientation results are not raised; they are recovered in place
(see ``processing.velocity``) and kept as ``AnomalyRecord`` entries.
"""
from __future__ import annotations

from typing import Optional


class KymoflowError(Exception):
    """Base class for all errors raised by kymoflow."""


class ConfigurationError(KymoflowError):
    """A required parameter is missing/empty or a referenced path is absent."""

    def __init__(self, message: str, parameter: Optional[str] = None, step: Optional[str] = None):
        self.parameter = parameter
        self.step = step
        if parameter is not None and step is not None:
            message = f"{message} (parameter '{parameter}' must be supplied by: {step})"
        elif parameter is not None:
            message = f"{message} (parameter '{parameter}')"
        super().__init__(message)


class RangeError(KymoflowError):
    """A frame range exceeds the video, or persisted rows do not match the intervals."""


class DataIntegrityError(KymoflowError):
    """A cell could not be used as a numeric value."""

    def __init__(self, message: str, row: Optional[int] = None):
        self.row = row
        if row is not None:
            message = f"{message} (row {row})"
        super().__init__(message)


class PipelineCancelled(KymoflowError):
    """The run was cancelled at an (interval, segment) checkpoint."""
