# kymoflow/__init__.py
"""
Kymograph-based blood flow analysis.

Contents:
- Kymographs along traced vessel segments
- Orientation estimation and velocity policy
- Velocity / angle / fit matrices
- Spatial velocity maps
"""

from .config import PipelineConfig, load_configuration, AnalysisSettings, MapSettings
from .domain import Segment, SegmentCatalog, Interval, IntervalCatalog, VelocityEntry, CellStatus
from .errors import ConfigurationError, RangeError, DataIntegrityError, PipelineCancelled
from .io import FlowPipeline, CancellationToken, open_video
from .processing import build_kymograph, classify_velocity
from .strategies import make_orientation_estimator
from .rendering import ColorLUT, render_spatial_map

__version__ = "0.1.0"
