# kymoflow/config/constants.py
"""Fixed constants of the kymograph flow pipeline."""

from __future__ import annotations


class FileFormat:
    """Tokens shared by the delimited text formats."""

    # Lines starting with this prefix are comments (config, intervals, matrices)
    COMMENT_PREFIX: str = "//"
    DELIMITER: str = ","

    # Sentinel tokens written into matrix cells
    TOO_SHORT_TOKEN: str = "short"
    OUT_OF_RANGE_TOKEN: str = "out"

    # Numeric cells always carry exactly this many decimals
    DECIMALS: int = 2

    BACKUP_SUFFIX: str = ".bak"


class RenderConstants:
    """Spatial map rendering constants."""

    LUT_SIZE: int = 256

    # Arrow anchors are taken this many polyline samples before/after the midpoint
    ARROW_BRACKET_SAMPLES: int = 8


class OutputNames:
    """Artifact file names written into the output directory."""

    VELOCITY_MATRIX = "velocity.csv"
    ANGLE_MATRIX = "angle.csv"
    FIT_MATRIX = "fit.csv"
    ANOMALIES = "anomalies.csv"
    SPATIAL_MAP = "spatial_map.tif"
    COLOR_BAR = "spatial_map_legend.png"
    HEATMAP = "velocity_heatmap.png"
    KYMOGRAPH_DIR = "kymographs"
