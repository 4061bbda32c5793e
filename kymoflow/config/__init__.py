"""Configuration schema, loader and constants."""

from .config import (
    ParameterKind,
    ParameterSpec,
    PARAMETERS,
    PipelineConfig,
    load_configuration,
    write_configuration,
    default_configuration,
    parse_color,
)
from .constants import FileFormat, RenderConstants, OutputNames
from .settings import AnalysisSettings, MapSettings, ProjectPaths

__all__ = [
    "ParameterKind",
    "ParameterSpec",
    "PARAMETERS",
    "PipelineConfig",
    "load_configuration",
    "write_configuration",
    "default_configuration",
    "parse_color",
    "FileFormat",
    "RenderConstants",
    "OutputNames",
    "AnalysisSettings",
    "MapSettings",
    "ProjectPaths",
]
