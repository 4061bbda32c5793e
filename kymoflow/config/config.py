# kymoflow/config/config.py
"""
Configuration schema and loader for the kymograph flow pipeline.

The on-disk format is one parameter per line::

    // comment lines start with two slashes
    pixel_size,0.5,Pixel size in micrometre per pixel
    frame_rate,30,Frames per second

Every key is declared once in ``PARAMETERS`` with its kind, validator and the
upstream step that is responsible for supplying it. Values are converted and
validated at load time; keys that are missing or empty load as "not set" and
only raise ``ConfigurationError`` when a stage requires them.

Example:
    >>> config = load_configuration("project/kymoflow.cfg")
    >>> config.require("pixel_size")
    0.5
    >>> faster = config.replace(n_jobs=4)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

import matplotlib
from matplotlib.colors import to_rgb

from ..errors import ConfigurationError
from .constants import FileFormat


logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]


class ParameterKind(Enum):
    """Storage kind of a configuration parameter."""

    PATH = "path"
    DIRECTORY = "directory"
    FLOAT = "float"
    INT = "int"
    BOOL = "bool"
    CHOICE = "choice"
    COLOR = "color"
    PALETTE = "palette"


_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off"}


def _parse_float(text: str) -> float:
    return float(text)


def _parse_int(text: str) -> int:
    value = float(text)
    if not value.is_integer():
        raise ValueError(f"{text!r} is not an integer")
    return int(value)


def _parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{text!r} is not a boolean")


def parse_color(text: str) -> RGB:
    """Parse ``#rrggbb``, a matplotlib colour name or ``r;g;b`` into 0-255 RGB."""
    text = text.strip()
    if ";" in text:
        parts = [int(p) for p in text.split(";")]
        if len(parts) != 3 or any(p < 0 or p > 255 for p in parts):
            raise ValueError(f"{text!r} is not an r;g;b triple in 0..255")
        return (parts[0], parts[1], parts[2])
    r, g, b = to_rgb(text)
    return (int(round(r * 255)), int(round(g * 255)), int(round(b * 255)))


def format_color(rgb: RGB) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)


def _parse_palette(text: str) -> str:
    name = text.strip()
    if name not in matplotlib.colormaps:
        raise ValueError(f"unknown palette {name!r}")
    return name


@dataclass(frozen=True)
class ParameterSpec:
    """Declaration of a single configuration parameter."""

    name: str
    kind: ParameterKind
    description: str
    # Upstream step responsible for supplying the value (used in error messages)
    step: str
    default: Optional[str] = None
    minimum: Optional[float] = None
    exclusive_minimum: bool = False
    nonzero: bool = False
    choices: Tuple[str, ...] = ()

    def convert(self, text: str) -> Any:
        """Convert raw text into the typed value, validating it."""
        try:
            value = _CONVERTERS[self.kind](text)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid value {text!r}: {exc}", self.name, self.step) from exc

        if self.minimum is not None:
            if self.exclusive_minimum and not value > self.minimum:
                raise ConfigurationError(f"Value {value} must be > {self.minimum}", self.name, self.step)
            if not self.exclusive_minimum and value < self.minimum:
                raise ConfigurationError(f"Value {value} must be >= {self.minimum}", self.name, self.step)
        if self.nonzero and value == 0:
            raise ConfigurationError("Value must not be 0", self.name, self.step)
        if self.choices and value not in self.choices:
            raise ConfigurationError(
                f"Value {value!r} must be one of {', '.join(self.choices)}", self.name, self.step
            )
        return value

    def format(self, value: Any) -> str:
        if value is None:
            return ""
        if self.kind == ParameterKind.BOOL:
            return "true" if value else "false"
        if self.kind == ParameterKind.COLOR:
            return format_color(value)
        return str(value)


_CONVERTERS: Dict[ParameterKind, Callable[[str], Any]] = {
    ParameterKind.PATH: lambda text: Path(text.strip()),
    ParameterKind.DIRECTORY: lambda text: Path(text.strip()),
    ParameterKind.FLOAT: _parse_float,
    ParameterKind.INT: _parse_int,
    ParameterKind.BOOL: _parse_bool,
    ParameterKind.CHOICE: lambda text: text.strip(),
    ParameterKind.COLOR: parse_color,
    ParameterKind.PALETTE: _parse_palette,
}


_ACQUISITION = "video acquisition (export the recording as TIFF stack or movie)"
_TRACING = "skeleton tracing (export the traced segments as point table)"
_ANNOTATION = "interval annotation (list the usable frame ranges)"
_CALIBRATION = "calibration (microscope metadata)"
_ANALYSIS = "analysis settings"
_MAP = "spatial map settings"
_PROJECT = "project setup"


PARAMETERS: Tuple[ParameterSpec, ...] = (
    ParameterSpec("video_path", ParameterKind.PATH, "Blood flow recording (TIFF stack or movie)", _ACQUISITION),
    ParameterSpec("segments_path", ParameterKind.PATH, "Traced vessel segments (segment,name,x,y table)", _TRACING),
    ParameterSpec("intervals_path", ParameterKind.PATH, "Analysis intervals (startFrame,endFrame per line)", _ANNOTATION),
    ParameterSpec("output_dir", ParameterKind.DIRECTORY, "Directory for matrices and spatial map", _PROJECT),
    ParameterSpec("pixel_size", ParameterKind.FLOAT, "Pixel size in um/px", _CALIBRATION,
                  minimum=0.0, exclusive_minimum=True),
    ParameterSpec("frame_rate", ParameterKind.FLOAT, "Frame rate in frames per second", _CALIBRATION,
                  minimum=0.0, exclusive_minimum=True),
    ParameterSpec("min_segment_length", ParameterKind.FLOAT, "Segments shorter than this (um) are marked short",
                  _ANALYSIS, minimum=0.0),
    ParameterSpec("max_measured_speed", ParameterKind.FLOAT, "Speeds above this (um/s) are marked out",
                  _ANALYSIS, minimum=0.0, exclusive_minimum=True),
    ParameterSpec("orientation_method", ParameterKind.CHOICE, "Orientation estimator: structure_tensor or fourier",
                  _ANALYSIS, default="structure_tensor", choices=("structure_tensor", "fourier")),
    ParameterSpec("flicker_corrected", ParameterKind.BOOL, "Remove per-frame brightness before estimation",
                  _ANALYSIS, default="false"),
    ParameterSpec("n_jobs", ParameterKind.INT, "Parallel workers per interval (1 = sequential, -1 = all cores)",
                  _ANALYSIS, default="1", nonzero=True),
    ParameterSpec("save_kymographs", ParameterKind.BOOL, "Write every kymograph as TIFF for inspection",
                  _ANALYSIS, default="false"),
    ParameterSpec("max_plot_speed", ParameterKind.FLOAT, "Speed (um/s) mapped to the top of the LUT", _MAP,
                  minimum=0.0, exclusive_minimum=True),
    ParameterSpec("line_thickness", ParameterKind.INT, "Segment line thickness in px", _MAP, default="2", minimum=1),
    ParameterSpec("arrow_size", ParameterKind.FLOAT, "Arrow head size in px", _MAP, default="6", minimum=0.0),
    ParameterSpec("arrow_cutoff", ParameterKind.FLOAT, "No arrow for |velocity| at or below this (um/s)", _MAP,
                  default="0", minimum=0.0),
    ParameterSpec("background_color", ParameterKind.COLOR, "Map background (#rrggbb, name or r;g;b)", _MAP,
                  default="black"),
    ParameterSpec("lut", ParameterKind.PALETTE, "Colour palette (matplotlib colormap name)", _MAP, default="jet"),
)

PARAMETER_INDEX: Dict[str, ParameterSpec] = {spec.name: spec for spec in PARAMETERS}


def get_parameter(name: str) -> ParameterSpec:
    try:
        return PARAMETER_INDEX[name]
    except KeyError:
        raise KeyError(f"Unknown configuration parameter: {name}") from None


@dataclass(frozen=True)
class PipelineConfig:
    """
    Immutable, validated parameter values.

    A value of ``None`` means "not set". Use ``replace`` to derive a new
    configuration instead of mutating an existing one.
    """

    values: Mapping[str, Any] = field(default_factory=dict)
    source: Optional[Path] = None

    def __post_init__(self) -> None:
        merged = {spec.name: None for spec in PARAMETERS}
        merged.update(self.values)
        object.__setattr__(self, "values", MappingProxyType(merged))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source: Optional[Path] = None) -> "PipelineConfig":
        """Build a config from raw (text or typed) values, applying schema defaults."""
        values: Dict[str, Any] = {}
        for spec in PARAMETERS:
            raw_value = raw.get(spec.name)
            if raw_value is None or (isinstance(raw_value, str) and not raw_value.strip()):
                raw_value = spec.default
            values[spec.name] = _coerce(spec, raw_value, source)
        unknown = set(raw) - set(PARAMETER_INDEX)
        for name in sorted(unknown):
            logger.warning("Ignoring unknown configuration key '%s'", name)
        return cls(values=values, source=source)

    def is_set(self, name: str) -> bool:
        get_parameter(name)
        return self.values[name] is not None

    def get(self, name: str, default: Any = None) -> Any:
        get_parameter(name)
        value = self.values[name]
        return default if value is None else value

    def require(self, name: str) -> Any:
        """Return the value of ``name`` or raise ``ConfigurationError`` when empty."""
        spec = get_parameter(name)
        value = self.values[name]
        if value is None:
            raise ConfigurationError("Required parameter is empty", spec.name, spec.step)
        if spec.kind == ParameterKind.PATH and not Path(value).exists():
            raise ConfigurationError(f"Referenced path does not exist: {value}", spec.name, spec.step)
        return value

    def replace(self, **overrides: Any) -> "PipelineConfig":
        """Return a new config with ``overrides`` applied (validated like loaded values)."""
        values = dict(self.values)
        for name, raw_value in overrides.items():
            spec = get_parameter(name)
            values[name] = _coerce(spec, raw_value, self.source)
        return PipelineConfig(values=values, source=self.source)


def _coerce(spec: ParameterSpec, raw_value: Any, source: Optional[Path]) -> Any:
    if raw_value is None:
        return None
    if isinstance(raw_value, str):
        if not raw_value.strip():
            return None
        value = spec.convert(raw_value)
    elif spec.kind in (ParameterKind.PATH, ParameterKind.DIRECTORY):
        value = Path(raw_value)
    elif spec.kind == ParameterKind.COLOR and isinstance(raw_value, tuple):
        value = spec.convert(";".join(str(int(c)) for c in raw_value))
    else:
        value = spec.convert(str(raw_value))

    if spec.kind in (ParameterKind.PATH, ParameterKind.DIRECTORY) and source is not None:
        if not value.is_absolute():
            value = source.parent / value
    return value


def parse_configuration_lines(lines) -> Dict[str, str]:
    """Parse ``key,value,description`` lines into a raw ``{key: value}`` dict."""
    raw: Dict[str, str] = {}
    for lineno, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith(FileFormat.COMMENT_PREFIX):
            continue
        parts = stripped.split(FileFormat.DELIMITER, 2)
        key = parts[0].strip()
        value = parts[1].strip() if len(parts) > 1 else ""
        if not key:
            logger.warning("Configuration line %d has no key, skipped", lineno)
            continue
        raw[key] = value
    return raw


def load_configuration(path: Union[str, Path]) -> PipelineConfig:
    """
    Load the configuration once per run.

    Raises:
        ConfigurationError: if the file is missing or a value is malformed.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = parse_configuration_lines(f)
    config = PipelineConfig.from_mapping(raw, source=path.resolve())
    logger.info("Loaded configuration from %s (%d keys set)", path, sum(v is not None for v in config.values.values()))
    return config


def write_configuration(config: PipelineConfig, path: Union[str, Path]) -> Path:
    """Write ``config`` in the ``key,value,description`` format (backing up any existing file)."""
    from ..io.backup import backup_existing

    path = Path(path)
    backup_existing(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(f"{FileFormat.COMMENT_PREFIX} kymoflow configuration: key,value,description\n")
        for spec in PARAMETERS:
            value = config.values[spec.name]
            if value is not None and spec.kind in (ParameterKind.PATH, ParameterKind.DIRECTORY):
                try:
                    value = Path(value).resolve().relative_to(path.resolve().parent)
                except ValueError:
                    pass
            f.write(f"{spec.name},{spec.format(value)},{spec.description}\n")
    return path


def default_configuration() -> PipelineConfig:
    """Configuration with only the schema defaults set."""
    return PipelineConfig.from_mapping({})
