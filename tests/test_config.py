from pathlib import Path

import pytest

from kymoflow.config import (
    AnalysisSettings,
    MapSettings,
    PipelineConfig,
    default_configuration,
    load_configuration,
    parse_color,
    write_configuration,
)
from kymoflow.config.config import parse_configuration_lines
from kymoflow.errors import ConfigurationError


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_comment_and_blank_lines_are_ignored():
    raw = parse_configuration_lines(
        [
            "// pixel_size,9,commented out\n",
            "\n",
            "pixel_size,0.5,Pixel size\n",
            "frame_rate , 30 ,Frames per second\n",
        ]
    )
    assert raw == {"pixel_size": "0.5", "frame_rate": "30"}


def test_load_configuration_converts_values(tmp_path):
    path = _write(
        tmp_path / "project.cfg",
        "// test project\n"
        "pixel_size,0.5,Pixel size\n"
        "frame_rate,30,fps\n"
        "flicker_corrected,yes,\n"
        "n_jobs,4,\n"
        "background_color,#ff0000,\n",
    )
    config = load_configuration(path)
    assert config.require("pixel_size") == 0.5
    assert config.require("frame_rate") == 30.0
    assert config.require("flicker_corrected") is True
    assert config.require("n_jobs") == 4
    assert config.require("background_color") == (255, 0, 0)
    # schema defaults
    assert config.require("orientation_method") == "structure_tensor"
    assert config.require("lut") == "jet"


def test_empty_key_fails_only_when_required(tmp_path):
    config = load_configuration(_write(tmp_path / "project.cfg", "pixel_size,,left empty\n"))
    assert not config.is_set("pixel_size")
    with pytest.raises(ConfigurationError) as excinfo:
        config.require("pixel_size")
    assert excinfo.value.parameter == "pixel_size"
    assert "calibration" in str(excinfo.value)


def test_missing_path_is_reported_with_step(tmp_path):
    config = PipelineConfig.from_mapping({"video_path": tmp_path / "missing.tif"})
    with pytest.raises(ConfigurationError) as excinfo:
        config.require("video_path")
    assert excinfo.value.parameter == "video_path"
    assert "video acquisition" in str(excinfo.value)


def test_malformed_value_fails_at_load(tmp_path):
    with pytest.raises(ConfigurationError) as excinfo:
        load_configuration(_write(tmp_path / "project.cfg", "frame_rate,fast,\n"))
    assert excinfo.value.parameter == "frame_rate"


@pytest.mark.parametrize(
    "line",
    [
        "pixel_size,0,must be positive",
        "line_thickness,0,at least one pixel",
        "orientation_method,hough,unknown method",
        "lut,not_a_palette,",
        "n_jobs,1.5,",
        "n_jobs,0,no workers",
    ],
)
def test_invalid_values_are_rejected(tmp_path, line):
    with pytest.raises(ConfigurationError):
        load_configuration(_write(tmp_path / "project.cfg", line + "\n"))


def test_zero_workers_are_rejected_on_replace():
    config = PipelineConfig.from_mapping({"n_jobs": -1})
    assert config.require("n_jobs") == -1
    with pytest.raises(ConfigurationError) as excinfo:
        config.replace(n_jobs=0)
    assert excinfo.value.parameter == "n_jobs"


def test_missing_configuration_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_configuration(tmp_path / "nope.cfg")


def test_unknown_keys_are_ignored(tmp_path):
    config = load_configuration(_write(tmp_path / "project.cfg", "colour_depth,8,\npixel_size,1,\n"))
    assert config.require("pixel_size") == 1.0


def test_relative_paths_resolve_against_config_file(tmp_path):
    (tmp_path / "data").mkdir()
    video = tmp_path / "data" / "flow.tif"
    video.write_bytes(b"")
    config = load_configuration(_write(tmp_path / "project.cfg", "video_path,data/flow.tif,\noutput_dir,out,\n"))
    assert config.require("video_path") == video.resolve()
    assert config.require("output_dir") == (tmp_path / "out").resolve()


def test_replace_returns_new_config():
    config = PipelineConfig.from_mapping({"pixel_size": 0.5})
    changed = config.replace(pixel_size="0.25", n_jobs=2)
    assert config.require("pixel_size") == 0.5
    assert config.require("n_jobs") == 1
    assert changed.require("pixel_size") == 0.25
    assert changed.require("n_jobs") == 2
    with pytest.raises(TypeError):
        config.values["pixel_size"] = 1.0


def test_replace_validates_values():
    with pytest.raises(ConfigurationError):
        PipelineConfig.from_mapping({}).replace(frame_rate=-1)


def test_settings_require_every_key(analysis_config):
    settings = AnalysisSettings.from_config(analysis_config)
    assert settings.pixel_size == 0.5
    assert settings.orientation_method == "structure_tensor"

    incomplete = PipelineConfig.from_mapping({"pixel_size": 0.5})
    with pytest.raises(ConfigurationError) as excinfo:
        AnalysisSettings.from_config(incomplete)
    assert excinfo.value.parameter == "frame_rate"


def test_map_settings_defaults(analysis_config):
    settings = MapSettings.from_config(analysis_config)
    assert settings.max_plot_speed == 30.0
    assert settings.line_thickness == 2
    assert settings.background_color == (0, 0, 0)


def test_write_and_reload_configuration(tmp_path, analysis_config):
    (tmp_path / "segments.csv").write_text("segment,name,x,y\n", encoding="utf-8")
    config = analysis_config.replace(segments_path=tmp_path / "segments.csv", background_color="white")
    path = write_configuration(config, tmp_path / "project.cfg")

    text = path.read_text(encoding="utf-8")
    assert text.startswith("//")
    assert "segments_path,segments.csv," in text

    reloaded = load_configuration(path)
    for name in ("pixel_size", "frame_rate", "max_plot_speed", "arrow_cutoff", "background_color", "lut"):
        assert reloaded.require(name) == config.require(name)
    assert reloaded.require("segments_path") == (tmp_path / "segments.csv").resolve()


def test_template_contains_every_key(tmp_path):
    path = write_configuration(default_configuration(), tmp_path / "template.cfg")
    keys = {line.split(",")[0] for line in path.read_text(encoding="utf-8").splitlines() if not line.startswith("//")}
    assert {"video_path", "pixel_size", "max_measured_speed", "arrow_size", "lut"} <= keys

    # writing again keeps the previous file
    write_configuration(default_configuration(), path)
    assert (tmp_path / "template.cfg.bak").exists()


@pytest.mark.parametrize(
    "text,expected",
    [("#00ff00", (0, 255, 0)), ("white", (255, 255, 255)), ("10;20;30", (10, 20, 30))],
)
def test_parse_color(text, expected):
    assert parse_color(text) == expected
