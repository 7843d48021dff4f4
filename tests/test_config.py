"""Test suite for ConfigManager and the threshold-section loaders."""

import json
import pytest

import yaml
import toml

from mrvkit.analytics.satellite import AnalyzerConfig
from mrvkit.core.config import ConfigManager, ConfigValidationError, from_section
from mrvkit.readiness.assessor import ReadinessConfig
from mrvkit.validation.cross_source import CrossSourceConfig
from mrvkit.validation.pipeline import ValidationConfig


def test_load_json(tmp_path):
    """Ensure JSON files load correctly and default values are returned for missing keys."""
    cfg_file = tmp_path / "cfg.json"
    cfg_file.write_text(json.dumps({"a": 1, "b": "two"}), encoding="utf-8")

    cfg = ConfigManager()
    cfg.load(str(cfg_file))

    assert cfg.get("a") == 1
    assert cfg.get("b") == "two"
    assert cfg.get("missing", "def") == "def"


def test_load_yaml(tmp_path):
    cfg_file = tmp_path / "cfg.yaml"
    cfg_file.write_text(
        yaml.safe_dump({"anomaly_model": "zscore", "anomaly_window": 5}),
        encoding="utf-8",
    )

    cfg = ConfigManager(str(cfg_file))

    assert cfg.get("anomaly_model") == "zscore"
    assert cfg.get("anomaly_window") == 5
    # untouched defaults survive
    assert cfg.get("ecosystem") == "mangrove"


def test_load_toml(tmp_path):
    cfg_file = tmp_path / "cfg.toml"
    cfg_file.write_text(toml.dumps({"foo": "bar", "num": 42}), encoding="utf-8")

    cfg = ConfigManager()
    cfg.load(str(cfg_file))

    assert cfg.get("foo") == "bar"
    assert cfg.get("num") == 42


def test_load_unsupported_extension(tmp_path):
    """Confirm that loading unsupported file extensions raises ConfigValidationError."""
    cfg_file = tmp_path / "cfg.txt"
    cfg_file.write_text("whatever", encoding="utf-8")

    with pytest.raises(ConfigValidationError):
        ConfigManager().load(str(cfg_file))


def test_load_invalid_content(tmp_path):
    cfg_file = tmp_path / "bad.json"
    cfg_file.write_text("not a json!", encoding="utf-8")

    with pytest.raises(ConfigValidationError):
        ConfigManager().load(str(cfg_file))


def test_get_default_attrs():
    cfg = ConfigManager()
    assert cfg.get("supported_data_types") == ["optical", "radar", "both"]
    assert "seagrass" in cfg.get("supported_ecosystems")


def test_merge_configs():
    """Merging combines configs with the latter overriding, ecosystems uniquely."""
    cfg1 = ConfigManager()
    cfg1.config = {"a": 1, "b": 0}
    cfg1.supported_ecosystems = ["mangrove", "seagrass"]

    cfg2 = ConfigManager()
    cfg2.config = {"b": 2}
    cfg2.supported_ecosystems = ["seagrass", "kelp"]

    cfg1.merge(cfg2)

    assert cfg1.get("a") == 1
    assert cfg1.get("b") == 2
    assert cfg1.supported_ecosystems == ["mangrove", "seagrass", "kelp"]


def test_merge_wrong_type():
    """Assert merging with a non-ConfigManager object raises a TypeError."""
    with pytest.raises(TypeError):
        ConfigManager().merge("not a config manager")


def test_thresholds_reads_bundled_file():
    tables = ConfigManager().thresholds()
    assert tables["validation"]["approve_score"] == 85.0
    assert set(tables) >= {"satellite", "validation", "cross_source", "readiness"}


def test_thresholds_missing_file(tmp_path):
    cfg = ConfigManager()
    cfg.config["thresholds_path"] = str(tmp_path / "nope.yaml")
    assert cfg.thresholds() == {}


def test_section_dataclasses_match_bundled_defaults():
    assert AnalyzerConfig.from_yaml() == AnalyzerConfig()
    assert ValidationConfig.from_yaml() == ValidationConfig()
    assert CrossSourceConfig.from_yaml() == CrossSourceConfig()
    assert ReadinessConfig.from_yaml() == ReadinessConfig()


def test_section_override(tmp_path):
    path = tmp_path / "thresholds.yaml"
    path.write_text(
        yaml.safe_dump({"cross_source": {"sensor_scale_factor": 10.0}}),
        encoding="utf-8",
    )
    cfg = CrossSourceConfig.from_yaml(path)
    assert cfg.sensor_scale_factor == 10.0
    assert cfg.health_threshold == 70.0
    # absent section falls back to defaults
    assert ReadinessConfig.from_yaml(path) == ReadinessConfig()


def test_section_unknown_key(tmp_path):
    path = tmp_path / "thresholds.yaml"
    path.write_text(yaml.safe_dump({"readiness": {"gap_dayz": 3}}), encoding="utf-8")
    with pytest.raises(ConfigValidationError, match="gap_dayz"):
        from_section(ReadinessConfig, path, "readiness")


def test_section_not_a_mapping(tmp_path):
    path = tmp_path / "thresholds.yaml"
    path.write_text(yaml.safe_dump({"validation": [1, 2]}), encoding="utf-8")
    with pytest.raises(ConfigValidationError):
        ValidationConfig.from_yaml(path)
