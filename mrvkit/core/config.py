"""core.config
---------------

Configuration loader/manager for mrvkit. Provides a central API for loading
pipeline settings from YAML/TOML/JSON and retrieving them via
:py:meth:`ConfigManager.get`.
"""

import os
import json
from pathlib import Path

import yaml
import toml

from .errors import ConfigValidationError

DEFAULT_THRESHOLDS_PATH = (
    Path(__file__).resolve().parent.parent / "config" / "thresholds.yaml"
)


def load_mapping(path: str | Path) -> dict:
    """Read a YAML, TOML or JSON file and return its top-level mapping."""
    ext = os.path.splitext(str(path))[1].lower()
    try:
        with open(path, "r", encoding="utf-8") as f:
            if ext in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            elif ext == ".toml":
                data = toml.load(f)
            elif ext == ".json":
                data = json.load(f)
            else:
                raise ConfigValidationError(f"Unsupported config format: {ext}")
    except ConfigValidationError:
        raise
    except Exception as e:
        raise ConfigValidationError(f"Failed to load config from {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"Config file {path} did not produce a dict")
    return data


class ConfigManager:
    """
    Loads and manages configuration from file or defaults.
    Provides a central entry point for pipeline parameterization.
    """

    SUPPORTED_DATA_TYPES: tuple[str, ...] = ("optical", "radar", "both")
    SUPPORTED_ECOSYSTEMS: tuple[str, ...] = ("mangrove", "seagrass", "salt_marsh")

    DEFAULT_ECOSYSTEM: str = "mangrove"
    DEFAULT_DATA_TYPE: str = "both"
    DEFAULT_ANOMALY_MODEL: str = "isolation_forest"
    DEFAULT_SENSITIVITY: str = "high"

    def __init__(self, config_path=None):
        self.config = {
            "ecosystem": self.DEFAULT_ECOSYSTEM,
            "data_type": self.DEFAULT_DATA_TYPE,
            "anomaly_model": self.DEFAULT_ANOMALY_MODEL,
            "anomaly_sensitivity": self.DEFAULT_SENSITIVITY,
            "anomaly_window": 7,
            "corroboration_threshold": 0.6,
            "thresholds_path": str(DEFAULT_THRESHOLDS_PATH),
        }
        self.supported_data_types = list(self.SUPPORTED_DATA_TYPES)
        self.supported_ecosystems = list(self.SUPPORTED_ECOSYSTEMS)
        if config_path:
            self.load(config_path)

    def load(self, path: str) -> None:
        """
        Load configuration from a file (YAML, TOML, or JSON).
        Overwrites existing keys in self.config.
        """
        self.config.update(load_mapping(path))

    def get(self, key, default=None):
        """
        Retrieve a configuration value by key, or return `default` if not present.
        Default attributes such as ``supported_data_types`` resolve too.
        """
        if key in self.config:
            return self.config.get(key, default)
        elif hasattr(self, key):
            return getattr(self, key)
        else:
            return default

    def merge(self, other: "ConfigManager") -> None:
        """
        Merge another ConfigManager into this one.
        Values in other.config override this.config.
        """
        if not isinstance(other, ConfigManager):
            raise TypeError("Can only merge ConfigManager instances")
        self.config.update(other.config)
        self.supported_ecosystems = list(
            dict.fromkeys(self.supported_ecosystems + other.supported_ecosystems)
        )

    def thresholds(self) -> dict:
        """Return the threshold tables referenced by ``thresholds_path``."""
        path = self.get("thresholds_path")
        if not path or not Path(path).exists():
            return {}
        return load_mapping(path)


def load_section(path: str | Path | None, section: str) -> dict:
    """Return ``section`` from a thresholds file, or ``{}`` when absent."""
    if path is None:
        path = DEFAULT_THRESHOLDS_PATH
        if not Path(path).exists():
            return {}
    data = load_mapping(path).get(section) or {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"Section '{section}' in {path} is not a mapping")
    return data


def from_section(cls, path: str | Path | None, section: str):
    """Instantiate dataclass ``cls`` from a thresholds file section.

    Unknown keys are rejected so typos surface early.
    """
    data = load_section(path, section)
    known = set(cls.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
        raise ConfigValidationError(
            f"Unknown keys in section '{section}': {sorted(unknown)}"
        )
    return cls(**data)
