from .cross_source import CrossSourceConfig, CrossSourceValidator, cross_validate
from .pipeline import (
    MultiSourceValidation,
    ValidationConfig,
    ValidationPipeline,
    validate_multi_source,
    validate_satellite,
    validate_sensor,
)
from .rules import META_RULES, SATELLITE_RULES, SENSOR_RULES, ValidationRule

__all__ = [
    "CrossSourceConfig",
    "CrossSourceValidator",
    "cross_validate",
    "MultiSourceValidation",
    "ValidationConfig",
    "ValidationPipeline",
    "validate_multi_source",
    "validate_satellite",
    "validate_sensor",
    "META_RULES",
    "SATELLITE_RULES",
    "SENSOR_RULES",
    "ValidationRule",
]
