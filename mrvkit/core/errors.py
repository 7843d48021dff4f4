"""Exception taxonomy shared by all pipeline stages.

Only structurally invalid requests propagate to callers. Sparse or noisy data
never raises; it is encoded in scores, flags and blockers instead.
"""

from __future__ import annotations


class MrvError(Exception):
    """Base class for mrvkit errors."""


class InvalidInputError(MrvError, ValueError):
    """Raised when a request is malformed and computation cannot start."""


class InvalidRangeError(InvalidInputError):
    """Raised when a date range ends before it starts."""


class UnknownSensorTypeError(InvalidInputError):
    """Raised for a sensor type without a registered plausible range."""

    def __init__(self, sensor_type: str, known: list[str] | None = None) -> None:
        self.sensor_type = sensor_type
        msg = f"Unknown sensor type '{sensor_type}'"
        if known:
            msg += f". Choose from: {sorted(known)}"
        super().__init__(msg)


class RuleEvaluationError(MrvError):
    """Wraps an exception raised inside a validation rule.

    The pipeline records it as a non-critical failure and carries on with the
    remaining rules.
    """

    def __init__(self, rule: str, cause: Exception) -> None:
        self.rule = rule
        self.cause = cause
        super().__init__(f"Rule '{rule}' failed to evaluate: {cause!r}")


class ConfigValidationError(MrvError):
    """Raised when configuration loading or validation fails."""
