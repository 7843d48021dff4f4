"""Utility helpers for core modules."""

from __future__ import annotations

import dataclasses
import math
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

import pandas as pd

EPSILON = 1e-9
SECONDS_PER_DAY = 86400.0


def clamp(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    """Return ``value`` limited to ``[lower, upper]``; NaN maps to ``lower``."""
    if value is None or math.isnan(value):
        return lower
    return float(max(lower, min(upper, value)))


def safe_div(numerator: float, denominator: float, eps: float = EPSILON) -> float:
    """Divide, replacing a near-zero denominator with a signed epsilon."""
    if abs(denominator) < eps:
        denominator = eps if denominator >= 0 else -eps
    return numerator / denominator


def mean(values) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    values = list(values)
    if not values:
        return 0.0
    return float(sum(values) / len(values))


def to_utc(value: datetime | date | str) -> datetime:
    """Coerce a datetime, date or ISO string into a timezone-aware UTC datetime."""
    if isinstance(value, str):
        value = pd.Timestamp(value).to_pydatetime()
    elif not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(start: datetime, end: datetime) -> float:
    """Signed number of (fractional) days from ``start`` to ``end``."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def to_jsonable(obj: Any) -> Any:
    """Recursively convert dataclasses, enums and datetimes to JSON primitives."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: to_jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)
        }
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    if isinstance(obj, float) and math.isnan(obj):
        return None
    return obj
