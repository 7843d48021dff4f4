"""Named, severity-tagged validation rule tables.

Each rule extracts one observed value from its subject and checks it. Rules
are plain data so callers can assemble their own tables for a pipeline.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Sequence

from mrvkit.core.utils import SECONDS_PER_DAY, to_utc
from mrvkit.schemas.monitoring import (
    DetectedAnomaly,
    RuleSeverity,
    SatelliteAnalysisResult,
)

# Physically possible ranges for a sensor's mean reading.
PHYSICAL_BOUNDS: Dict[str, tuple[float, float]] = {
    "dissolved_oxygen": (0.0, 20.0),
    "temperature": (-10.0, 50.0),
    "salinity": (0.0, 45.0),
    "water_quality": (4.0, 11.0),
    "co2_flux": (-50.0, 300.0),
}


@dataclass(frozen=True)
class RuleContext:
    """Side information some rules need besides their subject."""

    sensor_type: str | None = None
    as_of: datetime | None = None


@dataclass(frozen=True)
class MetaEvidence:
    """Subject of the project-level meta rules."""

    source_count: int
    start: datetime
    end: datetime
    anomalies: Sequence[DetectedAnomaly] = field(default_factory=list)

    @property
    def span_days(self) -> float:
        return (to_utc(self.end) - to_utc(self.start)).total_seconds() / SECONDS_PER_DAY


@dataclass(frozen=True)
class ValidationRule:
    """A single check.

    ``observe`` pulls the checked value out of the subject; ``check`` decides
    whether it passes. ``auto_fix`` proposes a corrected value for a failing
    non-critical rule.
    """

    name: str
    description: str
    observe: Callable[[Any, RuleContext], Any]
    check: Callable[[Any, RuleContext], bool]
    error_message: str
    severity: RuleSeverity
    auto_fix: Callable[[Any], Any] | None = None
    expected: Any = None


def _age_days(moment: datetime | None, ctx: RuleContext) -> float:
    if moment is None or ctx.as_of is None:
        return math.inf
    return (to_utc(ctx.as_of) - to_utc(moment)).total_seconds() / SECONDS_PER_DAY


def _min_confidence(result: SatelliteAnalysisResult, _ctx) -> float | None:
    if not result.index_series:
        return None
    return min(s.confidence for s in result.index_series)


def _within_physical_bounds(value: float, ctx: RuleContext) -> bool:
    low, high = PHYSICAL_BOUNDS.get(ctx.sensor_type or "", (0.0, 1000.0))
    return low <= value <= high


SATELLITE_RULES: List[ValidationRule] = [
    ValidationRule(
        name="index_range",
        description="Vegetation index values must be between -1 and 1",
        observe=lambda r, _: [s.value for s in r.index_series],
        check=lambda values, _: all(-1.0 <= v <= 1.0 for v in values),
        error_message="Vegetation index value outside valid range [-1, 1]",
        severity=RuleSeverity.CRITICAL,
        expected="[-1, 1]",
    ),
    ValidationRule(
        name="index_quality",
        description="Every index sample must have confidence above 70%",
        observe=_min_confidence,
        check=lambda conf, _: conf is None or conf > 70.0,
        error_message="Vegetation index confidence below acceptable threshold",
        severity=RuleSeverity.WARNING,
        auto_fix=lambda conf: max(70.0, conf),
        expected="> 70",
    ),
    ValidationRule(
        name="vegetation_trend",
        description="Vegetation change within -50% to +30%",
        observe=lambda r, _: r.vegetation_cover_change,
        check=lambda change, _: -50.0 <= change <= 30.0,
        error_message="Vegetation change outside expected seasonal variation",
        severity=RuleSeverity.WARNING,
        expected="[-50, 30]",
    ),
    ValidationRule(
        name="biomass_realistic",
        description="Biomass estimate within known ecosystem ranges",
        observe=lambda r, _: r.biomass_estimate.estimated_biomass,
        check=lambda biomass, _: 0.0 < biomass < 500.0,
        error_message="Biomass estimate unrealistic",
        severity=RuleSeverity.CRITICAL,
        expected="(0, 500)",
    ),
    ValidationRule(
        name="cloud_cover_acceptable",
        description="Cloud cover must not exceed 30%",
        observe=lambda r, _: r.data_quality.cloud_cover,
        check=lambda cloud, _: cloud <= 30.0,
        error_message="Excessive cloud cover reduces data reliability",
        severity=RuleSeverity.WARNING,
        expected="<= 30",
    ),
    ValidationRule(
        name="completeness_threshold",
        description="Data completeness must be at least 60%",
        observe=lambda r, _: r.data_quality.completeness,
        check=lambda completeness, _: completeness >= 60.0,
        error_message="Insufficient data completeness",
        severity=RuleSeverity.WARNING,
        expected=">= 60",
    ),
    ValidationRule(
        name="health_score_valid",
        description="Health score must be between 0 and 100",
        observe=lambda r, _: r.ecosystem_health_score,
        check=lambda score, _: 0.0 <= score <= 100.0,
        error_message="Health score outside valid range",
        severity=RuleSeverity.CRITICAL,
        expected="[0, 100]",
    ),
]


SENSOR_RULES: List[ValidationRule] = [
    ValidationRule(
        name="reading_range",
        description="Mean reading within the physically possible range",
        observe=lambda s, _: s.statistics.mean,
        check=_within_physical_bounds,
        error_message="Sensor reading outside valid range",
        severity=RuleSeverity.CRITICAL,
    ),
    ValidationRule(
        name="confidence_sufficient",
        description="Mean reading confidence must exceed 50%",
        observe=lambda s, _: s.mean_confidence,
        check=lambda conf, _: conf > 50.0,
        error_message="Sensor confidence too low",
        severity=RuleSeverity.WARNING,
        expected="> 50",
    ),
    ValidationRule(
        name="data_quality_valid",
        description="No reading may be flagged 'bad'",
        observe=lambda s, _: s.quality_counts.get("bad", 0),
        check=lambda bad, _: bad == 0,
        error_message="Data marked as bad quality",
        severity=RuleSeverity.WARNING,
        expected=0,
    ),
    ValidationRule(
        name="timestamp_valid",
        description="Newest reading within the last 7 days",
        observe=lambda s, ctx: _age_days(s.period_end, ctx),
        check=lambda age, _: age <= 7.0,
        error_message="Data too old (> 7 days)",
        severity=RuleSeverity.WARNING,
        expected="<= 7 days",
    ),
    ValidationRule(
        name="freshness_acceptable",
        description="Newest reading within the last 24 hours",
        observe=lambda s, ctx: _age_days(s.period_end, ctx),
        check=lambda age, _: age <= 1.0,
        error_message="Data older than 24 hours",
        severity=RuleSeverity.INFO,
        expected="<= 1 day",
    ),
]


META_RULES: List[ValidationRule] = [
    ValidationRule(
        name="multiple_sources",
        description="At least 2 different data sources required",
        observe=lambda m, _: m.source_count,
        check=lambda count, _: count >= 2,
        error_message="Insufficient data sources for verification",
        severity=RuleSeverity.CRITICAL,
        expected=">= 2",
    ),
    ValidationRule(
        name="temporal_coverage",
        description="Data span must cover at least 30 days",
        observe=lambda m, _: m.span_days,
        check=lambda days, _: days >= 30.0,
        error_message="Insufficient temporal coverage",
        severity=RuleSeverity.WARNING,
        expected=">= 30 days",
    ),
    ValidationRule(
        name="no_critical_anomalies",
        description="No high-severity anomalies present",
        observe=lambda m, _: sum(1 for a in m.anomalies if a.severity == "high"),
        check=lambda count, _: count == 0,
        error_message="Critical anomalies detected in data",
        severity=RuleSeverity.WARNING,
        expected=0,
    ),
]


__all__ = [
    "PHYSICAL_BOUNDS",
    "RuleContext",
    "MetaEvidence",
    "ValidationRule",
    "SATELLITE_RULES",
    "SENSOR_RULES",
    "META_RULES",
]
