"""
Module `validation.pipeline` applies rule tables to satellite, sensor and
project-level evidence and turns the outcome into a quality score and a
recommended action.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

from mrvkit.analytics.sensors import resolve_sensor_type
from mrvkit.core.config import from_section
from mrvkit.core.errors import RuleEvaluationError
from mrvkit.core.utils import to_utc
from mrvkit.schemas.monitoring import (
    AggregatedSensorData,
    CrossSourceValidation,
    DataValidationResult,
    DetectedAnomaly,
    RuleSeverity,
    SatelliteAnalysisResult,
    ValidationFailure,
    ValidationWarning,
)
from mrvkit.services.base import BaseService
from mrvkit.validation.cross_source import CrossSourceConfig, CrossSourceValidator
from mrvkit.validation.rules import (
    META_RULES,
    SATELLITE_RULES,
    SENSOR_RULES,
    MetaEvidence,
    RuleContext,
    ValidationRule,
)


@dataclass
class ValidationConfig:
    """Score cut-offs that map a quality score to an action."""

    approve_score: float = 85.0
    valid_score: float = 70.0
    request_more_data_score: float = 60.0

    @classmethod
    def from_yaml(cls, path: str | Path | None = None) -> "ValidationConfig":
        return from_section(cls, path, "validation")


@dataclass
class _RuleOutcome:
    performed: int = 0
    passed: int = 0
    failures: List[ValidationFailure] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)

    @property
    def score(self) -> float:
        if not self.performed:
            return 0.0
        return self.passed / self.performed * 100.0

    @property
    def critical_failures(self) -> int:
        return sum(1 for f in self.failures if f.severity is RuleSeverity.CRITICAL)


def recommend_action(is_valid: bool, score: float, config: ValidationConfig) -> str:
    if is_valid and score >= config.approve_score:
        return "APPROVE"
    if is_valid:
        return "REVIEW"
    if score >= config.request_more_data_score:
        return "REQUEST_MORE_DATA"
    return "REJECT"


def satellite_suggestions(result: SatelliteAnalysisResult) -> List[str]:
    suggestions = []
    if result.data_quality.cloud_cover > 20:
        suggestions.append("High cloud cover - consider re-acquisition")
    if result.data_quality.completeness < 80:
        suggestions.append(
            "Data completeness below optimal - supplement with drone surveys"
        )
    if result.degradation_flags:
        suggestions.append(
            "Investigate flagged degradation signals: "
            + ", ".join(result.degradation_flags)
        )
    if result.ecosystem_health_score < 50:
        suggestions.append(
            "Low ecosystem health score - recommend immediate field validation"
        )
    return suggestions


def sensor_suggestions(result: AggregatedSensorData) -> List[str]:
    suggestions = []
    stats = result.statistics
    if result.reading_count and stats.std_dev > stats.mean * 0.3:
        suggestions.append("High variability detected - recommend sensor recalibration")
    if len(result.anomalies) > 2:
        suggestions.append(
            f"Multiple anomalies detected - {len(result.anomalies)} points "
            "flagged for review"
        )
    if result.data_quality < 70:
        suggestions.append(
            "Data quality below 70% - recommend extended monitoring period"
        )
    return suggestions


def meta_suggestions(evidence: MetaEvidence) -> List[str]:
    suggestions = []
    if evidence.source_count < 2:
        suggestions.append("Add an independent data source before verification")
    if evidence.span_days < 30:
        suggestions.append("Extend the monitoring period to at least 30 days")
    if any(a.severity == "high" for a in evidence.anomalies):
        suggestions.append("Resolve high-severity anomalies before verification")
    return suggestions


class ValidationPipeline(BaseService):
    """Evaluate rule tables and summarize them into a validation result."""

    def __init__(
        self,
        config: ValidationConfig | None = None,
        *,
        satellite_rules: Sequence[ValidationRule] = SATELLITE_RULES,
        sensor_rules: Sequence[ValidationRule] = SENSOR_RULES,
        meta_rules: Sequence[ValidationRule] = META_RULES,
        logger=None,
    ) -> None:
        super().__init__(logger)
        self.config = config or ValidationConfig()
        self.satellite_rules = list(satellite_rules)
        self.sensor_rules = list(sensor_rules)
        self.meta_rules = list(meta_rules)

    def run_rules(
        self, rules: Sequence[ValidationRule], subject: Any, context: RuleContext
    ) -> _RuleOutcome:
        """Evaluate every rule; a rule that raises does not stop the others."""
        outcome = _RuleOutcome()
        for rule in rules:
            outcome.performed += 1
            try:
                value = rule.observe(subject, context)
                passed = bool(rule.check(value, context))
            except Exception as exc:
                err = RuleEvaluationError(rule.name, exc)
                self.logger.warning("%s", err)
                outcome.failures.append(
                    ValidationFailure(
                        rule=rule.name,
                        reason=f"Validation error: {err.cause}",
                        severity=RuleSeverity.WARNING,
                    )
                )
                continue

            if passed:
                outcome.passed += 1
            elif rule.severity is RuleSeverity.CRITICAL:
                outcome.failures.append(
                    ValidationFailure(
                        rule=rule.name,
                        reason=rule.error_message,
                        severity=rule.severity.as_failure(),
                        value=value,
                        expected_value=rule.expected,
                    )
                )
            else:
                fixed = rule.auto_fix(value) if rule.auto_fix else None
                outcome.warnings.append(
                    ValidationWarning(
                        rule=rule.name,
                        message=rule.error_message,
                        severity=rule.severity.as_warning(),
                        fix_applied=rule.auto_fix is not None,
                        fixed_value=fixed,
                    )
                )
        return outcome

    def _result(
        self,
        outcome: _RuleOutcome,
        source_id: str,
        timestamp: datetime | None,
        suggestions: List[str],
    ) -> DataValidationResult:
        score = outcome.score
        is_valid = outcome.critical_failures == 0 and score >= self.config.valid_score
        action = recommend_action(is_valid, score, self.config)
        self.logger.info(
            "Validated %s: %d/%d checks passed, score %.0f -> %s",
            source_id,
            outcome.passed,
            outcome.performed,
            score,
            action,
        )
        return DataValidationResult(
            is_valid=is_valid,
            data_source_id=source_id,
            timestamp=timestamp,
            checks_performed=outcome.performed,
            checks_pass=outcome.passed,
            failures=outcome.failures,
            warnings=outcome.warnings,
            quality_score=round(score, 2),
            suggestions=suggestions,
            recommended_action=action,
        )

    def validate_satellite(self, result: SatelliteAnalysisResult) -> DataValidationResult:
        outcome = self.run_rules(self.satellite_rules, result, RuleContext())
        return self._result(
            outcome, result.project_id, result.analysis_date, satellite_suggestions(result)
        )

    def validate_sensor(
        self,
        result: AggregatedSensorData,
        sensor_type: str | None = None,
        *,
        as_of: datetime | None = None,
    ) -> DataValidationResult:
        """Validate one sensor aggregate.

        ``sensor_type`` defaults to the aggregate's own type. Data age is
        measured against ``as_of`` (now, when omitted).
        """
        sensor_type = resolve_sensor_type(sensor_type or result.sensor_type)
        as_of = to_utc(as_of) if as_of else datetime.now(timezone.utc)
        context = RuleContext(sensor_type=sensor_type, as_of=as_of)
        outcome = self.run_rules(self.sensor_rules, result, context)
        return self._result(
            outcome, result.sensor_id, result.period_end, sensor_suggestions(result)
        )

    def validate_meta(
        self,
        source_count: int,
        start: datetime,
        end: datetime,
        anomalies: Sequence[DetectedAnomaly] = (),
    ) -> DataValidationResult:
        """Project-level checks across all sources."""
        evidence = MetaEvidence(source_count, to_utc(start), to_utc(end), list(anomalies))
        outcome = self.run_rules(self.meta_rules, evidence, RuleContext())
        return self._result(outcome, "meta", evidence.end, meta_suggestions(evidence))


@dataclass(frozen=True)
class MultiSourceValidation:
    satellite: DataValidationResult
    sensors: Dict[str, DataValidationResult]
    cross_source: CrossSourceValidation
    meta: DataValidationResult
    overall_valid: bool
    overall_action: str


def validate_satellite(result: SatelliteAnalysisResult) -> DataValidationResult:
    """Functional entry point for satellite validation."""
    return ValidationPipeline().validate_satellite(result)


def validate_sensor(
    result: AggregatedSensorData,
    sensor_type: str | None = None,
    *,
    as_of: datetime | None = None,
) -> DataValidationResult:
    """Functional entry point for sensor validation."""
    return ValidationPipeline().validate_sensor(result, sensor_type, as_of=as_of)


def validate_multi_source(
    satellite: SatelliteAnalysisResult,
    sensors: Mapping[str, AggregatedSensorData],
    *,
    anomalies: Sequence[DetectedAnomaly] = (),
    as_of: datetime | None = None,
    config: ValidationConfig | None = None,
    cross_source_config: CrossSourceConfig | None = None,
) -> MultiSourceValidation:
    """Validate every source, cross-check them and derive one overall action."""
    pipeline = ValidationPipeline(config)
    as_of = to_utc(as_of) if as_of else to_utc(satellite.analysis_date)

    satellite_result = pipeline.validate_satellite(satellite)
    sensor_results = {
        sensor_id: pipeline.validate_sensor(sensor, as_of=as_of)
        for sensor_id, sensor in sensors.items()
    }
    cross = CrossSourceValidator(cross_source_config).compare(satellite, sensors)

    timestamps = [s.timestamp for s in satellite.index_series]
    timestamps += [s.timestamp for s in satellite.radar_series]
    for sensor in sensors.values():
        timestamps += [t for t in (sensor.period_start, sensor.period_end) if t]
    start = min(timestamps) if timestamps else as_of
    end = max(timestamps) if timestamps else as_of
    source_count = int(satellite.has_data) + sum(
        1 for s in sensors.values() if s.reading_count
    )
    meta = pipeline.validate_meta(source_count, start, end, anomalies)

    overall_valid = (
        satellite_result.is_valid
        and all(v.is_valid for v in sensor_results.values())
        and cross.overall_valid
        and meta.is_valid
    )
    scores_high = satellite_result.quality_score > pipeline.config.approve_score and all(
        v.quality_score > pipeline.config.approve_score for v in sensor_results.values()
    )
    if overall_valid and scores_high:
        action = "READY_FOR_VERIFICATION"
    elif overall_valid:
        action = "READY_FOR_MANUAL_REVIEW"
    else:
        action = "REQUEST_ADDITIONAL_DATA"
    return MultiSourceValidation(
        satellite=satellite_result,
        sensors=sensor_results,
        cross_source=cross,
        meta=meta,
        overall_valid=overall_valid,
        overall_action=action,
    )
