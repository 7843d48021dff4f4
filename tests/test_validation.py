# pylint: disable=missing-module-docstring,missing-function-docstring
from dataclasses import replace
from datetime import timedelta

import pytest

from mrvkit.analytics.sensors import aggregate_sensor
from mrvkit.core.errors import UnknownSensorTypeError
from mrvkit.schemas.monitoring import (
    BiomassEstimate,
    DetectedAnomaly,
    RuleSeverity,
    SatelliteDataQuality,
)
from mrvkit.validation import (
    SATELLITE_RULES,
    ValidationConfig,
    ValidationPipeline,
    ValidationRule,
    validate_multi_source,
    validate_satellite,
    validate_sensor,
)
from mrvkit.validation.pipeline import recommend_action
from conftest import T0


def _high_anomaly():
    return DetectedAnomaly(
        timestamp=T0,
        value=1.0,
        anomaly_score=0.9,
        type="outlier",
        severity="high",
        explanation="spike",
        confidence=90.0,
        suggested_action="VERIFIED_ANOMALY_INVESTIGATE",
        source="satellite",
        supporting_sources=["satellite", "do-1"],
    )


def test_healthy_satellite_is_approved(healthy_satellite):
    result = validate_satellite(healthy_satellite)
    assert result.checks_performed == 7
    assert result.checks_pass == 7
    assert result.is_valid
    assert result.quality_score == 100.0
    assert result.recommended_action == "APPROVE"
    assert result.failures == [] and result.warnings == []
    assert result.data_source_id == "proj-1"
    assert result.timestamp == healthy_satellite.analysis_date


def test_empty_satellite_is_rejected(make_satellite):
    result = validate_satellite(make_satellite([]))
    assert result.checks_pass == 4
    assert not result.is_valid
    assert result.recommended_action == "REJECT"
    critical = [f.rule for f in result.failures if f.severity is RuleSeverity.CRITICAL]
    assert critical == ["biomass_realistic"]
    assert {w.rule for w in result.warnings} == {
        "cloud_cover_acceptable",
        "completeness_threshold",
    }


def test_critical_failure_requests_more_data(healthy_satellite):
    broken = replace(
        healthy_satellite,
        biomass_estimate=BiomassEstimate(0.0, "allometric", 90.0),
    )
    result = validate_satellite(broken)
    assert result.checks_pass == 6
    assert result.quality_score == pytest.approx(85.71)
    assert not result.is_valid
    assert result.recommended_action == "REQUEST_MORE_DATA"
    failure = result.failures[0]
    assert failure.rule == "biomass_realistic"
    assert failure.value == 0.0
    assert failure.expected_value == "(0, 500)"


def test_warnings_only_leads_to_review(healthy_satellite):
    cloudy = replace(
        healthy_satellite,
        data_quality=SatelliteDataQuality(80.0, cloud_cover=50.0, completeness=50.0),
    )
    result = validate_satellite(cloudy)
    assert result.checks_pass == 5
    assert result.is_valid
    assert result.recommended_action == "REVIEW"
    assert all(w.severity is RuleSeverity.WARNING for w in result.warnings)
    assert "High cloud cover - consider re-acquisition" in result.suggestions


def test_low_confidence_warning_proposes_fix(make_satellite):
    result = validate_satellite(make_satellite([0.8] * 5, confidence=60.0))
    warning = next(w for w in result.warnings if w.rule == "index_quality")
    assert warning.fix_applied
    assert warning.fixed_value == 70.0


def test_sensor_validation_passes(healthy_sensor, healthy_satellite):
    result = validate_sensor(healthy_sensor, as_of=healthy_satellite.analysis_date)
    assert result.checks_performed == 5
    assert result.checks_pass == 5
    assert result.recommended_action == "APPROVE"
    assert result.data_source_id == "do-1"


def test_stale_sensor_requests_more_data(healthy_sensor):
    as_of = healthy_sensor.period_end + timedelta(days=10)
    result = validate_sensor(healthy_sensor, "dissolved_oxygen", as_of=as_of)
    assert result.checks_pass == 3
    assert result.quality_score == 60.0
    assert not result.is_valid
    assert result.recommended_action == "REQUEST_MORE_DATA"
    severities = {w.rule: w.severity for w in result.warnings}
    assert severities == {
        "timestamp_valid": RuleSeverity.WARNING,
        "freshness_acceptable": RuleSeverity.INFO,
    }


def test_sensor_outside_physical_bounds(make_readings, location):
    readings = make_readings([25.0] * 5)
    sensor = aggregate_sensor("do-9", readings, location, "dissolved_oxygen")
    result = validate_sensor(sensor, as_of=readings[-1].timestamp)
    assert [f.rule for f in result.failures] == ["reading_range"]
    assert result.failures[0].severity is RuleSeverity.CRITICAL
    assert not result.is_valid
    assert "Multiple anomalies detected - 5 points flagged for review" in (
        result.suggestions
    )


def test_sensor_bad_quality_and_low_confidence(make_readings, location):
    readings = make_readings([6.0, 6.0, 6.0], quality=["valid", "bad", "valid"],
                             confidence=40.0)
    sensor = aggregate_sensor("do-2", readings, location, "dissolved_oxygen")
    result = validate_sensor(sensor, as_of=readings[-1].timestamp)
    assert {w.rule for w in result.warnings} == {
        "confidence_sufficient",
        "data_quality_valid",
    }
    assert result.checks_pass == 3


def test_sensor_validation_unknown_type(healthy_sensor):
    with pytest.raises(UnknownSensorTypeError):
        validate_sensor(healthy_sensor, "lidar", as_of=T0)


def test_rule_exception_becomes_warning_failure(healthy_satellite):
    def boom(_result, _ctx):
        raise RuntimeError("boom")

    broken = ValidationRule(
        name="broken",
        description="always raises",
        observe=boom,
        check=lambda value, _: True,
        error_message="never shown",
        severity=RuleSeverity.CRITICAL,
    )
    pipeline = ValidationPipeline(satellite_rules=[*SATELLITE_RULES, broken])
    result = pipeline.validate_satellite(healthy_satellite)
    assert result.checks_performed == 8
    assert result.checks_pass == 7
    failure = result.failures[0]
    assert failure.rule == "broken"
    assert failure.severity is RuleSeverity.WARNING
    assert failure.reason == "Validation error: boom"
    # not a critical failure, so the result stays valid
    assert result.is_valid
    assert result.recommended_action == "APPROVE"


def test_meta_rules():
    pipeline = ValidationPipeline()
    ok = pipeline.validate_meta(2, T0, T0 + timedelta(days=45))
    assert ok.checks_pass == 3 and ok.is_valid

    lonely = pipeline.validate_meta(1, T0, T0 + timedelta(days=10), [_high_anomaly()])
    assert not lonely.is_valid
    assert [f.rule for f in lonely.failures] == ["multiple_sources"]
    assert {w.rule for w in lonely.warnings} == {
        "temporal_coverage",
        "no_critical_anomalies",
    }
    assert lonely.recommended_action == "REJECT"


@pytest.mark.parametrize(
    "is_valid, score, expected",
    [
        (True, 90.0, "APPROVE"),
        (True, 85.0, "APPROVE"),
        (True, 75.0, "REVIEW"),
        (False, 60.0, "REQUEST_MORE_DATA"),
        (False, 59.9, "REJECT"),
    ],
)
def test_recommend_action_thresholds(is_valid, score, expected):
    assert recommend_action(is_valid, score, ValidationConfig()) == expected


def test_custom_approve_threshold(make_satellite):
    cloudy = make_satellite([0.8] * 3 + [0.6] * 2)
    # 2 medium-quality samples: cloud cover 40% fails, completeness 60% passes
    result = ValidationPipeline(ValidationConfig(approve_score=80.0)).validate_satellite(
        cloudy
    )
    assert result.checks_pass == 6
    assert result.recommended_action == "APPROVE"


def test_multi_source_ready(healthy_satellite, healthy_sensor):
    outcome = validate_multi_source(healthy_satellite, {"do-1": healthy_sensor})
    assert outcome.overall_valid
    assert outcome.overall_action == "READY_FOR_VERIFICATION"
    assert outcome.meta.checks_pass == 3
    assert outcome.cross_source.consistency_score == 100.0
    assert set(outcome.sensors) == {"do-1"}


def test_multi_source_without_sensors(healthy_satellite):
    outcome = validate_multi_source(healthy_satellite, {})
    assert not outcome.overall_valid
    assert outcome.overall_action == "REQUEST_ADDITIONAL_DATA"
    assert [f.rule for f in outcome.meta.failures] == ["multiple_sources"]


def test_multi_source_manual_review(healthy_satellite, healthy_sensor):
    cloudy = replace(
        healthy_satellite,
        data_quality=SatelliteDataQuality(80.0, cloud_cover=50.0, completeness=50.0),
    )
    outcome = validate_multi_source(cloudy, {"do-1": healthy_sensor})
    assert outcome.overall_valid
    assert outcome.overall_action == "READY_FOR_MANUAL_REVIEW"


def test_multi_source_high_anomaly_blocks(healthy_satellite, healthy_sensor):
    outcome = validate_multi_source(
        healthy_satellite, {"do-1": healthy_sensor}, anomalies=[_high_anomaly()]
    )
    assert outcome.meta.checks_pass == 2
    assert outcome.meta.failures == []
    assert not outcome.meta.is_valid
    assert outcome.overall_action == "REQUEST_ADDITIONAL_DATA"
