# pylint: disable=missing-module-docstring,missing-function-docstring,redefined-outer-name
from dataclasses import replace
from datetime import timedelta

import pytest

from mrvkit.analytics.sensors import aggregate_sensor
from mrvkit.core.errors import InvalidInputError, InvalidRangeError
from mrvkit.readiness import (
    ReadinessAssessor,
    assess_readiness,
    assess_spatial_coverage,
    assess_temporal_alignment,
    calculate_carbon_sequestration,
    categorize_freshness,
)
from mrvkit.readiness.assessor import READY_STEP
from mrvkit.schemas.monitoring import DetectedAnomaly, Location, ProjectMetadata
from mrvkit.validation import validate_multi_source
from conftest import T0


def _assess(project, satellite, sensors, **kwargs):
    outcome = validate_multi_source(satellite, sensors)
    return assess_readiness(
        project,
        satellite,
        sensors,
        outcome.satellite,
        outcome.sensors,
        outcome.cross_source,
        **kwargs,
    )


def _project(location, days, area_ha=10_000.0):
    return ProjectMetadata(
        project_id="proj-1",
        location=location,
        area_ha=area_ha,
        monitoring_start=T0,
        monitoring_end=T0 + timedelta(days=days),
    )


def test_ready_project(project, healthy_satellite, healthy_sensor):
    report = _assess(project, healthy_satellite, {"do-1": healthy_sensor})
    readiness = report.readiness_for_verification
    assert readiness.ready_for_verification
    assert readiness.readiness_score == 100.0
    assert readiness.blockers == []
    assert readiness.next_steps[-1] == READY_STEP
    assert readiness.estimated_verification_date == T0 + timedelta(days=91)
    assert all(readiness.criteria_status.as_dict().values())

    assert report.monitoring_period.duration_days == 90
    assert report.temporal_alignment.aligned
    assert report.temporal_alignment.coverage_percentage == 100.0
    quality = report.data_quality_metrics
    assert quality.overall_score == pytest.approx(93.75)
    assert quality.freshness == "real-time"
    assert quality.consistency_score == 100.0
    assert report.carbon_sequestration_estimate.methodology == (
        "Satellite + Allometric Equations"
    )
    assert [r.priority for r in report.recommendations] == ["medium"]


def test_assessment_is_idempotent(project, healthy_satellite, healthy_sensor):
    sensors = {"do-1": healthy_sensor}
    assert _assess(project, healthy_satellite, sensors) == _assess(
        project, healthy_satellite, sensors
    )


def test_satellite_only_is_not_ready(location, make_satellite):
    project = _project(location, 1)
    satellite = make_satellite([0.8])
    report = _assess(project, satellite, {})
    readiness = report.readiness_for_verification
    assert not readiness.ready_for_verification
    assert not readiness.criteria_status.sufficient_data_sources
    assert readiness.blockers[0] == (
        "Insufficient data sources - need satellite AND sensor data"
    )
    assert "Data quality below 70% threshold" in readiness.blockers
    assert readiness.readiness_score == pytest.approx(60.0)
    assert readiness.estimated_verification_date is None
    critical = [r for r in report.recommendations if r.priority == "critical"]
    assert len(critical) == 1
    assert critical[0].description == readiness.blockers[0]
    assert critical[0].estimated_impact == "Enable verification"


def test_high_severity_anomaly_blocks(project, healthy_satellite, healthy_sensor):
    anomaly = DetectedAnomaly(
        timestamp=T0,
        value=0.2,
        anomaly_score=0.9,
        type="degradation",
        severity="high",
        explanation="drop",
        confidence=90.0,
        suggested_action="VERIFIED_ANOMALY_INVESTIGATE",
    )
    report = _assess(
        project, healthy_satellite, {"do-1": healthy_sensor}, anomalies=[anomaly]
    )
    readiness = report.readiness_for_verification
    assert not readiness.criteria_status.anomalies_resolved
    assert readiness.blockers == [
        "Critical anomalies unresolved - investigate flagged data points"
    ]
    assert readiness.readiness_score == 80.0


def test_temporal_gap_reduces_coverage(make_satellite):
    first = make_satellite([0.8] * 11)
    second = make_satellite([0.8] * 11, start=T0 + timedelta(days=20))
    satellite = replace(first, index_series=first.index_series + second.index_series)
    info = assess_temporal_alignment(satellite, {}, T0, T0 + timedelta(days=30))
    assert len(info.data_gaps) == 1
    gap = info.data_gaps[0]
    assert gap.duration_days == pytest.approx(10.0)
    assert gap.start == T0 + timedelta(days=10)
    assert info.coverage_percentage == pytest.approx(66.67)
    assert not info.aligned
    assert info.recommendations == [
        "1 data gaps detected - ensure continuous monitoring",
        "Monitoring coverage below 80% - extend collection period",
    ]


def test_source_misalignment_lowers_consistency(
    healthy_satellite, make_readings, location
):
    readings = make_readings([6.0] * 81, start=T0, step=timedelta(days=1))
    sensor = aggregate_sensor("do-1", readings, location, "dissolved_oxygen")
    info = assess_temporal_alignment(
        healthy_satellite, {"do-1": sensor}, T0, T0 + timedelta(days=90)
    )
    assert info.consistency_score == 90.0
    assert info.data_gaps == []
    assert info.aligned


def test_no_temporal_data():
    info = assess_temporal_alignment(None, {}, T0, T0 + timedelta(days=30))
    assert not info.aligned
    assert info.coverage_percentage == 0.0
    assert info.recommendations == ["No temporal data to assess"]


def test_spatial_coverage_without_sensors(project):
    info = assess_spatial_coverage(project, [], satellite_available=True)
    assert info.coverage_percentage == 40.0
    assert info.total_area_covered == pytest.approx(100.0)
    assert info.sensor_density == 0.0
    assert len(info.spatial_gaps) == 3
    first = info.spatial_gaps[0]
    assert first.importance == "critical"
    assert first.radius_km == pytest.approx(1.0)
    assert first.recommendation == "Deploy additional sensor at grid position (1, 1)"
    # top-left cell sits north-west of the project centre
    assert first.location.latitude > project.location.latitude
    assert first.location.longitude < project.location.longitude
    assert [g.importance for g in info.spatial_gaps[1:]] == ["high", "high"]
    assert info.recommendations == [
        "Spatial coverage critically low - deploy additional sensors"
    ]


def test_spatial_coverage_dense_network(project):
    sensors = [project.location] * 14
    info = assess_spatial_coverage(project, sensors, satellite_available=True)
    assert info.coverage_percentage == 100.0
    assert info.spatial_gaps == []
    assert info.sensor_density == pytest.approx(0.14)
    assert info.recommendations == []


def test_spatial_coverage_without_satellite(project):
    info = assess_spatial_coverage(project, [project.location] * 8, False)
    assert info.coverage_percentage == 40.0
    assert "Satellite imagery unavailable - prioritize drone surveys" in (
        info.recommendations
    )


def test_carbon_conservative_estimate():
    estimate = calculate_carbon_sequestration(None, 365.0, 100.0)
    assert estimate.methodology == "Conservative Estimate"
    assert estimate.annualized_rate == pytest.approx(350.0)
    assert estimate.total_sequestered == pytest.approx(350.0)
    assert estimate.confidence == 70.0
    assert estimate.comparison_to_baseline.percentage_change == 0.0


def test_carbon_short_period_floors_to_one_day():
    estimate = calculate_carbon_sequestration(None, 0.0, 365.0)
    assert estimate.total_sequestered == pytest.approx(3.5)


def test_carbon_from_satellite(healthy_satellite):
    estimate = calculate_carbon_sequestration(healthy_satellite, 365.0, 1.0)
    biomass = healthy_satellite.biomass_estimate.estimated_biomass
    assert estimate.annualized_rate == pytest.approx(round(biomass * 0.5, 2))
    assert estimate.confidence == 90.0
    assert estimate.comparison_to_baseline.baseline_rate == 3.5


def test_carbon_radar_only_uses_conservative_estimate(make_satellite):
    satellite = make_satellite([], backscatter=[-8.0, -7.5, -9.0])
    assert satellite.has_data
    estimate = calculate_carbon_sequestration(satellite, 365.0, 100.0)
    assert estimate.methodology == "Conservative Estimate"
    assert estimate.annualized_rate == pytest.approx(350.0)
    assert estimate.confidence == 70.0
    assert estimate.comparison_to_baseline.percentage_change == 0.0


@pytest.mark.parametrize(
    "age, expected",
    [
        (timedelta(minutes=10), "real-time"),
        (timedelta(hours=5), "current"),
        (timedelta(days=3), "recent"),
        (timedelta(days=7), "stale"),
    ],
)
def test_categorize_freshness(age, expected):
    assert categorize_freshness(T0, T0 + age) == expected


def test_freshness_without_observations():
    assert categorize_freshness(None, T0) == "stale"


def test_empty_project_inputs(project):
    report = ReadinessAssessor().assess(project, None, {}, None, {}, None)
    assert not report.readiness_for_verification.ready_for_verification
    assert report.data_quality_metrics.freshness == "stale"
    assert report.carbon_sequestration_estimate.methodology == "Conservative Estimate"
    assert report.temporal_alignment.recommendations == ["No temporal data to assess"]


def test_invalid_area(location, healthy_satellite):
    with pytest.raises(InvalidInputError):
        _assess(_project(location, 30, area_ha=0.0), healthy_satellite, {})


def test_invalid_range(location):
    project = ProjectMetadata(
        project_id="p",
        location=location,
        area_ha=1.0,
        monitoring_start=T0,
        monitoring_end=T0 - timedelta(days=1),
    )
    with pytest.raises(InvalidRangeError):
        ReadinessAssessor().assess(project, None, {}, None, {}, None)


def test_invalid_location():
    project = ProjectMetadata(
        project_id="p",
        location=Location(120.0, 0.0),
        area_ha=1.0,
        monitoring_start=T0,
        monitoring_end=T0,
    )
    with pytest.raises(InvalidInputError):
        ReadinessAssessor().assess(project, None, {}, None, {}, None)
