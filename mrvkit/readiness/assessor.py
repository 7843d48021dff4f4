"""
Module `readiness.assessor` joins the per-source results into the hand-off
record for credit issuance.

It measures temporal and spatial coverage, estimates carbon sequestration,
combines the quality metrics and decides whether the project is ready for
verification. Data-starved inputs never raise; they surface as blockers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

from mrvkit.core.config import from_section
from mrvkit.core.errors import InvalidInputError, InvalidRangeError
from mrvkit.core.utils import SECONDS_PER_DAY, clamp, mean, safe_div, to_utc
from mrvkit.schemas.monitoring import (
    AggregatedMonitoringData,
    AggregatedSensorData,
    BaselineComparison,
    CarbonSequestrationEstimate,
    CrossSourceValidation,
    DataGap,
    DataQualityMetrics,
    DataSourcesSummary,
    DataValidationResult,
    DetectedAnomaly,
    Freshness,
    Location,
    MonitoringPeriod,
    ProjectMetadata,
    ReadinessCriteria,
    Recommendation,
    SatelliteAnalysisResult,
    SpatialCoverageInfo,
    SpatialGap,
    TemporalAlignmentInfo,
    VerificationReadiness,
)
from mrvkit.services.base import BaseService

GRID_SIDE = 5
GRID_CELLS = GRID_SIDE * GRID_SIDE
MAX_SPATIAL_GAPS = 3
KM_PER_DEGREE = 111.32

READY_STEP = "→ Ready for verification"


@dataclass
class ReadinessConfig:
    """Thresholds and defaults for the readiness assessment."""

    gap_days: float = 7.0
    min_coverage_pct: float = 80.0
    min_consistency: float = 80.0
    source_misalignment_penalty: float = 10.0
    baseline_annual_rate: float = 3.5
    carbon_fraction: float = 0.5
    default_confidence: float = 70.0
    spatial_quality_placeholder: float = 75.0
    quality_threshold: float = 70.0
    cross_source_threshold: float = 70.0

    @classmethod
    def from_yaml(cls, path: str | Path | None = None) -> "ReadinessConfig":
        return from_section(cls, path, "readiness")


def _days(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_DAY


def _source_timestamps(
    satellite: SatelliteAnalysisResult | None,
    sensors: Mapping[str, AggregatedSensorData],
) -> Dict[str, List[datetime]]:
    by_source: Dict[str, List[datetime]] = {}
    if satellite is not None and satellite.has_data:
        by_source["satellite"] = sorted(
            [to_utc(s.timestamp) for s in satellite.index_series]
            + [to_utc(s.timestamp) for s in satellite.radar_series]
        )
    for sensor_id, sensor in sensors.items():
        window = [to_utc(t) for t in (sensor.period_start, sensor.period_end) if t]
        if window:
            by_source[sensor_id] = window
    return by_source


def assess_temporal_alignment(
    satellite: SatelliteAnalysisResult | None,
    sensors: Mapping[str, AggregatedSensorData],
    monitoring_start: datetime,
    monitoring_end: datetime,
    config: ReadinessConfig | None = None,
) -> TemporalAlignmentInfo:
    """Find gaps in the combined timeline and score source synchronisation."""
    cfg = config or ReadinessConfig()
    by_source = _source_timestamps(satellite, sensors)
    timestamps = sorted(t for ts in by_source.values() for t in ts)
    if not timestamps:
        return TemporalAlignmentInfo(
            aligned=False,
            data_gaps=[],
            coverage_percentage=0.0,
            consistency_score=0.0,
            recommendations=["No temporal data to assess"],
        )

    gaps: List[DataGap] = []
    for prev, nxt in zip(timestamps, timestamps[1:]):
        gap = _days(prev, nxt)
        if gap > cfg.gap_days:
            gaps.append(
                DataGap(
                    start=prev,
                    end=nxt,
                    duration_days=gap,
                    reason="Insufficient data points for continuous monitoring",
                )
            )

    total_days = _days(to_utc(monitoring_start), to_utc(monitoring_end))
    gap_days = sum(g.duration_days for g in gaps)
    coverage = clamp(100.0 - safe_div(gap_days, total_days) * 100.0)

    consistency = 100.0
    latest = [max(ts) for ts in by_source.values()]
    for i, first in enumerate(latest):
        for second in latest[i + 1 :]:
            if abs(_days(first, second)) > cfg.gap_days:
                consistency -= cfg.source_misalignment_penalty
    consistency = clamp(consistency)

    recommendations = []
    if gaps:
        recommendations.append(
            f"{len(gaps)} data gaps detected - ensure continuous monitoring"
        )
    if coverage < cfg.min_coverage_pct:
        recommendations.append(
            "Monitoring coverage below 80% - extend collection period"
        )
    if consistency < 70:
        recommendations.append(
            "Source temporal misalignment detected - "
            "synchronize data collection schedules"
        )

    return TemporalAlignmentInfo(
        aligned=(
            not gaps
            and coverage >= cfg.min_coverage_pct
            and consistency >= cfg.min_consistency
        ),
        data_gaps=gaps,
        coverage_percentage=round(coverage, 2),
        consistency_score=consistency,
        recommendations=recommendations,
    )


def _grid_cell_center(origin: Location, row: int, col: int, cell_km: float) -> Location:
    north_km = (GRID_SIDE // 2 - row) * cell_km
    east_km = (col - GRID_SIDE // 2) * cell_km
    lat = origin.latitude + north_km / KM_PER_DEGREE
    lon_scale = KM_PER_DEGREE * max(math.cos(math.radians(origin.latitude)), 1e-6)
    lon = origin.longitude + east_km / lon_scale
    return Location(
        latitude=max(-90.0, min(90.0, lat)),
        longitude=max(-180.0, min(180.0, lon)),
    )


def assess_spatial_coverage(
    project: ProjectMetadata,
    sensor_locations: Sequence[Location],
    satellite_available: bool,
) -> SpatialCoverageInfo:
    """Estimate coverage from the sensor count and satellite availability.

    The project is laid out as a 5x5 grid centred on its location. Each
    sensor is credited with 1.5 cells; when more than five cells remain
    uncovered, up to three of them are reported as gaps.
    """
    area_km2 = project.area_km2
    count = len(sensor_locations)
    coverage = min(100.0, count * 5.0 + (40.0 if satellite_available else 0.0))

    covered_cells = min(GRID_CELLS, math.ceil(count * 1.5))
    uncovered = GRID_CELLS - covered_cells
    cell_km = math.sqrt(area_km2) / GRID_SIDE
    gaps: List[SpatialGap] = []
    if uncovered > 5:
        for i, cell in enumerate(range(covered_cells, GRID_CELLS)):
            if i >= MAX_SPATIAL_GAPS:
                break
            row, col = divmod(cell, GRID_SIDE)
            gaps.append(
                SpatialGap(
                    location=_grid_cell_center(project.location, row, col, cell_km),
                    radius_km=cell_km / 2.0,
                    importance="critical" if i == 0 else "high",
                    recommendation=(
                        f"Deploy additional sensor at grid position "
                        f"({row + 1}, {col + 1})"
                    ),
                )
            )

    recommendations = []
    if coverage < 60:
        recommendations.append(
            "Spatial coverage critically low - deploy additional sensors"
        )
    elif coverage < 80:
        recommendations.append(
            "Spatial coverage gaps detected - consider drone surveys for unmapped areas"
        )
    if not satellite_available:
        recommendations.append(
            "Satellite imagery unavailable - prioritize drone surveys"
        )

    return SpatialCoverageInfo(
        total_area_covered=area_km2,
        coverage_percentage=coverage,
        sensor_density=round(count / area_km2, 3),
        spatial_gaps=gaps,
        recommendations=recommendations,
    )


def calculate_carbon_sequestration(
    satellite: SatelliteAnalysisResult | None,
    period_days: float,
    area_ha: float,
    config: ReadinessConfig | None = None,
) -> CarbonSequestrationEstimate:
    """Sequestration over the period from the biomass estimate.

    The biomass estimate comes from the index series, so without index
    samples (no satellite, or radar only) the conservative baseline rate
    applies. Periods shorter than one day are treated as one day.
    """
    cfg = config or ReadinessConfig()
    days = max(1.0, period_days)
    rate = cfg.baseline_annual_rate
    confidence = cfg.default_confidence
    methodology = "Conservative Estimate"
    if satellite is not None and satellite.index_series:
        carbon = satellite.biomass_estimate.estimated_biomass * cfg.carbon_fraction
        rate = carbon / area_ha * (365.0 / days)
        confidence = satellite.biomass_estimate.confidence
        methodology = "Satellite + Allometric Equations"

    annual = rate * area_ha
    return CarbonSequestrationEstimate(
        total_sequestered=round(annual / 365.0 * days, 2),
        annualized_rate=round(annual, 2),
        confidence=clamp(round(confidence)),
        methodology=methodology,
        comparison_to_baseline=BaselineComparison(
            baseline_rate=cfg.baseline_annual_rate,
            current_rate=round(rate, 2),
            percentage_change=round(
                (safe_div(rate, cfg.baseline_annual_rate) - 1.0) * 100.0, 1
            ),
        ),
    )


def categorize_freshness(newest: datetime | None, as_of: datetime) -> Freshness:
    """Bucket the age of the newest observation."""
    if newest is None:
        return "stale"
    age = to_utc(as_of) - to_utc(newest)
    if age < timedelta(hours=1):
        return "real-time"
    if age < timedelta(hours=24):
        return "current"
    if age < timedelta(days=7):
        return "recent"
    return "stale"


def calculate_data_quality_metrics(
    satellite_validation: DataValidationResult | None,
    sensor_validations: Mapping[str, DataValidationResult],
    cross_source: CrossSourceValidation | None,
    temporal: TemporalAlignmentInfo,
    *,
    newest_observation: datetime | None = None,
    as_of: datetime | None = None,
    config: ReadinessConfig | None = None,
) -> DataQualityMetrics:
    cfg = config or ReadinessConfig()
    satellite_quality = satellite_validation.quality_score if satellite_validation else 0.0
    sensor_quality = mean(v.quality_score for v in sensor_validations.values())
    temporal_quality = temporal.coverage_percentage
    spatial_quality = cfg.spatial_quality_placeholder
    overall = mean([satellite_quality, sensor_quality, temporal_quality, spatial_quality])
    reference = as_of or newest_observation
    return DataQualityMetrics(
        overall_score=round(clamp(overall), 2),
        satellite_quality=clamp(satellite_quality),
        sensor_quality=round(clamp(sensor_quality), 2),
        temporal_quality=clamp(temporal_quality),
        spatial_quality=clamp(spatial_quality),
        consistency_score=cross_source.consistency_score if cross_source else 0.0,
        completeness_score=clamp(temporal.coverage_percentage),
        freshness=(
            categorize_freshness(newest_observation, reference)
            if reference
            else "stale"
        ),
    )


def assess_verification_readiness(
    quality: DataQualityMetrics,
    temporal: TemporalAlignmentInfo,
    anomalies: Sequence[DetectedAnomaly],
    *,
    has_satellite_data: bool,
    has_sensor_data: bool,
    as_of: datetime,
    config: ReadinessConfig | None = None,
) -> VerificationReadiness:
    """Evaluate the five readiness criteria into a verdict."""
    cfg = config or ReadinessConfig()
    criteria = ReadinessCriteria(
        sufficient_data_sources=has_satellite_data and has_sensor_data,
        temporal_coverage_adequate=(
            temporal.coverage_percentage >= cfg.min_coverage_pct and temporal.aligned
        ),
        quality_threshold_met=quality.overall_score >= cfg.quality_threshold,
        anomalies_resolved=not any(a.severity == "high" for a in anomalies),
        cross_source_validated=quality.consistency_score >= cfg.cross_source_threshold,
    )
    status = criteria.as_dict()
    score = sum(status.values()) / len(status) * 100.0

    messages = {
        "sufficient_data_sources": (
            "Insufficient data sources - need satellite AND sensor data",
            "✓ Multi-source data collected",
        ),
        "temporal_coverage_adequate": (
            "Temporal coverage inadequate - extend monitoring period",
            "✓ Temporal coverage sufficient",
        ),
        "quality_threshold_met": (
            f"Data quality below {cfg.quality_threshold:.0f}% threshold",
            "✓ Data quality meets standard",
        ),
        "anomalies_resolved": (
            "Critical anomalies unresolved - investigate flagged data points",
            "✓ Anomalies resolved",
        ),
        "cross_source_validated": (
            "Cross-source consistency low - manual review required",
            "✓ Cross-source validated",
        ),
    }
    blockers = [messages[name][0] for name, ok in status.items() if not ok]
    next_steps = [messages[name][1] for name, ok in status.items() if ok]
    ready = not blockers
    if ready:
        next_steps.append(READY_STEP)

    return VerificationReadiness(
        ready_for_verification=ready,
        readiness_score=score,
        criteria_status=criteria,
        estimated_verification_date=to_utc(as_of) + timedelta(days=1) if ready else None,
        blockers=blockers,
        next_steps=next_steps,
    )


def generate_recommendations(
    quality: DataQualityMetrics,
    temporal: TemporalAlignmentInfo,
    spatial: SpatialCoverageInfo,
    readiness: VerificationReadiness,
) -> List[Recommendation]:
    recommendations = []
    if quality.overall_score < 80:
        recommendations.append(
            Recommendation(
                priority="high",
                category="quality_improvement",
                description=(
                    "Improve satellite imagery quality by reducing cloud cover "
                    "through additional acquisitions"
                ),
                estimated_impact="Could improve quality score by 10-15 points",
                time_to_implement="2-3 weeks",
            )
        )
    if temporal.coverage_percentage < 90:
        recommendations.append(
            Recommendation(
                priority="high",
                category="data_collection",
                description="Fill identified temporal gaps with drone surveys",
                estimated_impact="Increase coverage to 95%+",
                time_to_implement="1-2 weeks",
            )
        )
    if spatial.coverage_percentage < 85:
        recommendations.append(
            Recommendation(
                priority="medium",
                category="data_collection",
                description="Deploy additional sensors in identified spatial gaps",
                estimated_impact="Improve spatial coverage by 10 points",
                time_to_implement="3-4 weeks",
            )
        )
    if not readiness.ready_for_verification:
        recommendations.append(
            Recommendation(
                priority="critical",
                category="anomaly_resolution",
                description=(
                    readiness.blockers[0]
                    if readiness.blockers
                    else "Address verification readiness blockers"
                ),
                estimated_impact="Enable verification",
                time_to_implement="Varies by blocker",
            )
        )
    return recommendations


def _validate_project(project: ProjectMetadata) -> None:
    project.location.validate()
    if not project.area_ha > 0:
        raise InvalidInputError(f"Project area must be positive, got {project.area_ha}")
    if to_utc(project.monitoring_end) < to_utc(project.monitoring_start):
        raise InvalidRangeError("Monitoring period ends before it starts")


class ReadinessAssessor(BaseService):
    """Produce :class:`AggregatedMonitoringData` for one project."""

    def __init__(self, config: ReadinessConfig | None = None, logger=None) -> None:
        super().__init__(logger)
        self.config = config or ReadinessConfig()

    def assess(
        self,
        project: ProjectMetadata,
        satellite: SatelliteAnalysisResult | None,
        sensors: Mapping[str, AggregatedSensorData],
        satellite_validation: DataValidationResult | None,
        sensor_validations: Mapping[str, DataValidationResult],
        cross_source: CrossSourceValidation | None,
        anomalies: Sequence[DetectedAnomaly] = (),
        *,
        as_of: datetime | None = None,
    ) -> AggregatedMonitoringData:
        """Assess readiness; ``as_of`` defaults to the end of monitoring."""
        _validate_project(project)
        cfg = self.config
        start = to_utc(project.monitoring_start)
        end = to_utc(project.monitoring_end)
        as_of = to_utc(as_of) if as_of else end
        period_days = _days(start, end)
        period = MonitoringPeriod(start, end, int(math.floor(period_days)))

        temporal = assess_temporal_alignment(satellite, sensors, start, end, cfg)
        has_satellite = satellite is not None and satellite.has_data
        active = [s for s in sensors.values() if s.reading_count > 0]
        spatial = assess_spatial_coverage(
            project, [s.location for s in sensors.values()], has_satellite
        )
        carbon = calculate_carbon_sequestration(
            satellite, period_days, project.area_ha, cfg
        )
        timeline = _source_timestamps(satellite, sensors)
        newest = max((max(ts) for ts in timeline.values()), default=None)
        quality = calculate_data_quality_metrics(
            satellite_validation,
            sensor_validations,
            cross_source,
            temporal,
            newest_observation=newest,
            as_of=as_of,
            config=cfg,
        )
        readiness = assess_verification_readiness(
            quality,
            temporal,
            anomalies,
            has_satellite_data=has_satellite,
            has_sensor_data=bool(active),
            as_of=as_of,
            config=cfg,
        )
        recommendations = generate_recommendations(quality, temporal, spatial, readiness)

        if readiness.ready_for_verification:
            self.logger.info("Project %s is ready for verification", project.project_id)
        else:
            self.logger.info(
                "Project %s not ready (%.0f%%): %s",
                project.project_id,
                readiness.readiness_score,
                "; ".join(readiness.blockers),
            )

        return AggregatedMonitoringData(
            project_id=project.project_id,
            location=project.location,
            monitoring_period=period,
            data_sources_summary=DataSourcesSummary(satellite, dict(sensors)),
            temporal_alignment=temporal,
            spatial_coverage=spatial,
            carbon_sequestration_estimate=carbon,
            data_quality_metrics=quality,
            readiness_for_verification=readiness,
            recommendations=recommendations,
        )


def assess_readiness(
    project: ProjectMetadata,
    satellite: SatelliteAnalysisResult | None,
    sensors: Mapping[str, AggregatedSensorData],
    satellite_validation: DataValidationResult | None,
    sensor_validations: Mapping[str, DataValidationResult],
    cross_source: CrossSourceValidation | None,
    anomalies: Sequence[DetectedAnomaly] = (),
    *,
    as_of: datetime | None = None,
    config: ReadinessConfig | None = None,
) -> AggregatedMonitoringData:
    """Functional entry point around :class:`ReadinessAssessor`."""
    return ReadinessAssessor(config).assess(
        project,
        satellite,
        sensors,
        satellite_validation,
        sensor_validations,
        cross_source,
        anomalies,
        as_of=as_of,
    )
