from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal

from mrvkit.core.errors import InvalidInputError, InvalidRangeError
from mrvkit.core.utils import days_between, to_utc

# Data transfer objects shared by every pipeline stage. Result records are
# frozen: a new run produces new instances and never edits an earlier one.

SampleQuality = Literal["high", "medium", "low"]
ReadingQuality = Literal["valid", "questionable", "bad"]
AnomalySeverity = Literal["low", "medium", "high"]
AnomalyType = Literal["outlier", "trend_break", "seasonal_deviation", "degradation"]
DataType = Literal["optical", "radar", "both"]
RecommendedAction = Literal["APPROVE", "REVIEW", "REJECT", "REQUEST_MORE_DATA"]
Freshness = Literal["real-time", "current", "recent", "stale"]


class RuleSeverity(str, Enum):
    """Severity attached to a validation rule."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    def as_failure(self) -> "RuleSeverity":
        """Fold onto the two levels a failure records (critical | warning)."""
        return RuleSeverity.WARNING if self is RuleSeverity.INFO else self

    def as_warning(self) -> "RuleSeverity":
        """Fold onto the two levels a warning records (warning | info)."""
        return RuleSeverity.WARNING if self is RuleSeverity.CRITICAL else self


@dataclass(frozen=True)
class Location:
    """WGS84 point."""

    latitude: float
    longitude: float

    def validate(self) -> "Location":
        if not -90.0 <= self.latitude <= 90.0:
            raise InvalidInputError(f"Latitude {self.latitude} outside [-90, 90]")
        if not -180.0 <= self.longitude <= 180.0:
            raise InvalidInputError(f"Longitude {self.longitude} outside [-180, 180]")
        return self


@dataclass(frozen=True)
class DateRange:
    """Closed time window; ``end`` must not precede ``start``."""

    start: datetime
    end: datetime

    @classmethod
    def from_values(cls, start, end) -> "DateRange":
        """Build a validated range from datetimes, dates or ISO strings."""
        rng = cls(to_utc(start), to_utc(end))
        if rng.end < rng.start:
            raise InvalidRangeError(
                f"Date range ends ({rng.end.isoformat()}) before it starts "
                f"({rng.start.isoformat()})"
            )
        return rng

    @property
    def days(self) -> float:
        return days_between(self.start, self.end)


# --- satellite -----------------------------------------------------------


@dataclass(frozen=True)
class VegetationIndexSample:
    timestamp: datetime
    value: float  # [-1, 1]
    confidence: float  # [0, 100]
    quality: SampleQuality
    pixel_count: int = 0


@dataclass(frozen=True)
class RadarSample:
    timestamp: datetime
    backscatter: float  # dB
    confidence: float
    quality: SampleQuality
    noise_floor: float | None = None


@dataclass(frozen=True)
class BiomassEstimate:
    estimated_biomass: float  # t/ha
    method: Literal["allometric", "lidar", "calibrated"]
    confidence: float
    last_updated: datetime | None = None


@dataclass(frozen=True)
class SatelliteDataQuality:
    overall_score: float
    cloud_cover: float
    completeness: float


@dataclass(frozen=True)
class SatelliteAnalysisResult:
    """One analysis run for a project location."""

    project_id: str
    location: Location
    analysis_date: datetime
    index_series: List[VegetationIndexSample]
    radar_series: List[RadarSample]
    biomass_estimate: BiomassEstimate
    vegetation_cover_change: float  # % vs. baseline
    degradation_flags: List[str]
    ecosystem_health_score: float  # 0..100
    data_quality: SatelliteDataQuality

    @property
    def has_data(self) -> bool:
        return bool(self.index_series or self.radar_series)


# --- sensors -------------------------------------------------------------


@dataclass
class SensorDevice:
    """Registry entry; ``status`` is maintained by connection events."""

    id: str
    type: str
    location: Location
    status: Literal["active", "inactive", "error"] = "active"
    name: str | None = None
    depth_m: float | None = None
    calibration_date: datetime | None = None


@dataclass(frozen=True)
class SensorReading:
    sensor_id: str
    timestamp: datetime
    value: float
    unit: str
    quality: ReadingQuality
    confidence: float


@dataclass(frozen=True)
class SensorStatistics:
    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0
    min: float = 0.0
    max: float = 0.0


@dataclass(frozen=True)
class AnomalyFlag:
    timestamp: datetime
    value: float
    severity: AnomalySeverity
    reason: str


@dataclass(frozen=True)
class AggregatedSensorData:
    sensor_id: str
    sensor_type: str
    location: Location
    period_start: datetime | None
    period_end: datetime | None
    reading_count: int
    statistics: SensorStatistics
    anomalies: List[AnomalyFlag]
    data_quality: float  # 0..100
    mean_confidence: float = 0.0
    quality_counts: Dict[str, int] = field(default_factory=dict)


# --- anomalies -----------------------------------------------------------


@dataclass(frozen=True)
class TimeSeriesPoint:
    timestamp: datetime
    value: float
    source: str = "sensor"
    sensor_id: str | None = None


@dataclass(frozen=True)
class AnomalyDetectionModel:
    """Detector selection; ``threshold``/``percentile`` override sensitivity."""

    type: Literal["isolation_forest", "arima", "zscore", "prophet"] = "isolation_forest"
    sensitivity: Literal["low", "medium", "high"] = "high"
    window_size: int = 7
    threshold: float | None = None
    percentile: float | None = None


@dataclass(frozen=True)
class DetectedAnomaly:
    timestamp: datetime
    value: float
    anomaly_score: float  # 0..1
    type: AnomalyType
    severity: AnomalySeverity
    explanation: str
    confidence: float  # 0..100
    suggested_action: str
    source: str | None = None
    supporting_sources: List[str] = field(default_factory=list)


# --- validation ----------------------------------------------------------


@dataclass(frozen=True)
class ValidationFailure:
    rule: str
    reason: str
    severity: RuleSeverity  # critical | warning
    value: object = None
    expected_value: object = None
    fix_applied: bool = False


@dataclass(frozen=True)
class ValidationWarning:
    rule: str
    message: str
    severity: RuleSeverity  # warning | info
    fix_applied: bool = False
    fixed_value: object = None


@dataclass(frozen=True)
class DataValidationResult:
    is_valid: bool
    data_source_id: str
    timestamp: datetime | None
    checks_performed: int
    checks_pass: int
    failures: List[ValidationFailure]
    warnings: List[ValidationWarning]
    quality_score: float
    suggestions: List[str]
    recommended_action: RecommendedAction


@dataclass(frozen=True)
class Discrepancy:
    source1: str
    source2: str
    metric: str
    value1: float
    value2: float
    percentage_difference: float
    severity: AnomalySeverity
    explanation: str


@dataclass(frozen=True)
class CrossSourceValidation:
    timestamp: datetime | None
    sources_validated: List[str]
    consistency_score: float
    discrepancies: List[Discrepancy]
    overall_valid: bool
    recommendations: List[str]


# --- readiness -----------------------------------------------------------


@dataclass(frozen=True)
class ProjectMetadata:
    """Project inputs owned by upstream collaborators."""

    project_id: str
    location: Location
    area_ha: float
    monitoring_start: datetime
    monitoring_end: datetime
    ecosystem: str = "mangrove"
    name: str | None = None

    @property
    def area_km2(self) -> float:
        return self.area_ha / 100.0


@dataclass(frozen=True)
class MonitoringPeriod:
    start_date: datetime
    end_date: datetime
    duration_days: int


@dataclass(frozen=True)
class DataGap:
    start: datetime
    end: datetime
    duration_days: float
    reason: str


@dataclass(frozen=True)
class TemporalAlignmentInfo:
    aligned: bool
    data_gaps: List[DataGap]
    coverage_percentage: float
    consistency_score: float
    recommendations: List[str]


@dataclass(frozen=True)
class SpatialGap:
    location: Location
    radius_km: float
    importance: Literal["critical", "high", "medium", "low"]
    recommendation: str


@dataclass(frozen=True)
class SpatialCoverageInfo:
    total_area_covered: float  # km2
    coverage_percentage: float
    sensor_density: float  # sensors per km2
    spatial_gaps: List[SpatialGap]
    recommendations: List[str]


@dataclass(frozen=True)
class BaselineComparison:
    baseline_rate: float
    current_rate: float
    percentage_change: float


@dataclass(frozen=True)
class CarbonSequestrationEstimate:
    total_sequestered: float  # t over the period
    annualized_rate: float  # t / year
    confidence: float
    methodology: str
    comparison_to_baseline: BaselineComparison


@dataclass(frozen=True)
class DataQualityMetrics:
    overall_score: float
    satellite_quality: float
    sensor_quality: float
    temporal_quality: float
    spatial_quality: float
    consistency_score: float
    completeness_score: float
    freshness: Freshness


@dataclass(frozen=True)
class ReadinessCriteria:
    sufficient_data_sources: bool
    temporal_coverage_adequate: bool
    quality_threshold_met: bool
    anomalies_resolved: bool
    cross_source_validated: bool

    def as_dict(self) -> Dict[str, bool]:
        return {
            "sufficient_data_sources": self.sufficient_data_sources,
            "temporal_coverage_adequate": self.temporal_coverage_adequate,
            "quality_threshold_met": self.quality_threshold_met,
            "anomalies_resolved": self.anomalies_resolved,
            "cross_source_validated": self.cross_source_validated,
        }


@dataclass(frozen=True)
class VerificationReadiness:
    ready_for_verification: bool
    readiness_score: float
    criteria_status: ReadinessCriteria
    estimated_verification_date: datetime | None
    blockers: List[str]
    next_steps: List[str]


@dataclass(frozen=True)
class Recommendation:
    priority: Literal["critical", "high", "medium", "low"]
    category: Literal[
        "data_collection",
        "quality_improvement",
        "anomaly_resolution",
        "timeline_adjustment",
    ]
    description: str
    estimated_impact: str
    time_to_implement: str


@dataclass(frozen=True)
class DataSourcesSummary:
    satellite: SatelliteAnalysisResult | None
    sensors: Dict[str, AggregatedSensorData]


@dataclass(frozen=True)
class AggregatedMonitoringData:
    """Hand-off record consumed by the issuance workflow."""

    project_id: str
    location: Location
    monitoring_period: MonitoringPeriod
    data_sources_summary: DataSourcesSummary
    temporal_alignment: TemporalAlignmentInfo
    spatial_coverage: SpatialCoverageInfo
    carbon_sequestration_estimate: CarbonSequestrationEstimate
    data_quality_metrics: DataQualityMetrics
    readiness_for_verification: VerificationReadiness
    recommendations: List[Recommendation]


__all__ = [
    "RuleSeverity",
    "Location",
    "DateRange",
    "VegetationIndexSample",
    "RadarSample",
    "BiomassEstimate",
    "SatelliteDataQuality",
    "SatelliteAnalysisResult",
    "SensorDevice",
    "SensorReading",
    "SensorStatistics",
    "AnomalyFlag",
    "AggregatedSensorData",
    "TimeSeriesPoint",
    "AnomalyDetectionModel",
    "DetectedAnomaly",
    "ValidationFailure",
    "ValidationWarning",
    "DataValidationResult",
    "Discrepancy",
    "CrossSourceValidation",
    "ProjectMetadata",
    "MonitoringPeriod",
    "DataGap",
    "TemporalAlignmentInfo",
    "SpatialGap",
    "SpatialCoverageInfo",
    "BaselineComparison",
    "CarbonSequestrationEstimate",
    "DataQualityMetrics",
    "ReadinessCriteria",
    "VerificationReadiness",
    "Recommendation",
    "DataSourcesSummary",
    "AggregatedMonitoringData",
]
