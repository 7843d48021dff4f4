"""Service running the full monitoring pipeline for one project."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple

from mrvkit.analytics.anomaly import AnomalyDetector
from mrvkit.analytics.satellite import AnalyzerConfig, SatelliteAnalyzer
from mrvkit.analytics.sensors import SensorAggregator
from mrvkit.core.cache import ResultCache
from mrvkit.core.config import ConfigManager
from mrvkit.core.logger import Logger
from mrvkit.core.utils import to_utc
from mrvkit.ingestion.providers import SatelliteDataProvider, SeasonalBaselineProvider
from mrvkit.readiness.assessor import ReadinessAssessor, ReadinessConfig
from mrvkit.schemas.monitoring import (
    AggregatedMonitoringData,
    AnomalyDetectionModel,
    DateRange,
    DetectedAnomaly,
    ProjectMetadata,
    SatelliteAnalysisResult,
    SensorDevice,
    SensorReading,
    TimeSeriesPoint,
)
from mrvkit.validation.cross_source import CrossSourceConfig
from mrvkit.validation.pipeline import (
    MultiSourceValidation,
    ValidationConfig,
    validate_multi_source,
)

SensorBatch = Tuple[SensorDevice, Sequence[SensorReading]]


@dataclass(frozen=True)
class MonitoringPipelineResult:
    """Readiness report plus the intermediate evidence behind it."""

    report: AggregatedMonitoringData
    validation: MultiSourceValidation
    anomalies_by_source: Dict[str, List[DetectedAnomaly]]
    corroborated_anomalies: List[DetectedAnomaly]


def _satellite_points(result: SatelliteAnalysisResult) -> List[TimeSeriesPoint]:
    return [
        TimeSeriesPoint(s.timestamp, s.value, source="satellite")
        for s in result.index_series
    ]


def _sensor_points(
    sensor_id: str, readings: Sequence[SensorReading]
) -> List[TimeSeriesPoint]:
    return [
        TimeSeriesPoint(to_utc(r.timestamp), r.value, source=sensor_id, sensor_id=sensor_id)
        for r in readings
    ]


def run_monitoring_pipeline(
    project: ProjectMetadata,
    sensor_batches: Iterable[SensorBatch] = (),
    *,
    provider: SatelliteDataProvider | None = None,
    historical: SatelliteAnalysisResult | None = None,
    settings: ConfigManager | None = None,
    cache: ResultCache | None = None,
    as_of: datetime | None = None,
    logger: logging.Logger | None = None,
) -> MonitoringPipelineResult:
    """Run analysis, aggregation, anomaly detection, validation and readiness.

    Parameters
    ----------
    project:
        Project metadata; its monitoring window bounds the satellite analysis.
    sensor_batches:
        ``(device, readings)`` pairs, one per sensor.
    provider:
        Satellite observation source. Defaults to a
        :class:`SeasonalBaselineProvider` for the project's ecosystem.
    historical:
        Optional earlier analysis used as the vegetation baseline.
    settings:
        Pipeline settings; ``thresholds_path`` points at the threshold tables.
    as_of:
        Reference time for data age. Defaults to the end of monitoring.

    Returns
    -------
    MonitoringPipelineResult
    """
    log = logger or Logger.get_logger(__name__)
    tag = {"project_id": project.project_id}
    settings = settings or ConfigManager()
    thresholds = settings.get("thresholds_path")
    as_of = to_utc(as_of) if as_of else to_utc(project.monitoring_end)

    window = DateRange.from_values(project.monitoring_start, project.monitoring_end)
    provider = provider or SeasonalBaselineProvider(project.ecosystem, logger=log)
    analyzer = SatelliteAnalyzer(
        provider,
        cache=cache,
        config=AnalyzerConfig.from_yaml(thresholds),
        logger=log,
    )
    log.info("Analyzing satellite data for %s", project.project_id, extra=tag)
    satellite = analyzer.analyze(
        project.location,
        window,
        settings.get("data_type"),
        project_id=project.project_id,
        historical=historical,
    )

    aggregator = SensorAggregator(logger=log)
    sensors = {}
    series_by_source = {"satellite": _satellite_points(satellite)}
    for device, readings in sensor_batches:
        sensors[device.id] = aggregator.aggregate(
            device.id, readings, device.location, device.type
        )
        series_by_source[device.id] = _sensor_points(device.id, readings)
    log.info("Aggregated %d sensors", len(sensors), extra=tag)

    model = AnomalyDetectionModel(
        type=settings.get("anomaly_model"),
        sensitivity=settings.get("anomaly_sensitivity"),
        window_size=int(settings.get("anomaly_window")),
    )
    detector = AnomalyDetector(logger=log)
    anomalies_by_source = {
        source: detector.detect(points, model)
        for source, points in series_by_source.items()
    }
    corroborated = detector.corroborate(
        anomalies_by_source, float(settings.get("corroboration_threshold"))
    )

    validation = validate_multi_source(
        satellite,
        sensors,
        anomalies=corroborated,
        as_of=as_of,
        config=ValidationConfig.from_yaml(thresholds),
        cross_source_config=CrossSourceConfig.from_yaml(thresholds),
    )
    log.info(
        "Multi-source validation: %s", validation.overall_action, extra=tag
    )

    assessor = ReadinessAssessor(ReadinessConfig.from_yaml(thresholds), logger=log)
    report = assessor.assess(
        project,
        satellite,
        sensors,
        validation.satellite,
        validation.sensors,
        validation.cross_source,
        corroborated,
        as_of=as_of,
    )
    return MonitoringPipelineResult(
        report=report,
        validation=validation,
        anomalies_by_source=anomalies_by_source,
        corroborated_anomalies=corroborated,
    )
