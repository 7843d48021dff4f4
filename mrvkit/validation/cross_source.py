"""Consistency scoring between satellite and sensor evidence."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping

from mrvkit.core.config import from_section
from mrvkit.core.utils import SECONDS_PER_DAY, clamp, to_utc
from mrvkit.schemas.monitoring import (
    AggregatedSensorData,
    CrossSourceValidation,
    Discrepancy,
    SatelliteAnalysisResult,
)
from mrvkit.services.base import BaseService


@dataclass
class CrossSourceConfig:
    """Thresholds for :class:`CrossSourceValidator`.

    ``sensor_scale_factor`` maps a sensor mean onto the 0-100 health basis.
    It is an uncalibrated approximation and should be tuned per deployment.
    """

    health_threshold: float = 70.0
    sensor_mean_threshold: float = 5.0
    sensor_scale_factor: float = 20.0
    health_penalty: float = 15.0
    alignment_days: float = 7.0
    alignment_penalty: float = 5.0
    min_consistency: float = 70.0

    @classmethod
    def from_yaml(cls, path: str | Path | None = None) -> "CrossSourceConfig":
        return from_section(cls, path, "cross_source")


class CrossSourceValidator(BaseService):
    """Score how well satellite and sensor signals corroborate each other."""

    def __init__(self, config: CrossSourceConfig | None = None, logger=None) -> None:
        super().__init__(logger)
        self.config = config or CrossSourceConfig()

    def _health_discrepancy(
        self, satellite: SatelliteAnalysisResult, sensor_id: str, sensor
    ) -> Discrepancy | None:
        cfg = self.config
        health = satellite.ecosystem_health_score
        mean_value = sensor.statistics.mean
        if not (health > cfg.health_threshold and mean_value < cfg.sensor_mean_threshold):
            return None
        proxy = mean_value * cfg.sensor_scale_factor
        return Discrepancy(
            source1="satellite",
            source2=sensor_id,
            metric="ecosystem_health",
            value1=health,
            value2=proxy,
            percentage_difference=abs(health - proxy) / max(1.0, health) * 100.0,
            severity="medium",
            explanation=(
                "Satellite health indicators conflict with sensor measurements "
                "- recommend field validation"
            ),
        )

    def _alignment_discrepancy(
        self, satellite: SatelliteAnalysisResult, sensor_id: str, sensor
    ) -> Discrepancy | None:
        if sensor.period_end is None:
            return None
        satellite_date = to_utc(satellite.analysis_date)
        sensor_date = to_utc(sensor.period_end)
        days_apart = abs((satellite_date - sensor_date).total_seconds()) / SECONDS_PER_DAY
        if days_apart <= self.config.alignment_days:
            return None
        return Discrepancy(
            source1="satellite",
            source2=sensor_id,
            metric="temporal_alignment",
            value1=satellite_date.timestamp(),
            value2=sensor_date.timestamp(),
            percentage_difference=days_apart / 30.0 * 100.0,
            severity="low",
            explanation=(
                f"Data sources {days_apart:.0f} days apart - temporal misalignment"
            ),
        )

    def compare(
        self,
        satellite: SatelliteAnalysisResult,
        sensors: Mapping[str, AggregatedSensorData],
    ) -> CrossSourceValidation:
        cfg = self.config
        discrepancies: List[Discrepancy] = []
        score = 100.0
        for sensor_id, sensor in sensors.items():
            found = self._health_discrepancy(satellite, sensor_id, sensor)
            if found:
                discrepancies.append(found)
                score -= cfg.health_penalty
            found = self._alignment_discrepancy(satellite, sensor_id, sensor)
            if found:
                discrepancies.append(found)
                score -= cfg.alignment_penalty
        score = clamp(score)

        recommendations: List[str] = []
        if not sensors:
            recommendations.append(
                "No sensor data available - cross-source consistency not established"
            )
        if discrepancies:
            recommendations.append(
                "Cross-source discrepancies detected - manual review recommended"
            )
        if score < cfg.min_consistency:
            recommendations.append(
                "Low cross-source consistency - request additional validation data"
            )
        elif score >= 85 and sensors:
            recommendations.append(
                "High consistency across sources - ready for verification"
            )

        overall_valid = score >= cfg.min_consistency and not any(
            d.severity == "high" for d in discrepancies
        )
        self.logger.info(
            "Cross-source consistency %.0f over %d sensors (%d discrepancies)",
            score,
            len(sensors),
            len(discrepancies),
        )
        return CrossSourceValidation(
            timestamp=to_utc(satellite.analysis_date),
            sources_validated=["satellite", *sensors.keys()],
            consistency_score=score,
            discrepancies=discrepancies,
            overall_valid=overall_valid,
            recommendations=recommendations,
        )


def cross_validate(
    satellite: SatelliteAnalysisResult,
    sensors: Mapping[str, AggregatedSensorData],
    config: CrossSourceConfig | None = None,
) -> CrossSourceValidation:
    """Functional entry point around :class:`CrossSourceValidator`."""
    return CrossSourceValidator(config).compare(satellite, sensors)
