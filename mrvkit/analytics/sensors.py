"""Sensor stream aggregation: summary statistics, quality and anomaly flags."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Sequence

import pandas as pd

from mrvkit.core.errors import UnknownSensorTypeError
from mrvkit.core.utils import clamp, to_utc
from mrvkit.schemas.monitoring import (
    AggregatedSensorData,
    AnomalyFlag,
    Location,
    SensorReading,
    SensorStatistics,
)
from mrvkit.services.base import BaseService

# Share of "valid" readings is derated to account for possible sensor drift.
DRIFT_DERATING = 0.95


@dataclass(frozen=True)
class SensorRange:
    """Expected operating range and jump threshold for a sensor type."""

    min: float
    max: float
    std_dev_threshold: float


PLAUSIBLE_RANGES: Dict[str, SensorRange] = {
    "dissolved_oxygen": SensorRange(3.0, 10.0, 2.0),
    "temperature": SensorRange(0.0, 40.0, 5.0),
    "salinity": SensorRange(0.0, 40.0, 3.0),
    "water_quality": SensorRange(6.5, 8.5, 0.5),
    "co2_flux": SensorRange(0.0, 200.0, 50.0),
}

# Hard limits for a single reading to be physically believable.
READING_LIMITS: Dict[str, tuple[float, float]] = {
    "dissolved_oxygen": (1.0, 15.0),
    "temperature": (-5.0, 50.0),
    "salinity": (0.0, 45.0),
    "water_quality": (4.0, 10.0),
    "co2_flux": (-100.0, 300.0),
}

SENSOR_TYPE_ALIASES = {"ph": "water_quality", "do": "dissolved_oxygen"}


def resolve_sensor_type(sensor_type: str) -> str:
    """Return the canonical sensor type or raise :class:`UnknownSensorTypeError`."""
    key = (sensor_type or "").strip().lower()
    key = SENSOR_TYPE_ALIASES.get(key, key)
    if key not in PLAUSIBLE_RANGES:
        raise UnknownSensorTypeError(sensor_type, list(PLAUSIBLE_RANGES))
    return key


def _ordered(readings: Sequence[SensorReading]) -> List[SensorReading]:
    return sorted(readings, key=lambda r: to_utc(r.timestamp))


def detect_reading_anomalies(
    readings: Sequence[SensorReading], sensor_type: str
) -> List[AnomalyFlag]:
    """Flag out-of-range values, statistical outliers and sudden jumps."""
    rng = PLAUSIBLE_RANGES[resolve_sensor_type(sensor_type)]
    readings = _ordered(readings)
    if len(readings) < 2:
        return []

    values = pd.Series([r.value for r in readings], dtype=float)
    mean_val = float(values.mean())
    std_val = float(values.std(ddof=0))
    outlier_factor = max(rng.std_dev_threshold, 3.0)

    flags: List[AnomalyFlag] = []
    for i, reading in enumerate(readings):
        ts = to_utc(reading.timestamp)
        deviation = abs(reading.value - mean_val)
        if reading.value < rng.min or reading.value > rng.max:
            flags.append(
                AnomalyFlag(
                    ts,
                    reading.value,
                    "high",
                    f"Value {reading.value} outside normal range [{rng.min}, {rng.max}]",
                )
            )
        elif std_val > 0 and deviation > outlier_factor * std_val:
            flags.append(
                AnomalyFlag(
                    ts,
                    reading.value,
                    "high",
                    f"Statistical outlier: {deviation / std_val:.2f} "
                    "standard deviations from mean",
                )
            )

        if i > 0:
            previous = readings[i - 1].value
            if abs(reading.value - previous) > rng.std_dev_threshold:
                flags.append(
                    AnomalyFlag(
                        ts,
                        reading.value,
                        "medium",
                        f"Sudden jump from {previous} to {reading.value}",
                    )
                )
    return flags


def validate_sensor_reading(reading: SensorReading, sensor_type: str) -> bool:
    """True when a single reading is physically plausible and confident."""
    try:
        key = resolve_sensor_type(sensor_type)
    except UnknownSensorTypeError:
        return False
    low, high = READING_LIMITS[key]
    return low <= reading.value <= high and reading.confidence > 50


def calculate_data_freshness(
    last_reading: datetime, now: datetime | None = None
) -> float:
    """Freshness score (0-100) from the age of the latest reading."""
    now = to_utc(now) if now else datetime.now(timezone.utc)
    minutes_old = (now - to_utc(last_reading)).total_seconds() / 60.0
    if minutes_old < 60:
        return 100.0
    if minutes_old < 240:
        return 80.0
    if minutes_old < 1440:
        return 50.0
    return clamp(50.0 - (minutes_old - 1440.0) / 100.0)


class SensorAggregator(BaseService):
    """Summarize a batch of readings from one device."""

    def aggregate(
        self,
        sensor_id: str,
        readings: Sequence[SensorReading],
        location: Location,
        sensor_type: str,
    ) -> AggregatedSensorData:
        sensor_type = resolve_sensor_type(sensor_type)
        if not readings:
            self.logger.warning("No readings for sensor %s", sensor_id)
            return AggregatedSensorData(
                sensor_id=sensor_id,
                sensor_type=sensor_type,
                location=location,
                period_start=None,
                period_end=None,
                reading_count=0,
                statistics=SensorStatistics(),
                anomalies=[],
                data_quality=0.0,
            )

        ordered = _ordered(readings)
        df = pd.DataFrame(
            {
                "timestamp": [to_utc(r.timestamp) for r in ordered],
                "value": [float(r.value) for r in ordered],
                "quality": [r.quality for r in ordered],
                "confidence": [float(r.confidence) for r in ordered],
            }
        )
        values = df["value"]
        stats = SensorStatistics(
            mean=float(values.mean()),
            median=float(values.median()),
            std_dev=float(values.std(ddof=0)),
            min=float(values.min()),
            max=float(values.max()),
        )
        counts = {str(k): int(v) for k, v in df["quality"].value_counts().items()}
        valid_share = counts.get("valid", 0) / len(df)
        anomalies = detect_reading_anomalies(ordered, sensor_type)
        if anomalies:
            self.logger.debug(
                "Sensor %s: %d anomaly flags over %d readings",
                sensor_id,
                len(anomalies),
                len(df),
            )

        return AggregatedSensorData(
            sensor_id=sensor_id,
            sensor_type=sensor_type,
            location=location,
            period_start=to_utc(ordered[0].timestamp),
            period_end=to_utc(ordered[-1].timestamp),
            reading_count=len(df),
            statistics=stats,
            anomalies=anomalies,
            data_quality=clamp(valid_share * 100.0 * DRIFT_DERATING),
            mean_confidence=clamp(float(df["confidence"].mean())),
            quality_counts=counts,
        )


def aggregate_sensor(
    sensor_id: str,
    readings: Sequence[SensorReading],
    location: Location,
    sensor_type: str,
) -> AggregatedSensorData:
    """Functional entry point around :class:`SensorAggregator`."""
    return SensorAggregator().aggregate(sensor_id, readings, location, sensor_type)
