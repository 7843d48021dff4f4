"""
Module `analytics.anomaly` flags anomalous points in a numeric time series.

Four interchangeable detectors are selected through
:class:`~mrvkit.schemas.monitoring.AnomalyDetectionModel`:

* ``zscore`` - leave-one-out z-score against a sensitivity threshold.
* ``isolation_forest`` - percentile band plus relative jumps.
* ``prophet`` - moving-average trend break between adjacent windows.
* ``arima`` - trend break combined with a seasonal comparison.

Merged results are ordered by descending anomaly score and deduplicated by
``(timestamp, type)``.
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Callable, Dict, List, Mapping, Sequence

import numpy as np

from mrvkit.core.errors import InvalidInputError
from mrvkit.core.utils import EPSILON, clamp, mean, to_utc
from mrvkit.schemas.monitoring import (
    AnomalyDetectionModel,
    DetectedAnomaly,
    TimeSeriesPoint,
)
from mrvkit.services.base import BaseService

ZSCORE_THRESHOLDS = {"high": 2.5, "medium": 3.0, "low": 3.5}
PERCENTILES = {"high": 3.0, "medium": 5.0, "low": 7.0}
DEFAULT_PERCENTILE = 5.0

# Guard added to a reference value before dividing by its magnitude.
RELATIVE_GUARD = 0.001

MIN_ZSCORE_POINTS = 3
MIN_PERCENTILE_POINTS = 10
JUMP_THRESHOLD = 0.5
TREND_CHANGE_PCT = 20.0
DEGRADATION_PCT = -15.0
SEASONAL_DEVIATION = 0.3

CORROBORATION_WINDOW_S = 3600.0
CORROBORATION_VALUE_TOLERANCE = 0.2


def _graded_action(severity: str) -> str:
    if severity == "high":
        return "IMMEDIATE_REVIEW_REQUIRED"
    if severity == "medium":
        return "MANUAL_VERIFICATION_RECOMMENDED"
    return "LOG_AND_MONITOR"


def _ordered(series: Sequence[TimeSeriesPoint]) -> List[TimeSeriesPoint]:
    return sorted(series, key=lambda p: to_utc(p.timestamp))


def _anomaly(point: TimeSeriesPoint, **fields) -> DetectedAnomaly:
    return DetectedAnomaly(
        timestamp=to_utc(point.timestamp),
        value=float(point.value),
        source=point.source,
        **fields,
    )


def zscore_anomalies(
    series: Sequence[TimeSeriesPoint], threshold: float = 3.0
) -> List[DetectedAnomaly]:
    """Flag points whose leave-one-out z-score exceeds ``threshold``."""
    points = _ordered(series)
    n = len(points)
    if n < MIN_ZSCORE_POINTS:
        return []
    values = np.array([p.value for p in points], dtype=float)

    anomalies: List[DetectedAnomaly] = []
    for i, point in enumerate(points):
        others = np.delete(values, i)
        deviation = abs(values[i] - float(others.mean()))
        spread = float(others.std(ddof=1))
        if deviation <= EPSILON:
            continue
        if spread <= EPSILON:
            z = math.inf
            explanation = "Deviates from an otherwise constant series"
        else:
            z = deviation / spread
            if z > 5:
                explanation = f"Extreme deviation: {z:.2f} standard deviations from mean"
            else:
                explanation = (
                    f"Statistical outlier: {z:.2f} standard deviations from mean"
                )
        if z <= threshold:
            continue

        severity = "high" if z > 5 else "medium" if z > 3.5 else "low"
        anomalies.append(
            _anomaly(
                point,
                anomaly_score=min(1.0, z / 5.0),
                type="trend_break" if z > 5 else "outlier",
                severity=severity,
                explanation=explanation,
                confidence=min(100.0, z * 15.0),
                suggested_action=_graded_action(severity),
            )
        )
    return anomalies


def percentile_anomalies(
    series: Sequence[TimeSeriesPoint],
    percentile: float = DEFAULT_PERCENTILE,
    fallback_threshold: float = 3.0,
) -> List[DetectedAnomaly]:
    """Flag points outside a percentile band or after a sharp relative jump.

    Short series (fewer than ten points) fall back to :func:`zscore_anomalies`.
    """
    if not 0 <= percentile < 50:
        raise InvalidInputError(f"Percentile {percentile} outside [0, 50)")
    points = _ordered(series)
    n = len(points)
    if n < MIN_PERCENTILE_POINTS:
        return zscore_anomalies(points, fallback_threshold)

    values = np.array([p.value for p in points], dtype=float)
    lower, upper = (
        float(v) for v in np.percentile(values, [percentile, 100.0 - percentile])
    )
    avg = float(values.mean())
    std = float(values.std())

    anomalies: List[DetectedAnomaly] = []
    for i, point in enumerate(points):
        value = float(values[i])
        score = 0.0
        explanation = ""
        flagged = False
        if value < lower or value > upper:
            flagged = True
            score = min(1.0, abs(value - avg) / max(3.0 * std, EPSILON))
            explanation = (
                f"Value {value} outside normal percentile range "
                f"[{lower:.2f}, {upper:.2f}]"
            )
        if i > 0 and std > 0:
            previous = float(values[i - 1])
            change = abs(value - previous) / (abs(previous) + RELATIVE_GUARD)
            if change > JUMP_THRESHOLD:
                flagged = True
                score = max(score, min(1.0, change / 2.0))
                explanation = f"Sharp change of {change * 100:.1f}% from previous value"
        if not flagged:
            continue

        score = clamp(score, 0.0, 1.0)
        severity = "high" if score > 0.7 else "medium" if score > 0.4 else "low"
        anomalies.append(
            _anomaly(
                point,
                anomaly_score=score,
                type="outlier",
                severity=severity,
                explanation=explanation,
                confidence=min(100.0, score * 100.0),
                suggested_action=_graded_action(severity),
            )
        )
    return anomalies


def trend_anomalies(
    series: Sequence[TimeSeriesPoint], window: int = 7
) -> List[DetectedAnomaly]:
    """Compare each trailing window's mean with the window just before it."""
    if window < 1:
        raise InvalidInputError("window must be at least 1")
    points = _ordered(series)
    values = [float(p.value) for p in points]
    anomalies: List[DetectedAnomaly] = []
    for end in range(2 * window, len(values) + 1):
        previous = mean(values[end - 2 * window : end - window])
        current = mean(values[end - window : end])
        change = (current - previous) / (abs(previous) + RELATIVE_GUARD) * 100.0
        if abs(change) <= TREND_CHANGE_PCT:
            continue

        degradation = change < DEGRADATION_PCT
        score = min(1.0, abs(change) / 100.0)
        anomalies.append(
            _anomaly(
                points[end - 1],
                anomaly_score=score,
                type="degradation" if degradation else "trend_break",
                severity="high" if degradation else "medium",
                explanation=(
                    f"Trend change of {change:.1f}% detected "
                    f"(velocity: {abs(change) / window:.2f}/period)"
                ),
                confidence=min(100.0, score * 90.0),
                suggested_action=(
                    "VERIFY_DATA_AND_INVESTIGATE_DEGRADATION"
                    if degradation
                    else "MONITOR_TREND_CONTINUATION"
                ),
            )
        )
    return anomalies


def seasonal_anomalies(
    series: Sequence[TimeSeriesPoint], period: int = 30
) -> List[DetectedAnomaly]:
    """Compare each point with the value one seasonal period earlier."""
    if period < 1:
        raise InvalidInputError("period must be at least 1")
    points = _ordered(series)
    if len(points) < 2 * period:
        return []
    anomalies: List[DetectedAnomaly] = []
    for i in range(period, len(points)):
        reference = float(points[i - period].value)
        deviation = abs(points[i].value - reference) / (
            abs(reference) + RELATIVE_GUARD
        )
        if deviation <= SEASONAL_DEVIATION:
            continue
        severity = "high" if deviation > 0.6 else "medium" if deviation > 0.4 else "low"
        score = min(1.0, deviation / 1.5)
        anomalies.append(
            _anomaly(
                points[i],
                anomaly_score=score,
                type="seasonal_deviation",
                severity=severity,
                explanation=f"{deviation * 100:.1f}% deviation from seasonal pattern",
                confidence=min(100.0, score * 85.0),
                suggested_action=(
                    "INVESTIGATE_SEASONAL_ANOMALY"
                    if severity == "high"
                    else "MONITOR_SEASONAL_PATTERN"
                ),
            )
        )
    return anomalies


def merge_anomalies(anomalies: Sequence[DetectedAnomaly]) -> List[DetectedAnomaly]:
    """Sort by descending score (stable) and keep the first per (timestamp, type)."""
    seen = set()
    merged: List[DetectedAnomaly] = []
    for anomaly in sorted(anomalies, key=lambda a: -a.anomaly_score):
        key = (anomaly.timestamp, anomaly.type)
        if key in seen:
            continue
        seen.add(key)
        merged.append(anomaly)
    return merged


def _run_zscore(series, model: AnomalyDetectionModel):
    threshold = model.threshold or ZSCORE_THRESHOLDS[model.sensitivity]
    return zscore_anomalies(series, threshold)


def _run_percentile(series, model: AnomalyDetectionModel):
    percentile = model.percentile
    if percentile is None:
        percentile = PERCENTILES.get(model.sensitivity, DEFAULT_PERCENTILE)
    fallback = model.threshold or ZSCORE_THRESHOLDS[model.sensitivity]
    return percentile_anomalies(series, percentile, fallback)


def _run_trend(series, model: AnomalyDetectionModel):
    return trend_anomalies(series, model.window_size)


def _run_composite(series, model: AnomalyDetectionModel):
    return trend_anomalies(series, model.window_size) + seasonal_anomalies(
        series, model.window_size * 4
    )


DETECTORS: Dict[str, Callable[..., List[DetectedAnomaly]]] = {
    "zscore": _run_zscore,
    "isolation_forest": _run_percentile,
    "prophet": _run_trend,
    "arima": _run_composite,
}


def _supports(report: DetectedAnomaly, anomaly: DetectedAnomaly) -> bool:
    gap = abs((to_utc(report.timestamp) - to_utc(anomaly.timestamp)).total_seconds())
    if gap >= CORROBORATION_WINDOW_S:
        return False
    relative = abs(report.value - anomaly.value) / (abs(anomaly.value) + RELATIVE_GUARD)
    return relative < CORROBORATION_VALUE_TOLERANCE


def corroborate(
    anomalies_by_source: Mapping[str, Sequence[DetectedAnomaly]],
    confidence_threshold: float = 0.6,
) -> List[DetectedAnomaly]:
    """Keep anomalies that at least one other source independently reports.

    A report supports an anomaly when it lies within one hour and within 20 %
    relative value. The first such report of each other source counts.
    """
    validated: List[DetectedAnomaly] = []
    for source, anomalies in anomalies_by_source.items():
        for anomaly in anomalies:
            supporters = [source]
            confidences = [anomaly.confidence]
            for other, reports in anomalies_by_source.items():
                if other == source:
                    continue
                match = next((r for r in reports if _supports(r, anomaly)), None)
                if match is not None:
                    supporters.append(other)
                    confidences.append(match.confidence)

            avg_confidence = mean(confidences)
            if len(supporters) < 2 or avg_confidence < confidence_threshold * 100:
                continue
            validated.append(
                replace(
                    anomaly,
                    confidence=min(100.0, avg_confidence),
                    suggested_action=(
                        "HIGH_PRIORITY_IMMEDIATE_ACTION_REQUIRED"
                        if len(supporters) >= 3
                        else "VERIFIED_ANOMALY_INVESTIGATE"
                    ),
                    source=anomaly.source or source,
                    supporting_sources=supporters,
                )
            )
    return sorted(validated, key=lambda a: -a.confidence)


def calculate_anomaly_confidence(
    anomaly: DetectedAnomaly, supporting_evidence: int = 1
) -> float:
    """Raise an anomaly's confidence by its evidence count and severity."""
    confidence = anomaly.confidence + supporting_evidence * 10
    if anomaly.severity == "high":
        confidence += 15
    elif anomaly.severity == "medium":
        confidence += 10
    return min(100.0, confidence)


class AnomalyDetector(BaseService):
    """Dispatch a series to the detector(s) the model selects."""

    def detect(
        self,
        series: Sequence[TimeSeriesPoint],
        model: AnomalyDetectionModel | None = None,
    ) -> List[DetectedAnomaly]:
        model = model or AnomalyDetectionModel()
        if model.type not in DETECTORS:
            raise InvalidInputError(
                f"Unknown anomaly model '{model.type}'. Choose from: {list(DETECTORS)}"
            )
        if model.sensitivity not in ZSCORE_THRESHOLDS:
            raise InvalidInputError(f"Unknown sensitivity '{model.sensitivity}'")
        anomalies = merge_anomalies(DETECTORS[model.type](series, model))
        self.logger.debug(
            "%s detector flagged %d of %d points",
            model.type,
            len(anomalies),
            len(series),
        )
        return anomalies

    def corroborate(
        self,
        anomalies_by_source: Mapping[str, Sequence[DetectedAnomaly]],
        confidence_threshold: float = 0.6,
    ) -> List[DetectedAnomaly]:
        validated = corroborate(anomalies_by_source, confidence_threshold)
        total = sum(len(v) for v in anomalies_by_source.values())
        self.logger.info(
            "Corroborated %d of %d anomalies across %d sources",
            len(validated),
            total,
            len(anomalies_by_source),
        )
        return validated


def detect_anomalies(
    series: Sequence[TimeSeriesPoint], model: AnomalyDetectionModel | None = None
) -> List[DetectedAnomaly]:
    """Functional entry point around :class:`AnomalyDetector`."""
    return AnomalyDetector().detect(series, model)


def validate_across_sources(
    anomalies_by_source: Mapping[str, Sequence[DetectedAnomaly]],
    confidence_threshold: float = 0.6,
) -> List[DetectedAnomaly]:
    """Functional entry point for cross-source corroboration."""
    return AnomalyDetector().corroborate(anomalies_by_source, confidence_threshold)
