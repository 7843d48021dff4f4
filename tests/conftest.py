# pylint: disable=missing-module-docstring,missing-function-docstring,redefined-outer-name
from datetime import datetime, timedelta, timezone

import pytest

from mrvkit.analytics.satellite import (
    build_index_series,
    calculate_ecosystem_health_score,
    detect_degradation_signals,
    estimate_biomass_from_index,
    summarize_data_quality,
    vegetation_cover_change,
)
from mrvkit.analytics.sensors import aggregate_sensor
from mrvkit.ingestion.providers import OpticalObservation
from mrvkit.schemas.monitoring import (
    Location,
    ProjectMetadata,
    RadarSample,
    SatelliteAnalysisResult,
    SensorReading,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
RED = 0.1


def optical(ts, index_value, confidence=90.0, quality=None):
    """Optical observation whose bands produce ``index_value``."""
    nir = RED * (1.0 + index_value) / (1.0 - index_value)
    return OpticalObservation(ts, nir=nir, red=RED, confidence=confidence, quality=quality)


@pytest.fixture
def location():
    return Location(-2.5, 140.7)


@pytest.fixture
def make_satellite(location):
    """Factory building a satellite result through the real analysis functions."""

    def _make(
        values,
        *,
        start=T0,
        step_days=1.0,
        confidence=90.0,
        backscatter=None,
        historical=None,
        analysis_date=None,
        project_id="proj-1",
    ):
        obs = [
            optical(start + timedelta(days=i * step_days), v, confidence)
            for i, v in enumerate(values)
        ]
        index_series = build_index_series(obs)
        radar_series = [
            RadarSample(start + timedelta(days=i * step_days), b, 95.0, "high")
            for i, b in enumerate(backscatter or [])
        ]
        if analysis_date is None:
            stamps = [s.timestamp for s in index_series] + [
                s.timestamp for s in radar_series
            ]
            analysis_date = max(stamps) if stamps else start
        biomass = estimate_biomass_from_index(index_series, last_updated=analysis_date)
        flags = detect_degradation_signals(index_series, historical)
        return SatelliteAnalysisResult(
            project_id=project_id,
            location=location,
            analysis_date=analysis_date,
            index_series=index_series,
            radar_series=radar_series,
            biomass_estimate=biomass,
            vegetation_cover_change=vegetation_cover_change(index_series, historical),
            degradation_flags=flags,
            ecosystem_health_score=calculate_ecosystem_health_score(
                index_series, radar_series, flags
            ),
            data_quality=summarize_data_quality(index_series, biomass),
        )

    return _make


@pytest.fixture
def make_readings():
    """Factory for hourly (or ``step``-spaced) sensor readings."""

    def _make(
        values,
        *,
        sensor_id="do-1",
        start=T0,
        step=timedelta(hours=1),
        quality="valid",
        confidence=90.0,
        unit="mg/L",
    ):
        qualities = quality if isinstance(quality, list) else [quality] * len(values)
        return [
            SensorReading(
                sensor_id=sensor_id,
                timestamp=start + i * step,
                value=float(v),
                unit=unit,
                quality=q,
                confidence=confidence,
            )
            for i, (v, q) in enumerate(zip(values, qualities))
        ]

    return _make


@pytest.fixture
def healthy_satellite(make_satellite):
    """Daily high-quality samples over 90 days (91 samples)."""
    return make_satellite([0.8] * 91)


@pytest.fixture
def healthy_sensor(make_readings, healthy_satellite, location):
    """Dissolved-oxygen sensor covering the satellite window, ending with it."""
    end = healthy_satellite.analysis_date
    values = ([6.0, 6.5, 7.0, 6.5] * 23)[:91]
    readings = make_readings(
        values, start=end - timedelta(days=90), step=timedelta(days=1)
    )
    return aggregate_sensor("do-1", readings, location, "dissolved_oxygen")


@pytest.fixture
def project(location):
    return ProjectMetadata(
        project_id="proj-1",
        location=location,
        area_ha=10_000.0,
        monitoring_start=T0,
        monitoring_end=T0 + timedelta(days=90),
    )
