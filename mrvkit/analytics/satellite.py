"""
Module `analytics.satellite` turns raw optical and radar observations into a
vegetation-index time series, a biomass estimate, degradation flags and an
ecosystem health score.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Sequence

from mrvkit.core.cache import NullCache, ResultCache
from mrvkit.core.config import from_section
from mrvkit.core.errors import InvalidInputError, InvalidRangeError
from mrvkit.core.utils import clamp, mean, safe_div, to_utc
from mrvkit.ingestion.indices import vegetation_index
from mrvkit.ingestion.providers import (
    OpticalObservation,
    RadarObservation,
    SatelliteDataProvider,
    SeasonalBaselineProvider,
)
from mrvkit.schemas.monitoring import (
    BiomassEstimate,
    DateRange,
    Location,
    RadarSample,
    SatelliteAnalysisResult,
    SatelliteDataQuality,
    VegetationIndexSample,
)
from mrvkit.services.base import BaseService

INDEX_DROP_DETECTED = "INDEX_DROP_DETECTED"
LOW_DENSITY = "LOW_DENSITY"
HIGH_CLOUD_COVER = "HIGH_CLOUD_COVER"
SIGNIFICANT_DECLINE = "SIGNIFICANT_DECLINE"

DATA_TYPES = ("optical", "radar", "both")

# Absorbs float noise so that e.g. 0.70 -> 0.55 counts as a 0.15 drop.
DROP_TOLERANCE = 1e-9


@dataclass
class AnalyzerConfig:
    """Calibration constants and flag thresholds for satellite analysis."""

    index_cadence_days: int = 10
    radar_cadence_days: int = 12
    biomass_coefficient: float = 5.2
    biomass_exponent: float = 2.1
    index_drop_threshold: float = 0.15
    low_density_threshold: float = 0.4
    low_quality_fraction: float = 0.3
    decline_threshold_pct: float = -10.0
    flag_penalty: float = 5.0

    @classmethod
    def from_yaml(cls, path: str | Path | None = None) -> "AnalyzerConfig":
        """Load the ``satellite`` section of a thresholds file."""
        return from_section(cls, path, "satellite")


def sample_dates(date_range: DateRange, cadence_days: int) -> List[datetime]:
    """Return one acquisition date per ``cadence_days`` inside ``date_range``."""
    if cadence_days <= 0:
        raise InvalidInputError("cadence_days must be positive")
    days = int(math.floor(date_range.days))
    count = max(1, days // cadence_days)
    return [
        date_range.start + timedelta(days=math.floor((i / count) * days))
        for i in range(count)
    ]


def classify_index_quality(value: float) -> str:
    """Quality tier of an index sample without an explicit obstruction signal."""
    if value > 0.7:
        return "high"
    if value > 0.5:
        return "medium"
    return "low"


def build_index_series(
    observations: Sequence[OpticalObservation],
) -> List[VegetationIndexSample]:
    """Convert band observations into a time-ordered index series.

    Observations with non-finite bands are dropped.
    """
    samples = []
    for obs in observations:
        value = vegetation_index(obs.nir, obs.red)
        if math.isnan(value):
            continue
        samples.append(
            VegetationIndexSample(
                timestamp=to_utc(obs.timestamp),
                value=value,
                confidence=clamp(obs.confidence),
                quality=obs.quality or classify_index_quality(value),
                pixel_count=obs.pixel_count,
            )
        )
    return sorted(samples, key=lambda s: s.timestamp)


def build_radar_series(observations: Sequence[RadarObservation]) -> List[RadarSample]:
    """Convert radar observations into a time-ordered backscatter series."""
    samples = [
        RadarSample(
            timestamp=to_utc(obs.timestamp),
            backscatter=float(obs.backscatter),
            confidence=clamp(obs.confidence),
            quality=obs.quality,
            noise_floor=obs.noise_floor,
        )
        for obs in observations
        if math.isfinite(obs.backscatter)
    ]
    return sorted(samples, key=lambda s: s.timestamp)


def estimate_biomass_from_index(
    samples: Sequence[VegetationIndexSample],
    *,
    coefficient: float = 5.2,
    exponent: float = 2.1,
    last_updated: datetime | None = None,
) -> BiomassEstimate:
    """Allometric biomass estimate ``a * max(0, mean index) ** b``.

    Confidence is the mean per-sample confidence. An empty series yields a
    zero estimate with zero confidence.
    """
    if not samples:
        return BiomassEstimate(0.0, "allometric", 0.0, last_updated)
    avg_index = mean(s.value for s in samples)
    biomass = coefficient * math.pow(max(0.0, avg_index), exponent)
    return BiomassEstimate(
        estimated_biomass=biomass,
        method="allometric",
        confidence=clamp(mean(s.confidence for s in samples)),
        last_updated=last_updated,
    )


def vegetation_cover_change(
    current: Sequence[VegetationIndexSample],
    historical: Sequence[VegetationIndexSample] | None,
) -> float:
    """Percent change of the mean index against a historical baseline."""
    if not current or not historical:
        return 0.0
    current_avg = mean(s.value for s in current)
    historical_avg = mean(s.value for s in historical)
    return safe_div(current_avg - historical_avg, historical_avg) * 100.0


def detect_degradation_signals(
    current: Sequence[VegetationIndexSample],
    historical: Sequence[VegetationIndexSample] | None = None,
    config: AnalyzerConfig | None = None,
) -> List[str]:
    """Evaluate the degradation checks independently and return their tags."""
    cfg = config or AnalyzerConfig()
    flags: List[str] = []
    if not current:
        return flags

    if len(current) > 1:
        drop = current[-2].value - current[-1].value
        if drop >= cfg.index_drop_threshold - DROP_TOLERANCE:
            flags.append(INDEX_DROP_DETECTED)

    avg_index = mean(s.value for s in current)
    if avg_index < cfg.low_density_threshold:
        flags.append(LOW_DENSITY)

    low_quality = sum(1 for s in current if s.quality == "low")
    if low_quality / len(current) > cfg.low_quality_fraction:
        flags.append(HIGH_CLOUD_COVER)

    if historical:
        decline = vegetation_cover_change(current, historical)
        if decline < cfg.decline_threshold_pct:
            flags.append(SIGNIFICANT_DECLINE)

    return flags


def calculate_ecosystem_health_score(
    index_series: Sequence[VegetationIndexSample],
    radar_series: Sequence[RadarSample],
    degradation_flags: Sequence[str],
    flag_penalty: float = 5.0,
) -> float:
    """Blend index (40 %) and radar (30 %) components, then subtract flag penalties."""
    if not index_series and not radar_series:
        return 0.0
    score = 100.0
    if index_series:
        index_score = (mean(s.value for s in index_series) + 1.0) * 50.0
        score = score * 0.6 + index_score * 0.4
    if radar_series:
        avg_backscatter = mean(s.backscatter for s in radar_series)
        radar_score = clamp((avg_backscatter + 20.0) * 3.0)
        score = score * 0.7 + radar_score * 0.3
    score -= len(degradation_flags) * flag_penalty
    return float(round(clamp(score)))


def summarize_data_quality(
    index_series: Sequence[VegetationIndexSample], biomass: BiomassEstimate
) -> SatelliteDataQuality:
    """Completeness is the high-quality share; cloud cover is its complement."""
    if not index_series:
        return SatelliteDataQuality(
            overall_score=0.0, cloud_cover=100.0, completeness=0.0
        )
    high = sum(1 for s in index_series if s.quality == "high")
    completeness = high / len(index_series) * 100.0
    return SatelliteDataQuality(
        overall_score=clamp((biomass.confidence + 90.0) / 2.0),
        cloud_cover=clamp(100.0 - completeness),
        completeness=clamp(completeness),
    )


class SatelliteAnalyzer(BaseService):
    """Run the satellite analysis for one project location and window."""

    def __init__(
        self,
        provider: SatelliteDataProvider | None = None,
        *,
        cache: ResultCache | None = None,
        config: AnalyzerConfig | None = None,
        logger=None,
    ) -> None:
        super().__init__(logger)
        self.provider = provider or SeasonalBaselineProvider(logger=self.logger)
        self.cache = cache or NullCache()
        self.config = config or AnalyzerConfig()

    @staticmethod
    def _cache_key(
        project_id, location, date_range, data_type, historical, analysis_date
    ):
        baseline = None
        if historical is not None:
            series = historical.index_series
            baseline = (len(series), mean(s.value for s in series))
        return (
            project_id,
            round(location.latitude, 6),
            round(location.longitude, 6),
            date_range.start.isoformat(),
            date_range.end.isoformat(),
            data_type,
            baseline,
            analysis_date.isoformat(),
        )

    def analyze(
        self,
        location: Location,
        date_range: DateRange,
        data_type: str = "both",
        *,
        project_id: str = "unknown",
        historical: SatelliteAnalysisResult | None = None,
        analysis_date: datetime | None = None,
    ) -> SatelliteAnalysisResult:
        """Analyze ``location`` over ``date_range``.

        ``analysis_date`` defaults to the end of the window so that identical
        requests produce identical results.
        """
        location.validate()
        if data_type not in DATA_TYPES:
            raise InvalidInputError(
                f"Unknown data type '{data_type}'. Choose from: {list(DATA_TYPES)}"
            )
        if date_range.end < date_range.start:
            raise InvalidRangeError("Date range ends before it starts")
        analysis_date = to_utc(analysis_date) if analysis_date else date_range.end

        key = self._cache_key(
            project_id, location, date_range, data_type, historical, analysis_date
        )
        cached = self.cache.get(key)
        if cached is not None:
            self.logger.debug("Cache hit for %s", key)
            return cached

        cfg = self.config
        optical: List[OpticalObservation] = []
        radar: List[RadarObservation] = []
        if data_type in ("optical", "both"):
            dates = sample_dates(date_range, cfg.index_cadence_days)
            optical = self.provider.optical_observations(location, date_range, dates)
        if data_type in ("radar", "both"):
            dates = sample_dates(date_range, cfg.radar_cadence_days)
            radar = self.provider.radar_observations(location, date_range, dates)

        index_series = build_index_series(optical)
        radar_series = build_radar_series(radar)
        if not index_series and not radar_series:
            self.logger.warning(
                "No valid observations for project %s between %s and %s",
                project_id,
                date_range.start.date(),
                date_range.end.date(),
            )

        baseline = historical.index_series if historical else None
        biomass = estimate_biomass_from_index(
            index_series,
            coefficient=cfg.biomass_coefficient,
            exponent=cfg.biomass_exponent,
            last_updated=analysis_date,
        )
        flags = detect_degradation_signals(index_series, baseline, cfg)
        health = calculate_ecosystem_health_score(
            index_series, radar_series, flags, cfg.flag_penalty
        )
        result = SatelliteAnalysisResult(
            project_id=project_id,
            location=location,
            analysis_date=analysis_date,
            index_series=index_series,
            radar_series=radar_series,
            biomass_estimate=biomass,
            vegetation_cover_change=vegetation_cover_change(index_series, baseline),
            degradation_flags=flags,
            ecosystem_health_score=health,
            data_quality=summarize_data_quality(index_series, biomass),
        )
        self.logger.info(
            "Satellite analysis for %s: %d index / %d radar samples, health %.0f, flags %s",
            project_id,
            len(index_series),
            len(radar_series),
            health,
            flags,
        )
        self.cache.set(key, result)
        return result


def analyze_satellite(
    location: Location,
    date_range: DateRange,
    data_type: str = "both",
    *,
    provider: SatelliteDataProvider | None = None,
    project_id: str = "unknown",
    historical: SatelliteAnalysisResult | None = None,
    analysis_date: datetime | None = None,
) -> SatelliteAnalysisResult:
    """Functional entry point around :class:`SatelliteAnalyzer`."""
    return SatelliteAnalyzer(provider).analyze(
        location,
        date_range,
        data_type,
        project_id=project_id,
        historical=historical,
        analysis_date=analysis_date,
    )
