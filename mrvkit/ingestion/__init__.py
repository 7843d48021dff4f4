"""Ingestion package with provider factory."""

from .providers import (
    OpticalObservation,
    RadarObservation,
    SatelliteDataProvider,
    SeasonalBaselineProvider,
    StaticProvider,
)


def create_provider(backend: str, **kwargs) -> SatelliteDataProvider:
    """Factory returning a satellite data provider based on backend name."""
    name = backend.lower()
    if name in {"seasonal", "baseline"}:
        return SeasonalBaselineProvider(**kwargs)
    if name == "static":
        return StaticProvider(**kwargs)
    raise ValueError(f"Unknown provider backend '{backend}'")


__all__ = [
    "OpticalObservation",
    "RadarObservation",
    "SatelliteDataProvider",
    "SeasonalBaselineProvider",
    "StaticProvider",
    "create_provider",
]
