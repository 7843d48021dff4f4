from .assessor import (
    ReadinessAssessor,
    ReadinessConfig,
    assess_readiness,
    assess_spatial_coverage,
    assess_temporal_alignment,
    assess_verification_readiness,
    calculate_carbon_sequestration,
    calculate_data_quality_metrics,
    categorize_freshness,
    generate_recommendations,
)

__all__ = [
    "ReadinessAssessor",
    "ReadinessConfig",
    "assess_readiness",
    "assess_spatial_coverage",
    "assess_temporal_alignment",
    "assess_verification_readiness",
    "calculate_carbon_sequestration",
    "calculate_data_quality_metrics",
    "categorize_freshness",
    "generate_recommendations",
]
