"""ICP (Ideal Contact Profile) scoring."""
from engagement_engine.scoring.icp_engine import (
    FACTOR_ALLOCATIONS,
    ICPCriteria,
    ICPScoringEngine,
    normalize_size_bucket,
    recommendation_for,
)

__all__ = [
    "FACTOR_ALLOCATIONS",
    "ICPCriteria",
    "ICPScoringEngine",
    "normalize_size_bucket",
    "recommendation_for",
]
