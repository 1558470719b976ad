"""Historical performance analysis: metrics, similarity, precedent ranking."""
from engagement_engine.analysis.historical_analyzer import HistoricalAnalyzer
from engagement_engine.analysis.post_metrics import assign_tiers, derive_metrics
from engagement_engine.analysis.similarity import (
    EmbeddingSimilarity,
    KeywordOverlapSimilarity,
    ResilientSimilarity,
    SimilarityProvider,
)

__all__ = [
    "HistoricalAnalyzer",
    "assign_tiers",
    "derive_metrics",
    "EmbeddingSimilarity",
    "KeywordOverlapSimilarity",
    "ResilientSimilarity",
    "SimilarityProvider",
]
