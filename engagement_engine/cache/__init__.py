"""Content-addressed, TTL-bound research cache."""
from engagement_engine.cache.research_cache import (
    InMemoryCacheStore,
    ResearchCache,
    normalize_query,
    query_hash,
)

__all__ = ["InMemoryCacheStore", "ResearchCache", "normalize_query", "query_hash"]
