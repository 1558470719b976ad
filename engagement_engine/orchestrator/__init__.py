"""Batch orchestration over the historical corpus."""
from engagement_engine.orchestrator.batch import BatchOrchestrator

__all__ = ["BatchOrchestrator"]
