"""Structured logging for the engagement engine."""
from engagement_engine.logging.models import LogLevel, LogComponent, LogEntry
from engagement_engine.logging.engine_logger import (
    EngineLogger,
    init_logger,
    get_logger,
    is_initialized,
    reset_logger,
)
from engagement_engine.logging.component_logger import ComponentLogger, TimedOperation

__all__ = [
    "LogLevel", "LogComponent", "LogEntry",
    "EngineLogger", "init_logger", "get_logger", "is_initialized", "reset_logger",
    "ComponentLogger", "TimedOperation",
]
