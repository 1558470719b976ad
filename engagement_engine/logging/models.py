"""Logging data models: LogLevel, LogComponent, LogEntry."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class LogLevel(Enum):
    """Log levels with numeric values for severity comparison.

    Integer values keep ``>=`` comparisons meaningful; names would sort
    lexicographically ("debug" > "critical").
    """

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @property
    def name_str(self) -> str:
        return self.name.lower()


class LogComponent(Enum):
    """Engine components that can produce structured logs."""

    ICP_SCORING = "icp_scoring"
    RESEARCH_CACHE = "research_cache"
    ANALYZER = "analyzer"
    SIMILARITY = "similarity"
    VOICE_LEARNER = "voice_learner"
    BATCH_ORCHESTRATOR = "batch_orchestrator"
    DATABASE = "database"
    CLI = "cli"


@dataclass
class LogEntry:
    """Structured log entry.

    One log event with run context, optional error details and timing.
    Serialises to a JSON line (file output) or a dict (``engine_logs`` row).
    """

    timestamp: datetime
    level: LogLevel
    component: LogComponent
    message: str

    # Context
    run_id: Optional[str] = None

    data: Dict[str, Any] = field(default_factory=dict)

    error_type: Optional[str] = None
    error_message: Optional[str] = None

    duration_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "level_name": self.level.name_str,
            "component": self.component.value,
            "message": self.message,
            "run_id": self.run_id,
            "data": self.data,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "duration_ms": self.duration_ms,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def to_readable(self) -> str:
        """Single console line, e.g. ``[WARN] [12:00:01] [analyzer] ...``."""
        time_str = self.timestamp.strftime("%H:%M:%S")
        indicators = {
            LogLevel.DEBUG: "[DEBUG]",
            LogLevel.INFO: "[INFO]",
            LogLevel.WARNING: "[WARN]",
            LogLevel.ERROR: "[ERROR]",
            LogLevel.CRITICAL: "[CRIT]",
        }
        msg = f"{indicators[self.level]} [{time_str}] [{self.component.value}] {self.message}"
        if self.duration_ms is not None:
            msg += f" ({self.duration_ms}ms)"
        return msg
