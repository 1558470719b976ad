"""Central structured logger: daily JSON-lines file plus optional Supabase sink.

``EngineLogger`` appends every entry to ``<log_dir>/engine_YYYY-MM-DD.log``
(via ``aiofiles``) and, at or above ``min_level``, inserts it into the
``engine_logs`` table through a database handle exposing
``save_engine_log(row)``. A bounded in-memory buffer backs ``get_recent()``.

Global helpers:
    - ``init_logger()``: create and register the singleton
    - ``get_logger()``: retrieve it (raises if not initialised)
    - ``is_initialized()``: whether ``init_logger()`` has run
"""

import asyncio
import logging
from collections import deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Set

import aiofiles

from engagement_engine.logging.models import LogComponent, LogEntry, LogLevel
from engagement_engine.utils import utc_now

_stdlib_logger = logging.getLogger("EngineLogger")


class EngineLogger:
    """Structured logging for engine runs.

    Parameters:
        log_dir: Directory for log files (created if missing).
        db: Optional database handle with ``save_engine_log()``.
        min_level: Minimum level for database writes.
        max_recent: Size of the in-memory buffer.
    """

    def __init__(
        self,
        log_dir: str = "logs",
        db: Any = None,
        min_level: LogLevel = LogLevel.INFO,
        max_recent: int = 1000,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.db = db
        self.min_level = min_level

        self._run_id: Optional[str] = None
        self._recent: Deque[LogEntry] = deque(maxlen=max_recent)
        self._pending_tasks: Set["asyncio.Task[None]"] = set()

    def set_run_id(self, run_id: Optional[str]) -> None:
        """Attach ``run_id`` to subsequent entries (``None`` clears it)."""
        self._run_id = run_id

    def log_path_for(self, entry: LogEntry) -> Path:
        return self.log_dir / f"engine_{entry.timestamp.strftime('%Y-%m-%d')}.log"

    async def log(
        self,
        level: LogLevel,
        component: LogComponent,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[BaseException] = None,
        duration_ms: Optional[int] = None,
    ) -> LogEntry:
        """Record one entry on every configured output and return it."""
        entry = LogEntry(
            timestamp=utc_now(),
            level=level,
            component=component,
            message=message,
            run_id=self._run_id,
            data=data or {},
            duration_ms=duration_ms,
        )
        if error is not None:
            entry.error_type = type(error).__name__
            entry.error_message = str(error)

        self._recent.append(entry)

        async with aiofiles.open(self.log_path_for(entry), "a", encoding="utf-8") as f:
            await f.write(entry.to_json() + "\n")

        if self.db is not None and level.value >= self.min_level.value:
            task = asyncio.create_task(self._write_to_db(entry))
            self._pending_tasks.add(task)
            task.add_done_callback(self._pending_tasks.discard)

        return entry

    async def debug(self, component: LogComponent, message: str, **kwargs: Any) -> LogEntry:
        return await self.log(LogLevel.DEBUG, component, message, **kwargs)

    async def info(self, component: LogComponent, message: str, **kwargs: Any) -> LogEntry:
        return await self.log(LogLevel.INFO, component, message, **kwargs)

    async def warning(self, component: LogComponent, message: str, **kwargs: Any) -> LogEntry:
        return await self.log(LogLevel.WARNING, component, message, **kwargs)

    async def error(self, component: LogComponent, message: str, **kwargs: Any) -> LogEntry:
        return await self.log(LogLevel.ERROR, component, message, **kwargs)

    async def critical(self, component: LogComponent, message: str, **kwargs: Any) -> LogEntry:
        return await self.log(LogLevel.CRITICAL, component, message, **kwargs)

    def get_recent(
        self,
        limit: int = 20,
        level: Optional[LogLevel] = None,
        component: Optional[LogComponent] = None,
    ) -> List[LogEntry]:
        """Return recent entries from the in-memory buffer, oldest first."""
        entries = list(self._recent)
        if level is not None:
            entries = [e for e in entries if e.level == level]
        if component is not None:
            entries = [e for e in entries if e.component == component]
        return entries[-limit:]

    async def flush(self) -> None:
        """Wait for pending database writes. Call before shutdown."""
        if self._pending_tasks:
            await asyncio.gather(*self._pending_tasks, return_exceptions=True)
            self._pending_tasks.clear()

    async def _write_to_db(self, entry: LogEntry) -> None:
        try:
            await self.db.save_engine_log(entry.to_dict())
        except Exception as exc:
            # The file line is already written; report and move on.
            _stdlib_logger.warning("Failed to write log entry to engine_logs: %s", exc)


# ======================================================================
# GLOBAL LOGGER SINGLETON
# ======================================================================

_logger: Optional[EngineLogger] = None


def init_logger(
    log_dir: str = "logs",
    db: Any = None,
    min_level: LogLevel = LogLevel.INFO,
) -> EngineLogger:
    """Initialise and register the global ``EngineLogger``."""
    global _logger
    _logger = EngineLogger(log_dir=log_dir, db=db, min_level=min_level)
    return _logger


def get_logger() -> EngineLogger:
    """Retrieve the global ``EngineLogger``.

    Raises:
        RuntimeError: If ``init_logger()`` has not been called yet.
    """
    if _logger is None:
        raise RuntimeError("Logger not initialized. Call init_logger() first.")
    return _logger


def is_initialized() -> bool:
    return _logger is not None


def reset_logger() -> None:
    global _logger
    _logger = None
