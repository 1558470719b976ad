"""Per-component logger wrapper and timed-operation context manager.

``ComponentLogger`` binds a fixed ``LogComponent`` to the global
``EngineLogger``. Every message is also forwarded to the stdlib logger
named after the component, so console output works whether or not the
structured logger has been initialised.
"""

import logging
import time
from typing import Any, Optional

from engagement_engine.logging.engine_logger import get_logger, is_initialized
from engagement_engine.logging.models import LogComponent, LogLevel

_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL,
}


class ComponentLogger:
    """Wrapper that binds a fixed ``LogComponent``::

        self.log = ComponentLogger(LogComponent.BATCH_ORCHESTRATOR)
        await self.log.info("Page fetched", data={"offset": 50})
    """

    def __init__(self, component: LogComponent) -> None:
        self.component = component
        self.stdlib = logging.getLogger(component.value)

    async def _emit(
        self,
        level: LogLevel,
        message: str,
        error: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        self.stdlib.log(_STDLIB_LEVELS[level], "%s", message)
        if is_initialized():
            await get_logger().log(level, self.component, message, error=error, **kwargs)

    async def debug(self, message: str, **kwargs: Any) -> None:
        await self._emit(LogLevel.DEBUG, message, **kwargs)

    async def info(self, message: str, **kwargs: Any) -> None:
        await self._emit(LogLevel.INFO, message, **kwargs)

    async def warning(self, message: str, **kwargs: Any) -> None:
        await self._emit(LogLevel.WARNING, message, **kwargs)

    async def error(
        self, message: str, error: Optional[BaseException] = None, **kwargs: Any
    ) -> None:
        await self._emit(LogLevel.ERROR, message, error=error, **kwargs)

    async def critical(
        self, message: str, error: Optional[BaseException] = None, **kwargs: Any
    ) -> None:
        await self._emit(LogLevel.CRITICAL, message, error=error, **kwargs)

    def timed(self, message: str) -> "TimedOperation":
        """Return an async context manager that logs start/end with duration.

        Usage::

            async with self.log.timed("Full corpus analysis"):
                report = await self._run()
        """
        return TimedOperation(self, message)


class TimedOperation:
    """Async context manager that measures and logs operation duration.

    Logs ``Starting: <message>`` at DEBUG on entry, ``Completed`` at INFO
    with ``duration_ms`` on success, and ``Failed`` at ERROR on exception.
    Exceptions are re-raised.
    """

    def __init__(self, logger: ComponentLogger, message: str) -> None:
        self.logger = logger
        self.message = message
        self.start: Optional[float] = None
        self.duration_ms: Optional[int] = None

    async def __aenter__(self) -> "TimedOperation":
        self.start = time.monotonic()
        await self.logger.debug(f"Starting: {self.message}")
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Any,
    ) -> None:
        assert self.start is not None
        self.duration_ms = int((time.monotonic() - self.start) * 1000)
        if exc_type is not None:
            await self.logger.error(
                f"Failed: {self.message}",
                error=exc_val,
                duration_ms=self.duration_ms,
            )
        else:
            await self.logger.info(
                f"Completed: {self.message}",
                duration_ms=self.duration_ms,
            )
