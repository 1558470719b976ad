"""
Shared utility functions used throughout the engine.

Provides:
    - utc_now(): Timezone-aware UTC datetime (for TIMESTAMPTZ columns)
    - ensure_utc(dt): Convert any datetime to timezone-aware UTC
    - parse_datetime(value): ISO-8601 string / datetime -> aware UTC datetime
    - recency_decay(): Half-life decay weight for older content
    - round_half_up(): Deterministic rounding for point allocations
    - stable_hash(): Content-addressed key for cache entries
    - pearson(): Correlation that tolerates constant inputs
    - @with_retry: Decorator with exponential backoff for transient failures
"""

from datetime import datetime, timezone
import asyncio
import hashlib
import logging
import math
from functools import wraps
from typing import Callable, TypeVar, Any, Sequence, Tuple, Type, Optional, Union

from engagement_engine.exceptions import RetryExhaustedError

T = TypeVar("T")


# ===========================================================================
# TIMEZONE UTILITIES
# ===========================================================================


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime in UTC.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime is timezone-aware in UTC.

    Args:
        dt: Datetime to convert (naive or aware).

    Returns:
        Timezone-aware datetime in UTC.
    """
    if dt.tzinfo is None:
        # Assume naive datetime is UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


# ===========================================================================
# NUMERIC HELPERS
# ===========================================================================


def recency_decay(
    age_days: float,
    half_life_days: float = 180.0,
    min_factor: float = 0.1,
) -> float:
    """
    Exponential half-life decay weight.

    A 0-day-old item weighs 1.0, an item one half-life old weighs 0.5,
    and nothing weighs less than ``min_factor``.

    Args:
        age_days: Age of the item in days (negative ages count as 0).
        half_life_days: Days after which the weight halves.
        min_factor: Floor so that very old content still counts a little.

    Returns:
        Weight in ``[min_factor, 1.0]``.
    """
    if half_life_days <= 0:
        return 1.0
    age = max(0.0, age_days)
    return max(min_factor, 0.5 ** (age / half_life_days))


def round_half_up(value: float) -> int:
    """Round to the nearest int, halves away from zero (no banker's rounding)."""
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def stable_hash(*parts: str) -> str:
    """SHA-256 hex digest of ``parts`` joined by ``|``."""
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float:
    """
    Pearson correlation of two equal-length sequences.

    Returns ``0.0`` when either side has no variance (or fewer than two
    points) instead of raising like ``statistics.correlation``.
    """
    n = len(xs)
    if n != len(ys):
        raise ValueError(f"length mismatch: {n} != {len(ys)}")
    if n < 2:
        return 0.0
    mean_x = sum(xs) / n
    mean_y = sum(ys) / n
    cov = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    var_x = sum((x - mean_x) ** 2 for x in xs)
    var_y = sum((y - mean_y) ** 2 for y in ys)
    if var_x == 0 or var_y == 0:
        return 0.0
    return cov / math.sqrt(var_x * var_y)


# ===========================================================================
# RETRY DECORATOR WITH EXPONENTIAL BACKOFF
# Retries are for transient failures (timeouts, 5xx, rate limits).
# Eventually raises if all attempts fail; callers decide on fallbacks.
# ===========================================================================


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 2.0,
    retryable_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    operation_name: Optional[str] = None,
) -> Callable:
    """
    Decorator for async retry logic with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default ``3``).
        base_delay: Initial delay in seconds before the first retry
            (default ``2.0``). Subsequent delays grow exponentially:
            ``base_delay * 2 ** (attempt - 1)``.
        retryable_exceptions: Tuple of exception types that should trigger
            a retry. Any exception **not** in this tuple propagates
            immediately without retrying.
        operation_name: Human-readable name used in log messages. If
            ``None``, the wrapped function's ``__name__`` is used.

    Raises:
        RetryExhaustedError: When all retry attempts have been exhausted.
            The original exception is kept as ``last_error``.
        TypeError: If the decorated callable is not a coroutine function.

    Usage::

        @with_retry(max_attempts=3, base_delay=0.5,
                    retryable_exceptions=(httpx.HTTPError,))
        async def embed(texts):
            ...

        # Config-driven attempts, applied at call time:
        fetch = with_retry(max_attempts=cfg.max_attempts)(client.embed)
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"with_retry requires an async callable, got {func!r}")
        op_name = operation_name or func.__name__

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            last_error: Optional[BaseException] = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_error = e
                    if attempt < max_attempts:
                        delay = base_delay * (2 ** (attempt - 1))
                        logging.warning(
                            "[RETRY] %s attempt %d/%d failed: %s. "
                            "Retrying in %.1fs...",
                            op_name,
                            attempt,
                            max_attempts,
                            e,
                            delay,
                        )
                        await asyncio.sleep(delay)
                    else:
                        logging.error(
                            "[RETRY EXHAUSTED] %s failed after %d attempts: %s",
                            op_name,
                            max_attempts,
                            e,
                        )
            raise RetryExhaustedError(
                op_name, max_attempts, last_error  # type: ignore[arg-type]
            )

        return async_wrapper  # type: ignore[return-value]

    return decorator


__all__ = [
    "utc_now",
    "ensure_utc",
    "parse_datetime",
    "recency_decay",
    "round_half_up",
    "stable_hash",
    "pearson",
    "with_retry",
]
