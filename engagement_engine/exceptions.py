"""
Custom exception classes for the scoring & analysis engine.

Pure computational errors (bad input) propagate to the caller immediately.
I/O errors from providers are retried and, where a reasonable default
exists, converted into degraded-but-valid results by the calling component.
Only configuration-level failures (no corpus store reachable at all) are
fatal for a batch run.

Hierarchy:
    Exception
    +-- EngineBaseError (base for all engine-specific errors)
    |   +-- ProviderUnavailableError
    |   +-- ClassificationError
    +-- ValidationError (ValueError)
    |   +-- InvalidInputError
    +-- DatabaseError
    |   +-- CorpusUnavailableError
    +-- ConfigurationError
    +-- RetryExhaustedError
    +-- ProviderTimeoutError
"""

from typing import Any, Dict, Optional


# =============================================================================
# BASE EXCEPTION
# =============================================================================


class EngineBaseError(Exception):
    """Base exception for all engine-related errors."""

    pass


# =============================================================================
# CORE EXCEPTIONS
# =============================================================================


class ValidationError(ValueError):
    """Raised when input validation fails."""

    pass


class InvalidInputError(ValidationError):
    """Raised when a mandatory field is missing or malformed.

    Never retried: the caller must fix the input.

    Attributes:
        field: Dotted path of the offending field (e.g. ``profile.name``).
    """

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Mandatory field '{field}' is missing")


class DatabaseError(Exception):
    """Raised when database operations fail."""

    pass


class CorpusUnavailableError(DatabaseError):
    """Raised when the corpus store cannot be reached at all.

    This is the only error that aborts a batch run.
    """

    pass


class ConfigurationError(Exception):
    """Raised when system configuration is invalid."""

    pass


class RetryExhaustedError(Exception):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        operation: Name of the operation that was retried.
        attempts: Total number of attempts made.
        last_error: The last exception raised before giving up.
    """

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts. "
            f"Last error: {last_error}"
        )


class ProviderTimeoutError(Exception):
    """Raised when an external provider call exceeds its timeout.

    Attributes:
        provider: Name of the provider that timed out.
        timeout: Timeout duration in seconds.
    """

    def __init__(self, provider: str, timeout: float):
        self.provider = provider
        self.timeout = timeout
        super().__init__(f"Provider '{provider}' timed out after {timeout} seconds")


# =============================================================================
# PROVIDER EXCEPTIONS
# =============================================================================


class ProviderUnavailableError(EngineBaseError):
    """Raised when an embedding/similarity/completion provider fails.

    Attributes:
        provider: Provider name (``embeddings``, ``claude``...).
        reason: Short description of the failure.
        details: Extra context (status code, response body excerpt).
    """

    def __init__(
        self,
        provider: str,
        reason: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.provider = provider
        self.reason = reason
        self.details = details or {}
        super().__init__(f"Provider '{provider}' unavailable: {reason}")


class ClassificationError(EngineBaseError):
    """Raised when a text classifier returns an unusable response."""

    pass


# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    # Base
    "EngineBaseError",
    # Core
    "ValidationError",
    "InvalidInputError",
    "DatabaseError",
    "CorpusUnavailableError",
    "ConfigurationError",
    "RetryExhaustedError",
    "ProviderTimeoutError",
    # Providers
    "ProviderUnavailableError",
    "ClassificationError",
]
