"""
Error taxonomy for run-tracker.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Retryable vs non-retryable classification
- Structured context (organization, run, operation) for debugging
- HTTP status mapping for the remote agent API
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes."""

    # Transport errors (1xxx)
    TRANSPORT_ERROR = "ERR_1000"
    NOT_FOUND = "ERR_1001"
    AUTHENTICATION = "ERR_1002"
    RATE_LIMIT = "ERR_1003"
    SERVICE_UNAVAILABLE = "ERR_1004"
    INVALID_RESPONSE = "ERR_1005"

    # Cache errors (2xxx)
    CACHE_ERROR = "ERR_2000"
    CORRUPT_CACHE = "ERR_2001"
    STORE_UNAVAILABLE = "ERR_2002"

    # Orchestration errors (3xxx)
    ORCHESTRATION_ERROR = "ERR_3000"

    # Input errors (4xxx)
    INVALID_RUN_REFERENCE = "ERR_4001"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "ERR_6000"
    MISSING_API_KEY = "ERR_6001"
    INVALID_CONFIG = "ERR_6002"

    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    organization_id: int | None = None
    run_id: int | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "organization_id": self.organization_id,
            "run_id": self.run_id,
            "operation": self.operation,
            **self.extra,
        }


class RunTrackerError(Exception):
    """
    Base exception for all run-tracker errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        retryable: Whether the operation can be retried
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.run_id is not None:
            parts.append(f"(run_id={self.context.run_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(RunTrackerError):
    """Network or HTTP failure while talking to the remote job source.

    Recovered locally by keeping the last cached value.
    """

    code = ErrorCode.TRANSPORT_ERROR
    retryable = True
    http_status: int | None = None

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.http_status = http_status


class NotFoundError(TransportError):
    """The run no longer exists remotely."""

    code = ErrorCode.NOT_FOUND
    retryable = False

    def __init__(self, message: str = "Agent run not found", **kwargs):
        kwargs.setdefault("http_status", 404)
        super().__init__(message, **kwargs)


class AuthenticationError(TransportError):
    """Invalid API token or missing permissions. Not retryable."""

    code = ErrorCode.AUTHENTICATION
    retryable = False

    def __init__(self, message: str = "Authentication failed", **kwargs):
        kwargs.setdefault("http_status", 401)
        super().__init__(message, **kwargs)


class RateLimitError(TransportError):
    """Rate limit exceeded. Retryable after a delay."""

    code = ErrorCode.RATE_LIMIT
    retryable = True

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float | None = None,
        **kwargs,
    ):
        kwargs.setdefault("http_status", 429)
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ServiceUnavailableError(TransportError):
    """Remote API temporarily unavailable."""

    code = ErrorCode.SERVICE_UNAVAILABLE
    retryable = True

    def __init__(self, message: str = "Agent API unavailable", **kwargs):
        kwargs.setdefault("http_status", 503)
        super().__init__(message, **kwargs)


class InvalidResponseError(TransportError):
    """Remote API returned a payload we could not interpret."""

    code = ErrorCode.INVALID_RESPONSE


# =============================================================================
# Cache Errors
# =============================================================================


class CacheError(RunTrackerError):
    """Base class for cache-related errors."""

    code = ErrorCode.CACHE_ERROR


class CorruptCacheError(CacheError):
    """A stored blob could not be deserialized. Readers treat it as a miss."""

    code = ErrorCode.CORRUPT_CACHE

    def __init__(self, message: str = "Corrupt cache entry", *, key: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.key = key


class StoreUnavailableError(CacheError):
    """The durable store could not be reached."""

    code = ErrorCode.STORE_UNAVAILABLE
    retryable = True


# =============================================================================
# Orchestration Errors
# =============================================================================


class OrchestrationError(RunTrackerError):
    """A pass could not run at all (client or store unavailable).

    Fatal to the current pass only; retried on the next tick.
    """

    code = ErrorCode.ORCHESTRATION_ERROR
    retryable = True


class InvalidRunReferenceError(RunTrackerError):
    """A run id or URL could not be parsed."""

    code = ErrorCode.INVALID_RUN_REFERENCE


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(RunTrackerError):
    """Base class for configuration errors."""

    code = ErrorCode.CONFIG_ERROR


class MissingAPIKeyError(ConfigError):
    """API token is required but not configured."""

    code = ErrorCode.MISSING_API_KEY

    def __init__(self, message: str = "API token is required", **kwargs):
        super().__init__(message, **kwargs)


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    code = ErrorCode.INVALID_CONFIG


# =============================================================================
# Utilities
# =============================================================================


def error_from_status(
    status: int,
    message: str,
    *,
    organization_id: int | None = None,
    run_id: int | None = None,
) -> TransportError:
    """
    Map an HTTP status from the agent API to a TransportError subclass.

    Args:
        status: HTTP status code
        message: Error message (usually taken from the response body)
        organization_id: Organization the request was scoped to
        run_id: Run the request targeted, if any

    Returns:
        The matching error instance (not raised)
    """
    ctx = ErrorContext(organization_id=organization_id, run_id=run_id)

    if status in (401, 403):
        return AuthenticationError(message, http_status=status, context=ctx)
    if status == 404:
        return NotFoundError(message, context=ctx)
    if status == 429:
        return RateLimitError(message, context=ctx)
    if status >= 500:
        return ServiceUnavailableError(message, http_status=status, context=ctx)
    return TransportError(message, http_status=status, context=ctx)


def is_retryable(error: Exception) -> bool:
    """Check if an error is worth retrying on a later pass."""
    if isinstance(error, RunTrackerError):
        return error.retryable

    return isinstance(error, (asyncio.TimeoutError, ConnectionError, TimeoutError))


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "RunTrackerError",
    "TransportError",
    "NotFoundError",
    "AuthenticationError",
    "RateLimitError",
    "ServiceUnavailableError",
    "InvalidResponseError",
    "CacheError",
    "CorruptCacheError",
    "StoreUnavailableError",
    "OrchestrationError",
    "InvalidRunReferenceError",
    "ConfigError",
    "MissingAPIKeyError",
    "InvalidConfigError",
    "error_from_status",
    "is_retryable",
]
