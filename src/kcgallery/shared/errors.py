"""KC Gallery Error Handling Module

This module defines the error handling system for the fetch & cache engine,
providing structured error classes with context information and a closed
taxonomy for classified fetch failures.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext provides additional information
- Closed Taxonomy: Every transport failure maps to exactly one ErrorKind
- Proper Exception Chaining: Original exceptions are preserved
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Union

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]


class ErrorCode(str, Enum):
    """Error codes for the KC Gallery engine.

    This enum serves as the single source of truth for all error codes
    used throughout the package.
    """

    # Fetch Errors (one per ErrorKind)
    FETCH_TIMEOUT = "FETCH_TIMEOUT"
    FETCH_NETWORK_ERROR = "FETCH_NETWORK_ERROR"
    FETCH_SERVER_UNAVAILABLE = "FETCH_SERVER_UNAVAILABLE"
    FETCH_NOT_FOUND = "FETCH_NOT_FOUND"
    FETCH_RATE_LIMITED = "FETCH_RATE_LIMITED"
    FETCH_INVALID_RESPONSE = "FETCH_INVALID_RESPONSE"
    FETCH_PARSE_ERROR = "FETCH_PARSE_ERROR"
    FETCH_UNKNOWN = "FETCH_UNKNOWN"

    # Search Errors
    SEARCH_SERVICE_REQUIRED = "SEARCH_SERVICE_REQUIRED"

    # Cache Errors
    CACHE_CORRUPTED = "CACHE_CORRUPTED"

    # Configuration Errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INVALID_CONFIG = "INVALID_CONFIG"

    # File System Errors
    FILE_READ_ERROR = "FILE_READ_ERROR"
    FILE_WRITE_ERROR = "FILE_WRITE_ERROR"
    DIRECTORY_CREATION_FAILED = "DIRECTORY_CREATION_FAILED"

    # CLI Errors
    CLI_UNEXPECTED_ERROR = "CLI_UNEXPECTED_ERROR"


class ErrorKind(str, Enum):
    """Closed taxonomy of classified fetch failures."""

    TIMEOUT = "Timeout"
    NETWORK_ERROR = "NetworkError"
    SERVER_UNAVAILABLE = "ServerUnavailable"
    NOT_FOUND = "NotFound"
    RATE_LIMITED = "RateLimited"
    INVALID_RESPONSE = "InvalidResponse"
    PARSE_ERROR = "ParseError"
    UNKNOWN = "Unknown"

    @property
    def error_code(self) -> ErrorCode:
        """Map the kind onto its ErrorCode."""
        return _KIND_TO_CODE[self]


_KIND_TO_CODE: dict[ErrorKind, ErrorCode] = {
    ErrorKind.TIMEOUT: ErrorCode.FETCH_TIMEOUT,
    ErrorKind.NETWORK_ERROR: ErrorCode.FETCH_NETWORK_ERROR,
    ErrorKind.SERVER_UNAVAILABLE: ErrorCode.FETCH_SERVER_UNAVAILABLE,
    ErrorKind.NOT_FOUND: ErrorCode.FETCH_NOT_FOUND,
    ErrorKind.RATE_LIMITED: ErrorCode.FETCH_RATE_LIMITED,
    ErrorKind.INVALID_RESPONSE: ErrorCode.FETCH_INVALID_RESPONSE,
    ErrorKind.PARSE_ERROR: ErrorCode.FETCH_PARSE_ERROR,
    ErrorKind.UNKNOWN: ErrorCode.FETCH_UNKNOWN,
}

# Kinds that abort the attempt loop regardless of source
NEVER_RETRIED: frozenset[ErrorKind] = frozenset(
    {ErrorKind.NOT_FOUND, ErrorKind.RATE_LIMITED},
)

# Data-integrity kinds, non-retryable unless the source is known to be flaky
DATA_INTEGRITY: frozenset[ErrorKind] = frozenset(
    {ErrorKind.INVALID_RESPONSE, ErrorKind.PARSE_ERROR},
)


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path and Enum to primitive types.

    Args:
        value: Input dictionary or None

    Returns:
        Dictionary with primitive values only, or None

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif val is None:
            continue
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContext:
    """Context information for errors.

    Only primitive types (str, int, float, bool) are allowed in
    additional_data to keep log records serializable.

    Attributes:
        operation: Optional operation name that caused the error
        url: Optional request URL associated with the error
        additional_data: Optional dict with primitive values only
    """

    operation: str | None = None
    url: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Coerce additional_data to primitives."""
        if self.additional_data is not None:
            object.__setattr__(
                self,
                "additional_data",
                _coerce_primitives(self.additional_data),
            )

    def safe_dict(self) -> dict[str, Any]:
        """Export context as dict with additional_data always present."""
        data: dict[str, Any] = {}
        if self.operation is not None:
            data["operation"] = self.operation
        if self.url is not None:
            data["url"] = self.url
        data["additional_data"] = dict(self.additional_data or {})
        return data


class KCGalleryError(Exception):
    """Base exception class for all KC Gallery errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        """Initialize KCGalleryError.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error
        super().__init__(f"{code.value}: {message}")

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class InfrastructureError(KCGalleryError):
    """Errors raised while talking to external systems (network, disk)."""


class KCGalleryNetworkError(InfrastructureError):
    """Network-related errors."""


class CacheError(InfrastructureError):
    """Cache persistence errors (corrupt blobs, unwritable stores)."""


class ConfigurationError(KCGalleryError):
    """Invalid or missing configuration."""


class FetchError(KCGalleryNetworkError):
    """A classified fetch failure.

    Produced once per failed attempt by the error classifier and raised by the
    retry engine when it aborts or exhausts its attempts.

    Attributes:
        kind: Classification from the closed ErrorKind taxonomy
        retryable: Whether the retry engine would retry this kind for the
            source that produced it
        attempt: 1-based attempt number that produced this error
        max_attempts: Attempt budget of the policy in force (0 if unknown)
        source: Content source value ("primary"/"secondary") if known
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        retryable: bool,
        context: ErrorContext | None = None,
        original_error: BaseException | None = None,
        attempt: int = 1,
        max_attempts: int = 0,
        source: str | None = None,
    ) -> None:
        super().__init__(
            code=kind.error_code,
            message=message,
            context=context,
            original_error=original_error,
        )
        self.kind = kind
        self.retryable = retryable
        self.attempt = attempt
        self.max_attempts = max_attempts
        self.source = source

    @property
    def gave_up(self) -> bool:
        """True once no further attempt will be made for this error."""
        if not self.retryable:
            return True
        return self.max_attempts > 0 and self.attempt >= self.max_attempts

    def with_attempt(self, attempt: int, max_attempts: int) -> FetchError:
        """Return a copy stamped with attempt bookkeeping."""
        clone = FetchError(
            self.kind,
            self.message,
            retryable=self.retryable,
            context=self.context,
            original_error=self.original_error,
            attempt=attempt,
            max_attempts=max_attempts,
            source=self.source,
        )
        clone.__cause__ = self.__cause__
        return clone

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary including classification fields."""
        data = super().to_dict()
        data.update(
            {
                "kind": self.kind.value,
                "retryable": self.retryable,
                "attempt": self.attempt,
                "max_attempts": self.max_attempts,
                "source": self.source,
            },
        )
        return data


class SearchGuidanceError(FetchError):
    """Numeric creator ID searched without selecting a service.

    Raised before any I/O. Never retried, and surfaced with guidance instead
    of a retry message.
    """

    def __init__(self, query: str) -> None:
        super().__init__(
            ErrorKind.INVALID_RESPONSE,
            f"Numeric ID '{query}' requires a specific service",
            retryable=False,
            context=ErrorContext(
                operation="search",
                additional_data={"query": query},
            ),
        )
        self.code = ErrorCode.SEARCH_SERVICE_REQUIRED


class TransportError(Exception):
    """Raw failure reported by a transport collaborator.

    Transports raise this for non-2xx responses and for HTML bodies returned
    where JSON was expected. It is classified before leaving the retry engine.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
        body_snippet: str = "",
        looks_like_html: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.body_snippet = body_snippet
        self.looks_like_html = looks_like_html


__all__ = [
    "DATA_INTEGRITY",
    "NEVER_RETRIED",
    "CacheError",
    "ConfigurationError",
    "ErrorCode",
    "ErrorContext",
    "ErrorKind",
    "FetchError",
    "InfrastructureError",
    "KCGalleryError",
    "KCGalleryNetworkError",
    "PrimitiveContextValue",
    "SearchGuidanceError",
    "TransportError",
]
