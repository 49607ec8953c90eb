"""Fetch failure classification.

Every raw exception raised while talking to a catalog is mapped onto exactly
one ErrorKind before it leaves the retry engine. Structured signals (exception
type, HTTP status) are checked before falling back to message markers.
"""

from __future__ import annotations

import asyncio
import json

import orjson
import requests
from pydantic import ValidationError

from kcgallery.shared.constants import HTTPStatusCodes
from kcgallery.shared.errors import (
    DATA_INTEGRITY,
    NEVER_RETRIED,
    ErrorContext,
    ErrorKind,
    FetchError,
    TransportError,
)
from kcgallery.shared.models import ContentSource

# Ordered (marker, kind) pairs checked against the lowercased message
MESSAGE_MARKERS: tuple[tuple[tuple[str, ...], ErrorKind], ...] = (
    (("timeout", "timed out"), ErrorKind.TIMEOUT),
    (("404", "not found"), ErrorKind.NOT_FOUND),
    (("429", "rate limit", "too many requests"), ErrorKind.RATE_LIMITED),
    (("503", "502", "500", "unavailable"), ErrorKind.SERVER_UNAVAILABLE),
    (("connection", "socket", "network"), ErrorKind.NETWORK_ERROR),
    (("html",), ErrorKind.INVALID_RESPONSE),
    (("json", "parse"), ErrorKind.PARSE_ERROR),
)


def is_retryable(kind: ErrorKind, source: ContentSource) -> bool:
    """Whether a kind is worth another attempt on the given source.

    NotFound and RateLimited are never retried. Data-integrity failures are
    retried only on the secondary source, whose mirrors intermittently serve
    HTML error pages.
    """
    if kind in NEVER_RETRIED:
        return False
    if kind in DATA_INTEGRITY:
        return source is ContentSource.SECONDARY
    return True


def kind_for_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code onto an ErrorKind."""
    if status_code == HTTPStatusCodes.NOT_FOUND:
        return ErrorKind.NOT_FOUND
    if status_code == HTTPStatusCodes.TOO_MANY_REQUESTS:
        return ErrorKind.RATE_LIMITED
    if status_code == HTTPStatusCodes.REQUEST_TIMEOUT:
        return ErrorKind.TIMEOUT
    if HTTPStatusCodes.is_server_error(status_code):
        return ErrorKind.SERVER_UNAVAILABLE
    return ErrorKind.UNKNOWN


def kind_for_message(message: str) -> ErrorKind:
    """Classify by case-insensitive markers in an error message."""
    lowered = message.lower()
    for markers, kind in MESSAGE_MARKERS:
        if any(marker in lowered for marker in markers):
            return kind
    return ErrorKind.UNKNOWN


def _kind_for(raw: BaseException) -> ErrorKind:
    if isinstance(raw, (TimeoutError, asyncio.TimeoutError, requests.Timeout)):
        return ErrorKind.TIMEOUT
    if isinstance(raw, TransportError):
        if raw.status_code is not None and not HTTPStatusCodes.is_success(raw.status_code):
            return kind_for_status(raw.status_code)
        if raw.looks_like_html:
            return ErrorKind.INVALID_RESPONSE
        return kind_for_message(str(raw))
    if isinstance(raw, (orjson.JSONDecodeError, json.JSONDecodeError, ValidationError)):
        return ErrorKind.PARSE_ERROR
    if isinstance(raw, (ConnectionError, requests.ConnectionError)):
        return ErrorKind.NETWORK_ERROR
    return kind_for_message(str(raw))


def classify(
    raw: BaseException,
    *,
    source: ContentSource,
    operation: str | None = None,
    url: str | None = None,
) -> FetchError:
    """Classify a raw failure into a FetchError.

    An existing FetchError is returned unchanged.

    Args:
        raw: Exception raised by the transport or by payload validation
        source: Source the request was sent to (drives retryability)
        operation: Operation name recorded in the error context
        url: Request URL recorded in the error context

    Returns:
        Classified FetchError chained to ``raw``
    """
    if isinstance(raw, FetchError):
        return raw

    kind = _kind_for(raw)
    additional: dict[str, str | int] = {"exception_type": type(raw).__name__}
    if isinstance(raw, TransportError):
        url = url or raw.url
        if raw.status_code is not None:
            additional["status_code"] = raw.status_code

    error = FetchError(
        kind,
        str(raw) or type(raw).__name__,
        retryable=is_retryable(kind, source),
        context=ErrorContext(operation=operation, url=url, additional_data=additional),
        original_error=raw,
        source=source.value,
    )
    error.__cause__ = raw
    return error


__all__ = ["MESSAGE_MARKERS", "classify", "is_retryable", "kind_for_message", "kind_for_status"]
