"""Collaborator protocols for dependency inversion.

The engine never performs network or disk I/O itself. It talks to a
Transport for catalog requests and to a BlobStore for persistence, so that
tests and other front ends can plug in their own implementations.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Performs one HTTP GET and returns the decoded JSON body.

    Implementations must enforce ``timeout`` themselves and raise (never
    return) on failure: ``TransportError`` for non-2xx statuses or HTML
    bodies, ``TimeoutError`` on timeouts, ``ConnectionError`` for network
    failures. Any other exception is classified by its message.

    Example:
        >>> transport: Transport = RequestsTransport()
        >>> payload = await transport.request(url, headers, 15.0)
    """

    async def request(self, url: str, headers: dict[str, str], timeout: float) -> Any:
        """Fetch ``url`` and return the decoded JSON payload."""


@runtime_checkable
class BlobStore(Protocol):
    """Key/value store for persisted string blobs."""

    async def load_blob(self, key: str) -> str | None:
        """Return the blob stored under ``key`` or None if absent."""

    async def save_blob(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous blob."""


__all__ = ["BlobStore", "Transport"]
