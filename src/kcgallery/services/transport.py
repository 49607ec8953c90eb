"""requests-backed Transport adapter.

The engine only depends on the Transport protocol. This adapter performs a
blocking ``requests`` GET in a worker thread and turns failures into the
signals the error classifier understands.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import orjson
import requests

from kcgallery.shared.constants import HTTPStatusCodes
from kcgallery.shared.errors import TransportError
from kcgallery.shared.logging import log_api_call
from kcgallery.shared.protocols import Transport

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200


def looks_like_html(body: str) -> bool:
    """True for bodies that start like an HTML document."""
    stripped = body.lstrip()
    return stripped.startswith("<!") or stripped[:5].lower() == "<html"


class RequestsTransport:
    """Transport implementation on top of a shared ``requests.Session``.

    Args:
        session: Optional session to reuse (a new one is created otherwise)
    """

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()

    async def request(self, url: str, headers: dict[str, str], timeout: float) -> Any:
        return await asyncio.to_thread(self._get, url, headers, timeout)

    def _get(self, url: str, headers: dict[str, str], timeout: float) -> Any:
        start = time.perf_counter()
        response = self._session.get(url, headers=headers, timeout=timeout)
        duration_ms = (time.perf_counter() - start) * 1000
        log_api_call(logger, url, status_code=response.status_code, duration_ms=duration_ms)

        body = response.text
        html = looks_like_html(body)
        if not HTTPStatusCodes.is_success(response.status_code) or html:
            snippet = " ".join(body[:SNIPPET_LENGTH].split())
            message = f"HTTP {response.status_code} from {url}"
            if html:
                message += " (HTML page returned instead of JSON)"
            raise TransportError(
                message,
                status_code=response.status_code,
                url=url,
                body_snippet=snippet,
                looks_like_html=html,
            )
        return orjson.loads(response.content)

    def close(self) -> None:
        self._session.close()


__all__ = ["RequestsTransport", "Transport", "looks_like_html"]
