"""Bounded pagination cursor.

One cursor per logical listing (source, kind, entity id). The cursor tracks
the server offset, keeps at most ``max_buffered_items`` items in memory
(oldest dropped first) and serializes its own loads: a load requested while
another is in flight is a no-op, not queued.

Resetting the cursor or switching its source bumps a generation counter.
A load that completes for an older generation is discarded: nothing is
appended and ``on_page`` is not called, so stale pages never reach the cache.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from kcgallery.config.models.retry_settings import RetryPolicy
from kcgallery.services.retry_engine import RetryCallback, RetryEngine
from kcgallery.shared.constants import PaginationDefaults
from kcgallery.shared.models import ContentSource, FetchKey

logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchPage = Callable[[str, int, int], Awaitable[list[T]]]
OnPage = Callable[[int, list[T]], None]


@dataclass(frozen=True)
class PaginationState(Generic[T]):
    """Immutable snapshot of a cursor."""

    items: tuple[T, ...]
    offset: int
    has_more: bool
    page_size: int
    is_loading: bool
    source: ContentSource
    generation: int


class PaginationCursor(Generic[T]):
    """Offset cursor over a paginated listing.

    Args:
        key: Listing key (its offset is ignored)
        retry_engine: Engine driving each page fetch
        policy: Retry policy of the listing's source
        hosts: Host candidates of the listing's source
        page_size: Items requested per page
        max_buffered_items: Upper bound on ``items``
        server_page_size: Largest page the upstream returns. A page shorter
            than both this and ``page_size`` ends the listing. Defaults to
            ``page_size``.
    """

    def __init__(
        self,
        key: FetchKey,
        retry_engine: RetryEngine,
        policy: RetryPolicy,
        hosts: Sequence[str],
        *,
        page_size: int = PaginationDefaults.PAGE_SIZE,
        max_buffered_items: int = PaginationDefaults.MAX_BUFFERED_ITEMS,
        server_page_size: int | None = None,
    ) -> None:
        if page_size <= 0:
            msg = f"page_size must be positive, got {page_size}"
            raise ValueError(msg)
        if max_buffered_items <= 0:
            msg = f"max_buffered_items must be positive, got {max_buffered_items}"
            raise ValueError(msg)
        if server_page_size is not None and server_page_size <= 0:
            msg = f"server_page_size must be positive, got {server_page_size}"
            raise ValueError(msg)

        self._key = key.with_offset(0)
        self._engine = retry_engine
        self._policy = policy
        self._hosts = tuple(hosts)
        self.page_size = page_size
        self.max_buffered_items = max_buffered_items
        self.server_page_size = server_page_size or page_size

        self._items: list[T] = []
        self._offset = 0
        self._has_more = True
        self._loading = False
        self._generation = 0

    @property
    def key(self) -> FetchKey:
        return self._key

    @property
    def source(self) -> ContentSource:
        return self._key.source

    @property
    def items(self) -> list[T]:
        return list(self._items)

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def state(self) -> PaginationState[T]:
        return PaginationState(
            items=tuple(self._items),
            offset=self._offset,
            has_more=self._has_more,
            page_size=self.page_size,
            is_loading=self._loading,
            source=self._key.source,
            generation=self._generation,
        )

    def reset(self) -> None:
        """Clear the buffer and invalidate any in-flight load."""
        self._generation += 1
        self._items.clear()
        self._offset = 0
        self._has_more = True
        self._loading = False

    def switch_source(
        self,
        source: ContentSource,
        hosts: Sequence[str],
        policy: RetryPolicy,
    ) -> None:
        """Rebind the cursor to another source and start over."""
        self._key = FetchKey(source, self._key.kind, self._key.entity_id)
        self._hosts = tuple(hosts)
        self._policy = policy
        self.reset()

    async def load_page(
        self,
        fetch_page: FetchPage[T],
        on_page: OnPage[T] | None = None,
        on_retry: RetryCallback | None = None,
    ) -> int:
        """Fetch the next page and append it.

        Args:
            fetch_page: ``fetch_page(host, offset, page_size)`` returning a page
            on_page: Called as ``on_page(offset, page)`` for accepted non-empty
                pages only
            on_retry: Forwarded to the retry engine

        Returns:
            Number of items appended (0 for no-ops, empty or stale pages)

        Raises:
            FetchError: When the retry engine gives up
        """
        if self._loading or not self._has_more:
            return 0

        generation = self._generation
        offset = self._offset
        page_size = self.page_size
        self._loading = True
        try:
            page = await self._engine.execute(
                lambda host: fetch_page(host, offset, page_size),
                self._policy,
                self._hosts,
                source=self._key.source,
                operation=f"load_{self._key.kind.value}",
                on_retry=on_retry,
            )
        finally:
            if generation == self._generation:
                self._loading = False

        if generation != self._generation:
            logger.debug(
                "Discarding stale page for %s (generation %d, current %d)",
                self._key,
                generation,
                self._generation,
            )
            return 0

        if not page:
            self._has_more = False
            return 0

        self._items.extend(page)
        self._offset = offset + len(page)
        self._has_more = len(page) >= min(page_size, self.server_page_size)
        overflow = len(self._items) - self.max_buffered_items
        if overflow > 0:
            del self._items[:overflow]

        if on_page is not None:
            on_page(offset, list(page))
        return len(page)

    async def load_more(
        self,
        fetch_page: FetchPage[T],
        on_page: OnPage[T] | None = None,
        on_retry: RetryCallback | None = None,
    ) -> int:
        return await self.load_page(fetch_page, on_page, on_retry)

    async def refresh(
        self,
        fetch_page: FetchPage[T],
        on_page: OnPage[T] | None = None,
        on_retry: RetryCallback | None = None,
    ) -> int:
        """Reset, then load the first page."""
        self.reset()
        return await self.load_page(fetch_page, on_page, on_retry)


__all__ = ["FetchPage", "OnPage", "PaginationCursor", "PaginationState"]
