"""Catalog client: the fetch orchestrator.

CatalogClient composes the engine parts for the presentation layer. For each
request it resolves the content source and hosts, runs the transport call
through the retry engine, validates the payload into typed entities and
writes successful results to the cache store. Failed or stale fetches never
touch the cache.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from typing import Any, TypeVar
from urllib.parse import quote, urlencode

from pydantic import TypeAdapter

from kcgallery.config.models.fetch_settings import FetchSettings
from kcgallery.config.models.retry_settings import RetryPolicy, RetrySettings
from kcgallery.services.cache_store import CacheStore, CacheTable
from kcgallery.services.pagination import PaginationCursor
from kcgallery.services.retry_engine import RetryCallback, RetryEngine
from kcgallery.services.search_history import SearchHistory
from kcgallery.services.search_strategy import (
    CachedNameScanStrategy,
    CreatorSearchService,
    IdLookupStrategy,
    NameSearchStrategy,
    is_any_service,
)
from kcgallery.services.source_resolver import SourceResolver
from kcgallery.shared.constants import CatalogPaths, RequestHeaders, SearchDefaults
from kcgallery.shared.errors import CacheError, ErrorKind, FetchError
from kcgallery.shared.logging import log_operation_error
from kcgallery.shared.models import (
    CommentRecord,
    ContentSource,
    CreatorLink,
    CreatorRecord,
    CreatorSearchHit,
    EntityKind,
    FetchKey,
    PostRecord,
)
from kcgallery.shared.protocols import Transport

logger = logging.getLogger(__name__)

V = TypeVar("V")

_POST_LIST = TypeAdapter(list[PostRecord])
_LINK_LIST = TypeAdapter(list[CreatorLink])
_COMMENT_LIST = TypeAdapter(list[CommentRecord])

RECENT_LISTING = "recent"


def parse_creator(payload: Any, service: str, creator_id: str) -> CreatorRecord:
    """Validate a profile payload, filling identity fields from the request."""
    if isinstance(payload, dict):
        payload = {"id": creator_id, "service": service, **payload}
    return CreatorRecord.model_validate(payload)


def parse_post_list(payload: Any) -> list[PostRecord]:
    """Validate a listing payload: a bare list or ``{"posts": [...]}``."""
    if isinstance(payload, dict) and "posts" in payload:
        payload = payload["posts"]
    return _POST_LIST.validate_python(payload)


def parse_creator_links(payload: Any) -> list[CreatorLink]:
    """Validate a linked-accounts payload: a list, or one bare object."""
    if isinstance(payload, dict):
        payload = [payload]
    return _LINK_LIST.validate_python(payload)


def parse_comments(payload: Any) -> list[CommentRecord]:
    """Validate a comments payload.

    Accepts a bare list, ``{"comments": [...]}`` or a single comment object.
    """
    if isinstance(payload, dict):
        comments = payload.get("comments")
        payload = comments if isinstance(comments, list) else [payload]
    return _COMMENT_LIST.validate_python(payload)


def parse_search_hits(
    payload: Any,
    limit: int = SearchDefaults.MAX_PARSED_HITS,
) -> list[CreatorSearchHit]:
    """Validate a name-search payload of the form ``{"data": [...]}``.

    Individual malformed hits are skipped. A payload that is not a JSON
    object is rejected.

    Raises:
        ValueError: If the payload is not a JSON object
    """
    if not isinstance(payload, dict):
        msg = (
            "Unexpected name search payload: expected JSON object, "
            f"got {type(payload).__name__}"
        )
        raise ValueError(msg)
    raw_hits = payload.get("data")
    if not isinstance(raw_hits, list):
        return []

    hits: list[CreatorSearchHit] = []
    for raw in raw_hits[:limit]:
        if not isinstance(raw, dict):
            continue
        try:
            hits.append(CreatorSearchHit.model_validate(raw))
        except ValueError as e:
            logger.debug("Skipping malformed search hit: %s", e)
    return hits


class CatalogClient:
    """Fetch orchestrator over both content sources.

    Args:
        transport: Performs the HTTP requests
        cache_store: Cache tables, one per entity class
        resolver: Service to source/host routing
        retry_engine: Attempt loop shared by every request
        retry_settings: Retry policy per source
        fetch_settings: Page size, buffer bound, timeouts, search limits
        history: Optional search history recorder
        default_source: Source used by the latest-posts listings
    """

    def __init__(
        self,
        transport: Transport,
        cache_store: CacheStore,
        resolver: SourceResolver,
        retry_engine: RetryEngine,
        retry_settings: RetrySettings | None = None,
        fetch_settings: FetchSettings | None = None,
        *,
        history: SearchHistory | None = None,
        default_source: ContentSource = ContentSource.PRIMARY,
    ) -> None:
        self._transport = transport
        self.cache = cache_store
        self.resolver = resolver
        self.retry_engine = retry_engine
        self.retry_settings = retry_settings or RetrySettings()
        self.fetch_settings = fetch_settings or FetchSettings()
        self.history = history
        self._latest_source = default_source

        self._creator_cursors: dict[FetchKey, PaginationCursor[PostRecord]] = {}
        self._latest_cursors: dict[str, PaginationCursor[PostRecord]] = {}

        self.search_service = CreatorSearchService(
            id_strategy=IdLookupStrategy(self),
            name_strategy=NameSearchStrategy(self),
            fallback_strategy=CachedNameScanStrategy(self.cache.creators),
            top_n=self.fetch_settings.top_n_search_results,
        )

    @property
    def latest_source(self) -> ContentSource:
        return self._latest_source

    def policy_for(self, source: ContentSource) -> RetryPolicy:
        return self.retry_settings.policy_for(source)

    # ------------------------------------------------------------------
    # URL building
    # ------------------------------------------------------------------

    @staticmethod
    def creator_url(host: str, service: str, creator_id: str) -> str:
        return host + CatalogPaths.CREATOR_PROFILE.format(
            service=quote(service, safe=""),
            creator_id=quote(creator_id, safe=""),
        )

    @staticmethod
    def creator_posts_url(host: str, service: str, creator_id: str, offset: int, limit: int) -> str:
        path = CatalogPaths.CREATOR_POSTS.format(
            service=quote(service, safe=""),
            creator_id=quote(creator_id, safe=""),
        )
        params = {CatalogPaths.OFFSET_PARAM: offset, CatalogPaths.LIMIT_PARAM: limit}
        return f"{host}{path}?{urlencode(params)}"

    @staticmethod
    def creator_links_url(host: str, service: str, creator_id: str) -> str:
        return host + CatalogPaths.CREATOR_LINKS.format(
            service=quote(service, safe=""),
            creator_id=quote(creator_id, safe=""),
        )

    @staticmethod
    def post_url(host: str, service: str, creator_id: str, post_id: str) -> str:
        return host + CatalogPaths.POST.format(
            service=quote(service, safe=""),
            creator_id=quote(creator_id, safe=""),
            post_id=quote(post_id, safe=""),
        )

    @staticmethod
    def comments_url(host: str, service: str, creator_id: str, post_id: str) -> str:
        return host + CatalogPaths.POST_COMMENTS.format(
            service=quote(service, safe=""),
            creator_id=quote(creator_id, safe=""),
            post_id=quote(post_id, safe=""),
        )

    @staticmethod
    def recent_posts_url(host: str, offset: int, limit: int, query: str = "") -> str:
        params: dict[str, str | int] = {
            CatalogPaths.OFFSET_PARAM: offset,
            CatalogPaths.LIMIT_PARAM: limit,
        }
        if query.strip():
            params[CatalogPaths.QUERY_PARAM] = query.strip()
        return f"{host}{CatalogPaths.RECENT_POSTS}?{urlencode(params)}"

    @staticmethod
    def name_search_url(search_host: str, query: str) -> str:
        return f"{search_host}?{urlencode({CatalogPaths.KEYWORD_PARAM: query})}"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _request_api(self, url: str) -> Any:
        return await self._transport.request(
            url,
            dict(RequestHeaders.API),
            self.fetch_settings.request_timeout,
        )

    async def _request_search(self, url: str) -> Any:
        return await self._transport.request(
            url,
            dict(RequestHeaders.SEARCH),
            self.fetch_settings.search_timeout,
        )

    async def _cached_fetch(
        self,
        table: CacheTable[V],
        key: FetchKey,
        op: Callable[[str], Awaitable[V]],
        hosts: tuple[str, ...],
        *,
        operation: str,
        use_cache: bool = True,
        on_retry: RetryCallback | None = None,
    ) -> V:
        if use_cache:
            cached = table.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return cached

        value = await self.retry_engine.execute(
            op,
            self.policy_for(key.source),
            hosts,
            source=key.source,
            operation=operation,
            on_retry=on_retry,
        )
        table.put(key, value, key.source)
        await self._flush_if_due()
        return value

    async def _flush_if_due(self) -> None:
        if not self.cache.settings.persist:
            return
        try:
            await self.cache.flush_if_due()
        except CacheError as e:
            log_operation_error(logger, e, operation="cache_flush")

    # ------------------------------------------------------------------
    # Single entities
    # ------------------------------------------------------------------

    async def get_creator(
        self,
        service: str,
        creator_id: str,
        *,
        use_cache: bool = True,
        on_retry: RetryCallback | None = None,
    ) -> CreatorRecord:
        """Fetch a creator profile.

        Raises:
            FetchError: When the retry engine gives up
        """
        service = service.strip().lower()
        creator_id = creator_id.strip()
        resolution = self.resolver.resolve(service)
        key = FetchKey(resolution.source, EntityKind.CREATOR, f"{service}/{creator_id}")

        async def op(host: str) -> CreatorRecord:
            payload = await self._request_api(self.creator_url(host, service, creator_id))
            return parse_creator(payload, service, creator_id)

        return await self._cached_fetch(
            self.cache.creators,
            key,
            op,
            resolution.hosts,
            operation="get_creator",
            use_cache=use_cache,
            on_retry=on_retry,
        )

    async def get_post(
        self,
        service: str,
        creator_id: str,
        post_id: str,
        *,
        use_cache: bool = True,
        on_retry: RetryCallback | None = None,
    ) -> PostRecord:
        """Fetch a single post with its full content.

        Raises:
            FetchError: When the retry engine gives up
        """
        service = service.strip().lower()
        creator_id = creator_id.strip()
        post_id = post_id.strip()
        resolution = self.resolver.resolve(service)
        key = FetchKey(
            resolution.source,
            EntityKind.POST,
            f"{service}/{creator_id}/{post_id}",
        )

        async def op(host: str) -> PostRecord:
            payload = await self._request_api(self.post_url(host, service, creator_id, post_id))
            return PostRecord.model_validate(payload)

        return await self._cached_fetch(
            self.cache.posts,
            key,
            op,
            resolution.hosts,
            operation="get_post",
            use_cache=use_cache,
            on_retry=on_retry,
        )

    async def get_creator_links(
        self,
        service: str,
        creator_id: str,
        *,
        use_cache: bool = True,
        on_retry: RetryCallback | None = None,
    ) -> list[CreatorLink]:
        """Fetch the accounts linked to a creator.

        Raises:
            FetchError: When the retry engine gives up
        """
        service = service.strip().lower()
        creator_id = creator_id.strip()
        resolution = self.resolver.resolve(service)
        key = FetchKey(resolution.source, EntityKind.LINKS, f"{service}/{creator_id}")

        async def op(host: str) -> list[CreatorLink]:
            payload = await self._request_api(self.creator_links_url(host, service, creator_id))
            return parse_creator_links(payload)

        return await self._cached_fetch(
            self.cache.links,
            key,
            op,
            resolution.hosts,
            operation="get_creator_links",
            use_cache=use_cache,
            on_retry=on_retry,
        )

    async def get_comments(
        self,
        service: str,
        creator_id: str,
        post_id: str,
        *,
        use_cache: bool = True,
        on_retry: RetryCallback | None = None,
    ) -> list[CommentRecord]:
        """Fetch the comments of a post.

        The catalog answers 404 for posts without comments, so NotFound
        yields an empty list. That empty result is not cached.

        Raises:
            FetchError: When the retry engine gives up for any other reason
        """
        service = service.strip().lower()
        creator_id = creator_id.strip()
        post_id = post_id.strip()
        resolution = self.resolver.resolve(service)
        key = FetchKey(
            resolution.source,
            EntityKind.COMMENTS,
            f"{service}/{creator_id}/{post_id}",
        )

        async def op(host: str) -> list[CommentRecord]:
            payload = await self._request_api(self.comments_url(host, service, creator_id, post_id))
            return parse_comments(payload)

        try:
            return await self._cached_fetch(
                self.cache.comments,
                key,
                op,
                resolution.hosts,
                operation="get_comments",
                use_cache=use_cache,
                on_retry=on_retry,
            )
        except FetchError as e:
            if e.kind is not ErrorKind.NOT_FOUND:
                raise
            logger.debug("No comments for %s", key)
            return []

    async def search_creators_by_name(
        self,
        query: str,
        service_id: str | None = None,
        *,
        on_retry: RetryCallback | None = None,
    ) -> list[CreatorRecord]:
        """Search creators by name through the resolver service.

        Results are cached per (source, query) and every hit is also seeded
        into the creators table so the offline scan can find it later.

        Raises:
            FetchError: When the retry engine gives up
        """
        query = query.strip()
        source = self.resolver.source_for(service_id)
        key = FetchKey(source, EntityKind.NAME_SEARCH, query.casefold())

        async def op(host: str) -> list[CreatorRecord]:
            payload = await self._request_search(self.name_search_url(host, query))
            return [hit.to_creator() for hit in parse_search_hits(payload)]

        creators = await self._cached_fetch(
            self.cache.name_search,
            key,
            op,
            self.resolver.search_hosts_for(source),
            operation="search_creators_by_name",
            on_retry=on_retry,
        )

        for creator in creators:
            if creator.id and creator.service:
                self.cache.creators.put(
                    FetchKey(
                        self.resolver.source_for(creator.service),
                        EntityKind.CREATOR,
                        f"{creator.service.lower()}/{creator.id}",
                    ),
                    creator,
                    source,
                )

        if not is_any_service(service_id):
            wanted = (service_id or "").strip().lower()
            creators = [c for c in creators if c.service.lower() == wanted]
        return creators

    async def search(self, query: str, service_id: str | None = None) -> list[CreatorRecord]:
        """ID-first, name-fallback creator search.

        Raises:
            SearchGuidanceError: Numeric query without a selected service
        """
        if self.history is not None:
            self.history.record(query, service_id)
        return await self.search_service.search(query, service_id)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def _new_cursor(self, key: FetchKey) -> PaginationCursor[PostRecord]:
        return PaginationCursor(
            key,
            self.retry_engine,
            self.policy_for(key.source),
            self.resolver.hosts_for(key.source),
            page_size=self.fetch_settings.page_size,
            max_buffered_items=self.fetch_settings.max_buffered_items,
            server_page_size=self.fetch_settings.server_page_size,
        )

    def creator_posts_cursor(self, service: str, creator_id: str) -> PaginationCursor[PostRecord]:
        """Cursor over one creator's posts (created on first use)."""
        service = service.strip().lower()
        creator_id = creator_id.strip()
        source = self.resolver.source_for(service)
        key = FetchKey(source, EntityKind.POSTS, f"{service}/{creator_id}")
        cursor = self._creator_cursors.get(key)
        if cursor is None:
            cursor = self._new_cursor(key)
            self._creator_cursors[key] = cursor
        return cursor

    def latest_posts_cursor(
        self,
        source: ContentSource | None = None,
        query: str = "",
    ) -> PaginationCursor[PostRecord]:
        """Cursor over the recent-posts listing for ``query``.

        Passing a source different from the cursor's current one switches it.
        """
        query = query.strip()
        cursor = self._latest_cursors.get(query)
        if cursor is None:
            listing = f"{RECENT_LISTING}/{query}" if query else RECENT_LISTING
            key = FetchKey(source or self._latest_source, EntityKind.POSTS, listing)
            cursor = self._new_cursor(key)
            self._latest_cursors[query] = cursor
        elif source is not None and cursor.source is not source:
            cursor.switch_source(source, self.resolver.hosts_for(source), self.policy_for(source))
        return cursor

    async def _load(
        self,
        cursor: PaginationCursor[PostRecord],
        page_url: Callable[[str, int, int], str],
        *,
        refresh: bool,
        on_retry: RetryCallback | None,
    ) -> int:
        listing = cursor.key
        if refresh:
            prefix = str(listing.with_offset(0)).rsplit(FetchKey.SEPARATOR, 1)[0] + FetchKey.SEPARATOR
            self.cache.post_pages.invalidate_where(lambda k: k.startswith(prefix))
            cursor.reset()

        cached_offsets: set[int] = set()

        async def fetch_page(host: str, offset: int, page_size: int) -> list[PostRecord]:
            cached = self.cache.post_pages.get(listing.with_offset(offset))
            if cached is not None:
                cached_offsets.add(offset)
                return cached
            payload = await self._request_api(page_url(host, offset, page_size))
            return parse_post_list(payload)

        def on_page(offset: int, page: list[PostRecord]) -> None:
            if offset not in cached_offsets:
                self.cache.post_pages.put(listing.with_offset(offset), page, listing.source)

        appended = await cursor.load_page(fetch_page, on_page, on_retry)
        await self._flush_if_due()
        return appended

    async def load_creator_posts(
        self,
        service: str,
        creator_id: str,
        *,
        refresh: bool = False,
        on_retry: RetryCallback | None = None,
    ) -> int:
        """Load the next page of a creator's posts.

        Returns:
            Number of posts appended to the creator's cursor
        """
        service = service.strip().lower()
        creator_id = creator_id.strip()
        cursor = self.creator_posts_cursor(service, creator_id)
        return await self._load(
            cursor,
            lambda host, offset, size: self.creator_posts_url(host, service, creator_id, offset, size),
            refresh=refresh,
            on_retry=on_retry,
        )

    async def load_latest_posts(
        self,
        query: str = "",
        *,
        refresh: bool = False,
        on_retry: RetryCallback | None = None,
    ) -> int:
        """Load the next page of recent posts on the current latest source."""
        query = query.strip()
        cursor = self.latest_posts_cursor(query=query)
        return await self._load(
            cursor,
            lambda host, offset, size: self.recent_posts_url(host, offset, size, query),
            refresh=refresh,
            on_retry=on_retry,
        )

    def switch_source(self, source: ContentSource) -> None:
        """Switch the latest-posts listings to another source.

        Every latest-posts cursor is reset; loads still in flight for the old
        source are discarded when they complete.
        """
        if source is self._latest_source:
            return
        logger.info("Switching latest posts source %s -> %s", self._latest_source.value, source.value)
        self._latest_source = source
        for cursor in self._latest_cursors.values():
            cursor.switch_source(source, self.resolver.hosts_for(source), self.policy_for(source))

    # ------------------------------------------------------------------
    # Lifecycle and diagnostics
    # ------------------------------------------------------------------

    async def restore(self) -> int:
        """Reload the persisted cache and search history.

        Storage failures are logged; the engine starts with whatever could
        be read.
        """
        restored = 0
        if self.cache.settings.persist:
            restored = await self.cache.restore()
        if self.history is not None:
            try:
                await self.history.load()
            except CacheError as e:
                log_operation_error(logger, e, operation="history_load")
        return restored

    async def close(self) -> None:
        """Flush the cache and search history. Storage failures are logged."""
        if self.cache.settings.persist:
            try:
                await self.cache.flush()
            except CacheError as e:
                log_operation_error(logger, e, operation="cache_flush")
        if self.history is not None:
            try:
                await self.history.save()
            except CacheError as e:
                log_operation_error(logger, e, operation="history_save")

    def get_stats(self) -> dict[str, Any]:
        """Cache, retry and cursor statistics."""
        cursors = {
            str(cursor.key): {
                "items": len(cursor.items),
                "offset": cursor.offset,
                "has_more": cursor.has_more,
                "loading": cursor.is_loading,
            }
            for cursor in [*self._creator_cursors.values(), *self._latest_cursors.values()]
        }
        return {
            "latest_source": self._latest_source.value,
            "cache": {name: asdict(stats) for name, stats in self.cache.stats().items()},
            "retry": asdict(self.retry_engine.stats),
            "cursors": cursors,
            "history_size": len(self.history) if self.history is not None else 0,
        }


__all__ = [
    "CatalogClient",
    "parse_comments",
    "parse_creator",
    "parse_creator_links",
    "parse_post_list",
    "parse_search_hits",
]
