"""Creator search Strategy pattern implementation.

Design:
- SearchStrategy (ABC): common interface
- IdLookupStrategy: numeric query plus a selected service, direct profile fetch
- NameSearchStrategy: name search through the resolver service
- CachedNameScanStrategy: offline scan over cached creators (degraded mode)

CreatorSearchService composes the three: ID lookup first, name search as the
fallback, and the cache scan when name search itself fails.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Protocol

from kcgallery.services.cache_store import CacheTable
from kcgallery.shared.constants import SearchDefaults, ServiceScope
from kcgallery.shared.errors import FetchError, SearchGuidanceError
from kcgallery.shared.models import CreatorRecord

logger = logging.getLogger(__name__)


def is_numeric_query(query: str) -> bool:
    """True for queries made only of ASCII digits."""
    return query.isascii() and query.isdigit()


def is_any_service(service_id: str | None) -> bool:
    """True when no specific service is selected."""
    return service_id is None or service_id.strip().lower() in ServiceScope.ANY


class CreatorLookup(Protocol):
    """Catalog operations the search strategies depend on."""

    async def get_creator(self, service: str, creator_id: str) -> CreatorRecord: ...

    async def search_creators_by_name(
        self,
        query: str,
        service_id: str | None = None,
    ) -> list[CreatorRecord]: ...


class SearchStrategy(ABC):
    """Abstract base class for creator search strategies."""

    name: str = "base"

    @abstractmethod
    async def search(self, query: str, service_id: str | None) -> list[CreatorRecord]:
        """Search for creators matching ``query``.

        Args:
            query: Stripped, non-empty query
            service_id: Selected service or None for all services

        Returns:
            Matching creators, best first
        """
        ...


class IdLookupStrategy(SearchStrategy):
    """Fetch one creator profile by ID."""

    name = "id_lookup"

    def __init__(self, lookup: CreatorLookup) -> None:
        self._lookup = lookup

    async def search(self, query: str, service_id: str | None) -> list[CreatorRecord]:
        if service_id is None or is_any_service(service_id):
            raise SearchGuidanceError(query)
        creator = await self._lookup.get_creator(service_id.strip().lower(), query)
        return [creator]


class NameSearchStrategy(SearchStrategy):
    """Search creators by name through the catalog client."""

    name = "name_search"

    def __init__(self, lookup: CreatorLookup) -> None:
        self._lookup = lookup

    async def search(self, query: str, service_id: str | None) -> list[CreatorRecord]:
        return await self._lookup.search_creators_by_name(query, service_id)


class CachedNameScanStrategy(SearchStrategy):
    """Case-insensitive substring scan over cached creator records.

    Never performs I/O, so it is used when the name-search service is down.
    """

    name = "cached_scan"

    def __init__(self, creators: CacheTable[CreatorRecord]) -> None:
        self._creators = creators

    async def search(self, query: str, service_id: str | None) -> list[CreatorRecord]:
        needle = query.lower()
        service = None if is_any_service(service_id) else (service_id or "").strip().lower()
        matches = [
            creator
            for creator in self._creators.values()
            if needle in creator.name.lower()
            and (service is None or creator.service.lower() == service)
        ]
        # Exact names first, then most favorited
        matches.sort(key=lambda c: (c.name.lower() != needle, -c.favorited))
        return matches


class CreatorSearchService:
    """ID-first, name-fallback creator search.

    Args:
        id_strategy: Direct profile lookup for numeric queries
        name_strategy: Remote name search
        fallback_strategy: Offline scan used when name search fails
        top_n: Maximum number of results returned
    """

    def __init__(
        self,
        id_strategy: SearchStrategy,
        name_strategy: SearchStrategy,
        fallback_strategy: SearchStrategy,
        top_n: int = SearchDefaults.TOP_N_RESULTS,
    ) -> None:
        self.id_strategy = id_strategy
        self.name_strategy = name_strategy
        self.fallback_strategy = fallback_strategy
        self.top_n = top_n

    async def search(self, query: str, service_id: str | None = None) -> list[CreatorRecord]:
        """Search creators.

        Raises:
            SearchGuidanceError: Numeric query without a selected service.
                Raised before any network call.
        """
        query = query.strip()
        if not query:
            return []

        if is_numeric_query(query):
            if is_any_service(service_id):
                raise SearchGuidanceError(query)
            try:
                results = await self.id_strategy.search(query, service_id)
            except FetchError as e:
                logger.info(
                    "ID lookup for %s/%s failed (%s), falling back to name search",
                    service_id,
                    query,
                    e.kind.value,
                )
            else:
                return results[: self.top_n]

        try:
            results = await self.name_strategy.search(query, service_id)
        except FetchError as e:
            logger.warning(
                "Name search for '%s' failed (%s), scanning cached creators",
                query,
                e.kind.value,
            )
            results = await self.fallback_strategy.search(query, service_id)
        return results[: self.top_n]


__all__ = [
    "CachedNameScanStrategy",
    "CreatorLookup",
    "CreatorSearchService",
    "IdLookupStrategy",
    "NameSearchStrategy",
    "SearchStrategy",
    "is_any_service",
    "is_numeric_query",
]
