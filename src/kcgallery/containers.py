"""Dependency Injection container for KC Gallery.

This module provides a centralized DI container using dependency-injector
to wire the fetch & cache engine together.

The container manages:
- Settings (Singleton)
- Blob store, cache store and search history (Singletons sharing one store)
- Source resolver and retry engine
- Transport (requests adapter)
- Catalog client and its creator search service
"""

from __future__ import annotations

from dependency_injector import containers, providers

from kcgallery.config.loader import get_config
from kcgallery.services import (
    CacheStore,
    CatalogClient,
    FileBlobStore,
    RequestsTransport,
    RetryEngine,
    SearchHistory,
    SourceResolver,
)


class Container(containers.DeclarativeContainer):
    """Dependency Injection container for KC Gallery services.

    Example:
        >>> container = Container()
        >>> client = container.catalog_client()
        >>> creator = await client.get_creator("patreon", "12345")
    """

    # Configuration
    config = providers.Singleton(get_config)

    # Persistence
    blob_store = providers.Singleton(
        FileBlobStore,
        directory=providers.Callable(lambda config: config.cache.blob_dir, config=config),
    )

    cache_store = providers.Singleton(
        CacheStore,
        settings=providers.Callable(lambda config: config.cache, config=config),
        blob_store=blob_store,
    )

    search_history = providers.Singleton(
        SearchHistory,
        settings=providers.Callable(lambda config: config.history, config=config),
        blob_store=blob_store,
    )

    # Routing and retries
    source_resolver = providers.Singleton(
        SourceResolver,
        settings=providers.Callable(lambda config: config.sources, config=config),
    )

    retry_engine = providers.Singleton(RetryEngine)

    # Transport
    transport = providers.Singleton(RequestsTransport)

    # Catalog client
    catalog_client = providers.Singleton(
        CatalogClient,
        transport=transport,
        cache_store=cache_store,
        resolver=source_resolver,
        retry_engine=retry_engine,
        retry_settings=providers.Callable(lambda config: config.retry, config=config),
        fetch_settings=providers.Callable(lambda config: config.fetch, config=config),
        history=search_history,
        default_source=providers.Callable(
            lambda config: config.sources.default_source,
            config=config,
        ),
    )

    search_service = providers.Callable(
        lambda client: client.search_service,
        client=catalog_client,
    )
