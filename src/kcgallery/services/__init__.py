"""KC Gallery Services Module.

Fetch & cache engine services: error classification, retry/backoff,
pagination, caching, search and the catalog client that composes them.
"""

from .blob_store import FileBlobStore, MemoryBlobStore
from .cache_store import CacheEntry, CacheStore, CacheTable, CacheTableStats
from .catalog_client import CatalogClient
from .error_classifier import classify, is_retryable
from .pagination import PaginationCursor, PaginationState
from .retry_engine import AttemptState, RetryAttempt, RetryEngine
from .search_history import HistoryEntry, SearchHistory
from .search_strategy import (
    CachedNameScanStrategy,
    CreatorSearchService,
    IdLookupStrategy,
    NameSearchStrategy,
    SearchStrategy,
)
from .source_resolver import Resolution, SourceResolver
from .transport import RequestsTransport

__all__ = [
    "AttemptState",
    "CacheEntry",
    "CacheStore",
    "CacheTable",
    "CacheTableStats",
    "CachedNameScanStrategy",
    "CatalogClient",
    "CreatorSearchService",
    "FileBlobStore",
    "HistoryEntry",
    "IdLookupStrategy",
    "MemoryBlobStore",
    "NameSearchStrategy",
    "PaginationCursor",
    "PaginationState",
    "RequestsTransport",
    "Resolution",
    "RetryAttempt",
    "RetryEngine",
    "SearchHistory",
    "SearchStrategy",
    "SourceResolver",
    "classify",
    "is_retryable",
]
