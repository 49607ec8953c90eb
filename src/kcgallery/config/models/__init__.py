"""Configuration domain models."""

from .app_settings import AppSettings, HistorySettings, LoggingSettings
from .cache_settings import CacheSettings, CacheTableSettings
from .fetch_settings import FetchSettings
from .retry_settings import BackoffPolicy, RetryPolicy, RetrySettings
from .source_settings import SourceSettings, normalize_hosts

__all__ = [
    "AppSettings",
    "BackoffPolicy",
    "CacheSettings",
    "CacheTableSettings",
    "FetchSettings",
    "HistorySettings",
    "LoggingSettings",
    "RetryPolicy",
    "RetrySettings",
    "SourceSettings",
    "normalize_hosts",
]
