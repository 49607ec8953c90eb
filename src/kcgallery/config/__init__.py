"""KC Gallery Configuration Module

This module provides unified access to configuration models and settings
management:
- Settings: Main configuration facade
- Loader functions: get_config, load_settings, reload_config, set_config
- Domain models: retry, cache, fetch, source, history and logging settings
"""

from __future__ import annotations

from .models.settings import Settings
from .models import (
    AppSettings,
    BackoffPolicy,
    CacheSettings,
    CacheTableSettings,
    FetchSettings,
    HistorySettings,
    LoggingSettings,
    RetryPolicy,
    RetrySettings,
    SourceSettings,
)
from .loader import get_config, load_settings, reload_config, set_config

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
    "Settings",
    "SourceSettings",
    "get_config",
    "load_settings",
    "reload_config",
    "set_config",
]
