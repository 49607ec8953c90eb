"""
KC Gallery Constants Module

Centralized constants for the fetch & cache engine. All magic values and
configuration defaults are defined here so configuration models and
services share a single source of truth.
"""

from .cache import DAY, HOUR, MINUTE, BlobKeys, CacheDefaults, CacheTables, HistoryDefaults
from .cli import CLICommands, CLIDefaults, CLIHelp
from .fetch import BackoffKinds, PaginationDefaults, RetryDefaults, SearchDefaults
from .http_codes import HTTPStatusCodes
from .network import (
    BASE_SECOND,
    CatalogHosts,
    CatalogPaths,
    RequestHeaders,
    RequestTimeouts,
    SecondaryServices,
    ServiceScope,
)
from .system import Application, FileSystem, Logging

__all__ = [
    "BASE_SECOND",
    "Application",
    "FileSystem",
    "Logging",
    "DAY",
    "HOUR",
    "MINUTE",
    "BackoffKinds",
    "CLICommands",
    "CLIDefaults",
    "CLIHelp",
    "BlobKeys",
    "CacheDefaults",
    "CacheTables",
    "CatalogHosts",
    "CatalogPaths",
    "HTTPStatusCodes",
    "HistoryDefaults",
    "PaginationDefaults",
    "RequestHeaders",
    "RequestTimeouts",
    "RetryDefaults",
    "SearchDefaults",
    "SecondaryServices",
    "ServiceScope",
]
