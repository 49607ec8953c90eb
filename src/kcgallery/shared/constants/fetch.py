"""
Fetch Engine Constants

Retry policies per content source, pagination bounds and search limits.
"""

from .network import BASE_SECOND


class BackoffKinds:
    """Backoff curve identifiers."""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"


class RetryDefaults:
    """Default retry policies.

    The secondary source is slower and flakier: more attempts with
    exponential backoff (1s, 2s, 4s, 8s, 10s...). The primary source uses
    fewer attempts with linear backoff (0.5s, 1.0s, 1.5s...).
    """

    PRIMARY_MAX_ATTEMPTS = 3
    PRIMARY_BACKOFF = BackoffKinds.LINEAR
    PRIMARY_BASE_DELAY = 0.5 * BASE_SECOND

    SECONDARY_MAX_ATTEMPTS = 6
    SECONDARY_BACKOFF = BackoffKinds.EXPONENTIAL
    SECONDARY_BASE_DELAY = 1.0 * BASE_SECOND

    MAX_DELAY = 10 * BASE_SECOND


class PaginationDefaults:
    """Listing page sizes and client-side buffer bound.

    SERVER_PAGE_SIZE is the most posts the catalog API returns per request,
    whatever limit is asked for.
    """

    PAGE_SIZE = 50
    SERVER_PAGE_SIZE = 50
    MAX_BUFFERED_ITEMS = 200


class SearchDefaults:
    """Creator search limits."""

    TOP_N_RESULTS = 5
    MAX_PARSED_HITS = 10
