"""
Cache Configuration Constants

Default TTLs and capacity limits for each cache table, plus the blob keys
used when tables are persisted.
"""

from .network import BASE_SECOND

MINUTE = 60 * BASE_SECOND
HOUR = 60 * MINUTE
DAY = 24 * HOUR


class CacheTables:
    """Names of the cache tables owned by the cache store."""

    CREATORS = "creators"
    POST_PAGES = "post_pages"
    POSTS = "posts"
    NAME_SEARCH = "name_search"
    LINKS = "links"
    COMMENTS = "comments"


class CacheDefaults:
    """Default TTL (seconds) and capacity per cache table.

    Posts change roughly twice as often as creator profiles, so their TTL is
    half the creator TTL.
    """

    CREATOR_TTL = 24 * HOUR
    CREATOR_MAX_ENTRIES = 1000

    POST_PAGE_TTL = CREATOR_TTL / 2
    POST_PAGE_MAX_ENTRIES = 500

    POST_TTL = CREATOR_TTL / 2
    POST_MAX_ENTRIES = 500

    NAME_SEARCH_TTL = 1 * HOUR
    NAME_SEARCH_MAX_ENTRIES = 200

    LINKS_TTL = CREATOR_TTL
    LINKS_MAX_ENTRIES = 500

    COMMENTS_TTL = POST_TTL
    COMMENTS_MAX_ENTRIES = 500

    FLUSH_INTERVAL = 5 * MINUTE
    BLOB_DIRECTORY = ".kcgallery/cache"


class BlobKeys:
    """Blob store keys."""

    TABLE_PREFIX = "cache_table:"
    SEARCH_HISTORY = "search_history"
    FORMAT_VERSION = 1


class HistoryDefaults:
    """Search history limits."""

    MAX_ENTRIES = 50
    RETENTION_DAYS = 30
