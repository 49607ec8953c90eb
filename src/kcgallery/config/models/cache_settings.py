"""Cache configuration models.

Every cache table is configured independently with its own TTL and
capacity.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from kcgallery.shared.constants import CacheDefaults, CacheTables


class CacheTableSettings(BaseModel):
    """TTL and capacity of one cache table."""

    ttl: float = Field(gt=0, description="Entry time-to-live in seconds")
    max_entries: int = Field(gt=0, description="Maximum number of entries")


class CacheSettings(BaseModel):
    """Cache store configuration.

    Attributes:
        enabled: Disable to bypass the cache entirely (every read misses)
        creators: Creator profile table
        post_pages: Creator post listing pages, keyed by offset
        posts: Single post table
        name_search: Name-search result table
        links: Linked-account lists per creator
        comments: Comment lists per post
        blob_dir: Directory used by the file blob store
        flush_interval: Seconds between periodic flushes to the blob store
        persist: Restore the cache at startup and flush it on close
    """

    enabled: bool = Field(default=True, description="Enable caching")
    creators: CacheTableSettings = Field(
        default_factory=lambda: CacheTableSettings(
            ttl=CacheDefaults.CREATOR_TTL,
            max_entries=CacheDefaults.CREATOR_MAX_ENTRIES,
        ),
    )
    post_pages: CacheTableSettings = Field(
        default_factory=lambda: CacheTableSettings(
            ttl=CacheDefaults.POST_PAGE_TTL,
            max_entries=CacheDefaults.POST_PAGE_MAX_ENTRIES,
        ),
    )
    posts: CacheTableSettings = Field(
        default_factory=lambda: CacheTableSettings(
            ttl=CacheDefaults.POST_TTL,
            max_entries=CacheDefaults.POST_MAX_ENTRIES,
        ),
    )
    name_search: CacheTableSettings = Field(
        default_factory=lambda: CacheTableSettings(
            ttl=CacheDefaults.NAME_SEARCH_TTL,
            max_entries=CacheDefaults.NAME_SEARCH_MAX_ENTRIES,
        ),
    )
    links: CacheTableSettings = Field(
        default_factory=lambda: CacheTableSettings(
            ttl=CacheDefaults.LINKS_TTL,
            max_entries=CacheDefaults.LINKS_MAX_ENTRIES,
        ),
    )
    comments: CacheTableSettings = Field(
        default_factory=lambda: CacheTableSettings(
            ttl=CacheDefaults.COMMENTS_TTL,
            max_entries=CacheDefaults.COMMENTS_MAX_ENTRIES,
        ),
    )
    blob_dir: Path = Field(
        default_factory=lambda: Path.home() / CacheDefaults.BLOB_DIRECTORY,
        description="Directory for persisted cache blobs",
    )
    flush_interval: float = Field(
        default=CacheDefaults.FLUSH_INTERVAL,
        ge=0,
        description="Seconds between periodic flushes (0 flushes on every write batch)",
    )
    persist: bool = Field(default=True, description="Persist the cache between runs")

    def tables(self) -> dict[str, CacheTableSettings]:
        """Return table settings keyed by table name."""
        return {
            CacheTables.CREATORS: self.creators,
            CacheTables.POST_PAGES: self.post_pages,
            CacheTables.POSTS: self.posts,
            CacheTables.NAME_SEARCH: self.name_search,
            CacheTables.LINKS: self.links,
            CacheTables.COMMENTS: self.comments,
        }


__all__ = ["CacheSettings", "CacheTableSettings"]
