"""Fetch configuration model: pagination, search limits and timeouts."""

from __future__ import annotations

from pydantic import BaseModel, Field

from kcgallery.shared.constants import PaginationDefaults, RequestTimeouts, SearchDefaults


class FetchSettings(BaseModel):
    """Pagination and per-request limits."""

    page_size: int = Field(
        default=PaginationDefaults.PAGE_SIZE,
        gt=0,
        description="Items requested per listing page",
    )
    server_page_size: int = Field(
        default=PaginationDefaults.SERVER_PAGE_SIZE,
        gt=0,
        description="Largest page the catalog API serves; a page this long never ends a listing",
    )
    max_buffered_items: int = Field(
        default=PaginationDefaults.MAX_BUFFERED_ITEMS,
        gt=0,
        description="Items kept in memory per listing (oldest trimmed first)",
    )
    top_n_search_results: int = Field(
        default=SearchDefaults.TOP_N_RESULTS,
        gt=0,
        description="Maximum creators returned by a search",
    )
    request_timeout: float = Field(
        default=RequestTimeouts.CATALOG,
        gt=0,
        description="Per-attempt catalog request timeout in seconds",
    )
    search_timeout: float = Field(
        default=RequestTimeouts.NAME_SEARCH,
        gt=0,
        description="Per-attempt name-search request timeout in seconds",
    )


__all__ = ["FetchSettings"]
