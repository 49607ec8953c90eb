"""
Network Configuration Constants

This module contains constants for catalog hosts, request headers
and per-attempt timeouts.
"""

from typing import ClassVar

BASE_SECOND = 1.0


class CatalogHosts:
    """Default host candidates per content source.

    Each list is an ordered set of equivalent mirrors; the retry engine
    cycles through them across attempts.
    """

    PRIMARY: ClassVar[tuple[str, ...]] = (
        "https://kemono.cr/api",
        "https://kemono.su/api",
    )
    SECONDARY: ClassVar[tuple[str, ...]] = (
        "https://coomer.st/api",
        "https://coomer.su/api",
    )

    # Appended to bare-domain host entries
    API_PATH = "/api"

    # Name search is served by a separate resolver service
    PRIMARY_SEARCH: ClassVar[tuple[str, ...]] = (
        "https://kemono-api.mbaharip.com/kemono",
    )
    SECONDARY_SEARCH: ClassVar[tuple[str, ...]] = (
        "https://kemono-api.mbaharip.com/coomer",
    )


class SecondaryServices:
    """Service identifiers hosted by the secondary source."""

    IDS: ClassVar[frozenset[str]] = frozenset({"onlyfans", "fansly", "candfans"})


class ServiceScope:
    """Sentinel values meaning "no specific service selected"."""

    ALL = "all"
    ANY: ClassVar[frozenset[str]] = frozenset({"", "all"})


class RequestTimeouts:
    """Per-attempt timeouts enforced by the transport (seconds)."""

    CATALOG = 15 * BASE_SECOND
    NAME_SEARCH = 10 * BASE_SECOND


class RequestHeaders:
    """Default catalog request headers.

    The catalog rejects JSON Accept headers from some clients, so the
    browser-like defaults are kept verbatim.
    """

    USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    SEARCH_USER_AGENT = "KC-Gallery-Viewer/1.0"

    API: ClassVar[dict[str, str]] = {
        "Accept": "text/css",
        "User-Agent": USER_AGENT,
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",
        "DNT": "1",
        "Connection": "keep-alive",
        "Cache-Control": "max-age=0",
    }
    SEARCH: ClassVar[dict[str, str]] = {
        "Accept": "application/json",
        "User-Agent": SEARCH_USER_AGENT,
    }


class CatalogPaths:
    """Catalog endpoint templates (appended to a host candidate)."""

    CREATOR_PROFILE = "/v1/{service}/user/{creator_id}/profile"
    CREATOR_POSTS = "/v1/{service}/user/{creator_id}/posts"
    CREATOR_LINKS = "/v1/{service}/user/{creator_id}/links"
    POST = "/v1/{service}/user/{creator_id}/post/{post_id}"
    POST_COMMENTS = "/v1/{service}/user/{creator_id}/post/{post_id}/comments"
    RECENT_POSTS = "/v1/posts"

    OFFSET_PARAM = "o"
    LIMIT_PARAM = "l"
    QUERY_PARAM = "q"
    KEYWORD_PARAM = "keyword"
