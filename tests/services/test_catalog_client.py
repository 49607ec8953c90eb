"""Tests for the catalog client orchestration."""

from __future__ import annotations

import pytest

from kcgallery.config import FetchSettings, HistorySettings
from kcgallery.services import CacheStore, CatalogClient, SearchHistory
from kcgallery.services.catalog_client import (
    parse_comments,
    parse_creator,
    parse_creator_links,
    parse_post_list,
    parse_search_hits,
)
from kcgallery.shared.constants import BlobKeys
from kcgallery.shared.errors import ErrorKind, FetchError, SearchGuidanceError, TransportError
from kcgallery.shared.models import ContentSource, CreatorRecord, EntityKind, FetchKey

PRIMARY = "https://kemono.test/api"
PRIMARY_MIRROR = "https://kemono-mirror.test/api"
SECONDARY = "https://coomer.test/api"
SECONDARY_MIRROR = "https://coomer-mirror.test/api"
PRIMARY_SEARCH = "https://search.kemono.test"
SECONDARY_SEARCH = "https://search.coomer.test"

CREATOR_PAYLOAD = {"name": "Artist", "indexed": "2023-01-01T00:00:00", "favorited": 12}


def _hit(cid: str, name: str, service: str = "patreon") -> dict:
    return {"id": cid, "name": name, "service": service, "favorited": "3"}


class TestPayloadParsing:
    """Validation of raw payloads into entities."""

    def test_creator_identity_comes_from_request(self) -> None:
        creator = parse_creator({"name": "A"}, "patreon", "42")

        assert (creator.id, creator.service, creator.name) == ("42", "patreon", "A")

    def test_post_list_accepts_bare_and_wrapped(self, posts_payload) -> None:
        raw = posts_payload(2)

        assert [p.id for p in parse_post_list(raw)] == ["0", "1"]
        assert [p.id for p in parse_post_list({"posts": raw})] == ["0", "1"]

    def test_search_hits_skip_malformed(self) -> None:
        payload = {"data": [_hit("1", "a"), "junk", {"name": "no id"}, _hit("2", "b")]}

        assert [h.id for h in parse_search_hits(payload)] == ["1", "2"]

    def test_search_hits_missing_data(self) -> None:
        assert parse_search_hits({"message": "nothing"}) == []

    def test_search_hits_reject_non_object(self) -> None:
        with pytest.raises(ValueError, match="expected JSON object"):
            parse_search_hits([_hit("1", "a")])

    def test_search_hits_limit(self) -> None:
        payload = {"data": [_hit(str(i), "x") for i in range(10)]}

        assert len(parse_search_hits(payload, limit=3)) == 3

    def test_links_accept_list_or_single_object(self) -> None:
        links = parse_creator_links([{"id": 9, "name": "Alt", "service": "fanbox", "relation_id": "3"}])

        assert (links[0].id, links[0].service, links[0].relation_id) == ("9", "fanbox", 3)
        assert [link.id for link in parse_creator_links({"id": "1"})] == ["1"]

    def test_comments_accept_list_wrapper_or_single_object(self) -> None:
        raw = [{"id": "c1", "commenter_name": "Bob", "content": "hi"}, {"id": "c2", "commenter_name": None}]

        assert [c.id for c in parse_comments(raw)] == ["c1", "c2"]
        assert [c.id for c in parse_comments({"comments": raw})] == ["c1", "c2"]
        assert parse_comments({"id": "c3"})[0].commenter_name == "Anonymous"
        assert parse_comments(raw)[1].commenter_name == "Anonymous"


class TestGetCreator:
    @pytest.mark.asyncio
    async def test_fetches_and_caches(self, client: CatalogClient, transport) -> None:
        transport.add(PRIMARY, CREATOR_PAYLOAD)

        creator = await client.get_creator("Patreon", " 42 ")
        again = await client.get_creator("patreon", "42")

        assert creator == again
        assert creator.id == "42"
        assert creator.favorited == 12
        assert transport.calls == [f"{PRIMARY}/v1/patreon/user/42/profile"]
        key = FetchKey(ContentSource.PRIMARY, EntityKind.CREATOR, "patreon/42")
        assert client.cache.creators.get(key) == creator

    @pytest.mark.asyncio
    async def test_bypass_cache(self, client: CatalogClient, transport) -> None:
        transport.add(PRIMARY, CREATOR_PAYLOAD)

        await client.get_creator("patreon", "42")
        await client.get_creator("patreon", "42", use_cache=False)

        assert len(transport.calls) == 2

    @pytest.mark.asyncio
    async def test_uses_catalog_headers_and_timeout(self, client: CatalogClient, transport, fetch_settings) -> None:
        transport.add(PRIMARY, CREATOR_PAYLOAD)

        await client.get_creator("patreon", "42")

        assert transport.headers[0]["Accept"] == "text/css"
        assert transport.timeouts[0] == fetch_settings.request_timeout

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, client: CatalogClient, transport, sleep) -> None:
        transport.add(PRIMARY, TransportError("HTTP 404", status_code=404), CREATOR_PAYLOAD)

        with pytest.raises(FetchError) as exc_info:
            await client.get_creator("patreon", "42")

        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert sleep.delays == []
        assert len(client.cache.creators) == 0

        creator = await client.get_creator("patreon", "42")
        assert creator.name == "Artist"
        assert len(transport.calls) == 2

    @pytest.mark.asyncio
    async def test_secondary_service_rotates_mirrors(self, client: CatalogClient, transport, sleep) -> None:
        transport.add(SECONDARY, TransportError("HTTP 503", status_code=503))
        transport.add(SECONDARY_MIRROR, CREATOR_PAYLOAD)
        retries: list[FetchError] = []

        creator = await client.get_creator("onlyfans", "belle", on_retry=retries.append)

        assert creator.service == "onlyfans"
        assert transport.calls == [
            f"{SECONDARY}/v1/onlyfans/user/belle/profile",
            f"{SECONDARY_MIRROR}/v1/onlyfans/user/belle/profile",
        ]
        assert sleep.delays == [1.0]
        assert [e.attempt for e in retries] == [1]
        key = FetchKey(ContentSource.SECONDARY, EntityKind.CREATOR, "onlyfans/belle")
        assert key in client.cache.creators

    @pytest.mark.asyncio
    async def test_primary_gives_up_after_budget(self, client: CatalogClient, transport) -> None:
        transport.add(PRIMARY, TransportError("HTTP 502", status_code=502))
        transport.add(PRIMARY_MIRROR, TransportError("HTTP 502", status_code=502))

        with pytest.raises(FetchError) as exc_info:
            await client.get_creator("patreon", "42")

        assert exc_info.value.gave_up
        assert len(transport.calls) == 3

    @pytest.mark.asyncio
    async def test_path_segments_are_quoted(self, client: CatalogClient, transport) -> None:
        transport.add(PRIMARY, CREATOR_PAYLOAD)

        await client.get_creator("patreon", "a/b")

        assert transport.calls == [f"{PRIMARY}/v1/patreon/user/a%2Fb/profile"]


class TestGetPost:
    @pytest.mark.asyncio
    async def test_unwraps_and_caches(self, client: CatalogClient, transport, posts_payload) -> None:
        transport.add(PRIMARY, {"post": posts_payload(1, start=7)[0]})

        post = await client.get_post("patreon", "42", "7")
        await client.get_post("patreon", "42", "7")

        assert post.id == "7"
        assert [f.path for f in post.media] == ["/data/7.jpg"]
        assert transport.calls == [f"{PRIMARY}/v1/patreon/user/42/post/7"]

    @pytest.mark.asyncio
    async def test_invalid_payload_is_parse_error(self, client: CatalogClient, transport) -> None:
        transport.add(PRIMARY, ["not", "a", "post"])

        with pytest.raises(FetchError) as exc_info:
            await client.get_post("patreon", "42", "7")

        assert exc_info.value.kind is ErrorKind.PARSE_ERROR
        assert len(transport.calls) == 1


class TestNameSearch:
    """Resolver-service name search."""

    @pytest.mark.asyncio
    async def test_parses_hits_and_seeds_creators(self, client: CatalogClient, transport) -> None:
        transport.add(PRIMARY_SEARCH, {"data": [_hit("7", "Artist"), _hit("8", "Artisan", "fanbox")]})

        creators = await client.search_creators_by_name("art")

        assert [c.id for c in creators] == ["7", "8"]
        assert transport.calls == [f"{PRIMARY_SEARCH}?keyword=art"]
        assert transport.headers[0]["Accept"] == "application/json"

        # Seeded profiles are served from the cache
        profile = await client.get_creator("patreon", "7")
        assert profile.name == "Artist"
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_results_cached_per_query(self, client: CatalogClient, transport) -> None:
        transport.add(PRIMARY_SEARCH, {"data": [_hit("7", "Artist")]})

        await client.search_creators_by_name("Art")
        await client.search_creators_by_name("art")

        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_service_filter_and_secondary_host(self, client: CatalogClient, transport) -> None:
        transport.add(
            SECONDARY_SEARCH,
            {"data": [_hit("1", "belle", "onlyfans"), _hit("2", "belle", "fansly")]},
        )

        creators = await client.search_creators_by_name("belle", "fansly")

        assert [c.id for c in creators] == ["2"]
        assert transport.calls_to(SECONDARY_SEARCH)

    @pytest.mark.asyncio
    async def test_non_object_payload_fails(self, client: CatalogClient, transport) -> None:
        transport.add(PRIMARY_SEARCH, [_hit("1", "a")])

        with pytest.raises(FetchError) as exc_info:
            await client.search_creators_by_name("a")

        assert exc_info.value.kind is ErrorKind.PARSE_ERROR


class TestSearch:
    @pytest.mark.asyncio
    async def test_numeric_without_service_makes_no_request(self, client: CatalogClient, transport) -> None:
        with pytest.raises(SearchGuidanceError):
            await client.search("12345")

        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_id_lookup_with_service(self, client: CatalogClient, transport) -> None:
        transport.add(PRIMARY, CREATOR_PAYLOAD)

        results = await client.search("12345", "patreon")

        assert [c.id for c in results] == ["12345"]
        assert transport.calls == [f"{PRIMARY}/v1/patreon/user/12345/profile"]

    @pytest.mark.asyncio
    async def test_failed_name_search_scans_cached_creators(self, client: CatalogClient, transport) -> None:
        transport.add(PRIMARY, CREATOR_PAYLOAD)
        transport.add(PRIMARY_SEARCH, TransportError("HTTP 503", status_code=503))
        await client.get_creator("patreon", "42")

        results = await client.search("artist")

        assert [c.id for c in results] == ["42"]
        assert len(transport.calls_to(PRIMARY_SEARCH)) == 3

    @pytest.mark.asyncio
    async def test_records_history(self, client: CatalogClient, transport) -> None:
        transport.add(PRIMARY_SEARCH, {"data": []})

        await client.search("first")
        await client.search("second")
        with pytest.raises(SearchGuidanceError):
            await client.search("999")

        assert client.history.queries() == ["999", "second", "first"]


class TestCreatorPosts:
    """Creator listing pagination through the client."""

    @pytest.mark.asyncio
    async def test_pages_are_fetched_and_cached(self, client: CatalogClient, transport, posts_payload) -> None:
        url = f"{PRIMARY}/v1/patreon/user/42/posts"
        transport.add(url, posts_payload(50), posts_payload(50, start=50), posts_payload(30, start=100))

        counts = [await client.load_creator_posts("patreon", "42") for _ in range(4)]

        cursor = client.creator_posts_cursor("patreon", "42")
        assert counts == [50, 50, 30, 0]
        assert len(cursor.items) == 130
        assert cursor.has_more is False
        assert transport.calls == [f"{url}?o=0&l=50", f"{url}?o=50&l=50", f"{url}?o=100&l=50"]
        assert len(client.cache.post_pages) == 3

    @pytest.mark.asyncio
    async def test_cached_pages_are_reused(self, make_client, transport, posts_payload) -> None:
        transport.add(f"{PRIMARY}/v1/patreon/user/42/posts", posts_payload(10))
        await make_client().load_creator_posts("patreon", "42")

        other = make_client()
        assert await other.load_creator_posts("patreon", "42") == 10
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_refresh_invalidates_pages(self, client: CatalogClient, transport, posts_payload) -> None:
        url = f"{PRIMARY}/v1/patreon/user/42/posts"
        transport.add(url, posts_payload(50), posts_payload(50, start=50), posts_payload(5, start=200))
        await client.load_creator_posts("patreon", "42")
        await client.load_creator_posts("patreon", "42")

        assert await client.load_creator_posts("patreon", "42", refresh=True) == 5

        cursor = client.creator_posts_cursor("patreon", "42")
        assert [p.id for p in cursor.items] == [str(i) for i in range(200, 205)]
        assert transport.calls[-1] == f"{url}?o=0&l=50"
        assert len(client.cache.post_pages) == 1

    @pytest.mark.asyncio
    async def test_failed_page_leaves_cursor_untouched(self, client: CatalogClient, transport) -> None:
        transport.add(f"{PRIMARY}/v1/patreon/user/42/posts", TransportError("HTTP 404", status_code=404))

        with pytest.raises(FetchError):
            await client.load_creator_posts("patreon", "42")

        cursor = client.creator_posts_cursor("patreon", "42")
        assert (cursor.offset, cursor.has_more, cursor.is_loading) == (0, True, False)
        assert len(client.cache.post_pages) == 0

    @pytest.mark.asyncio
    async def test_larger_page_size_than_server_page(self, make_client, transport, posts_payload) -> None:
        """The catalog caps pages at 50 even when asked for 100."""
        client = make_client(fetch_settings=FetchSettings(page_size=100))
        url = f"{PRIMARY}/v1/patreon/user/42/posts"
        transport.add(url, posts_payload(50), posts_payload(50, start=50), posts_payload(20, start=100))

        counts = [await client.load_creator_posts("patreon", "42") for _ in range(4)]

        cursor = client.creator_posts_cursor("patreon", "42")
        assert counts == [50, 50, 20, 0]
        assert len(cursor.items) == 120
        assert cursor.has_more is False
        assert transport.calls == [f"{url}?o=0&l=100", f"{url}?o=50&l=100", f"{url}?o=100&l=100"]

    @pytest.mark.asyncio
    async def test_smaller_page_size_is_sent_as_limit(self, make_client, transport, posts_payload) -> None:
        client = make_client(fetch_settings=FetchSettings(page_size=20))
        url = f"{PRIMARY}/v1/patreon/user/42/posts"
        transport.add(url, posts_payload(20), posts_payload(5, start=20))

        await client.load_creator_posts("patreon", "42")
        await client.load_creator_posts("patreon", "42")

        cursor = client.creator_posts_cursor("patreon", "42")
        assert (len(cursor.items), cursor.has_more) == (25, False)
        assert transport.calls == [f"{url}?o=0&l=20", f"{url}?o=20&l=20"]

    def test_cursor_per_creator(self, client: CatalogClient) -> None:
        first = client.creator_posts_cursor("Patreon", "42")

        assert client.creator_posts_cursor("patreon", "42") is first
        assert client.creator_posts_cursor("patreon", "43") is not first
        assert client.creator_posts_cursor("fansly", "42").source is ContentSource.SECONDARY


class TestLatestPosts:
    @pytest.mark.asyncio
    async def test_query_is_sent(self, client: CatalogClient, transport, posts_payload) -> None:
        transport.add(f"{PRIMARY}/v1/posts", posts_payload(3))

        assert await client.load_latest_posts(" cats ") == 3
        assert transport.calls == [f"{PRIMARY}/v1/posts?o=0&l=50&q=cats"]

    @pytest.mark.asyncio
    async def test_switch_source_restarts_listing(self, client: CatalogClient, transport, posts_payload) -> None:
        transport.add(f"{PRIMARY}/v1/posts", posts_payload(50))
        transport.add(f"{SECONDARY}/v1/posts", posts_payload(4, start=900, service="onlyfans"))
        await client.load_latest_posts()

        client.switch_source(ContentSource.SECONDARY)
        cursor = client.latest_posts_cursor()
        assert cursor.items == []
        assert cursor.offset == 0

        await client.load_latest_posts()

        assert client.latest_source is ContentSource.SECONDARY
        assert transport.calls[-1] == f"{SECONDARY}/v1/posts?o=0&l=50"
        assert [p.service for p in cursor.items] == ["onlyfans"] * 4

    def test_switch_to_same_source_keeps_cursor(self, client: CatalogClient) -> None:
        cursor = client.latest_posts_cursor()
        generation = cursor.generation

        client.switch_source(ContentSource.PRIMARY)

        assert cursor.generation == generation


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_close_flushes_cache_and_history(self, client: CatalogClient, transport, blob_store) -> None:
        transport.add(PRIMARY, CREATOR_PAYLOAD)
        transport.add(PRIMARY_SEARCH, {"data": []})
        await client.get_creator("patreon", "42")
        await client.search("artist")

        await client.close()

        keys = blob_store.keys()
        assert f"{BlobKeys.TABLE_PREFIX}creators" in keys
        assert BlobKeys.SEARCH_HISTORY in keys

    @pytest.mark.asyncio
    async def test_restore_round_trip(self, make_client, cache_settings, blob_store, clock, transport) -> None:
        transport.add(PRIMARY, CREATOR_PAYLOAD)
        first = make_client()
        await first.get_creator("patreon", "42")
        first.history.record("artist")
        await first.close()

        second = make_client(cache_store=CacheStore(cache_settings, blob_store, clock=clock))
        assert await second.restore() >= 1
        await second.get_creator("patreon", "42")

        assert len(transport.calls) == 1
        assert second.history.queries() == ["artist"]

    @pytest.mark.asyncio
    async def test_get_stats(self, client: CatalogClient, transport, posts_payload) -> None:
        transport.add(PRIMARY, CREATOR_PAYLOAD)
        transport.add(f"{PRIMARY}/v1/patreon/user/42/posts", posts_payload(2))
        await client.get_creator("patreon", "42")
        await client.get_creator("patreon", "42")
        await client.load_creator_posts("patreon", "42")

        stats = client.get_stats()

        assert stats["latest_source"] == "primary"
        assert stats["cache"]["creators"]["hits"] == 1
        assert stats["retry"]["successes"] == 2
        cursor_stats = stats["cursors"]["primary:posts:patreon/42:0"]
        assert cursor_stats == {"items": 2, "offset": 2, "has_more": False, "loading": False}
        assert stats["retry"]["backoff_seconds"] == 0.0
        assert stats["retry"]["last_error_kind"] is None
        assert set(stats["cache"]) >= {"links", "comments"}


class TestLinksAndComments:
    LINKS_URL = f"{PRIMARY}/v1/patreon/user/42/links"
    COMMENTS_URL = f"{PRIMARY}/v1/patreon/user/42/post/7/comments"

    @pytest.mark.asyncio
    async def test_creator_links_fetched_and_cached(self, client: CatalogClient, transport) -> None:
        transport.add(self.LINKS_URL, [{"id": "9", "name": "Alt", "service": "fanbox", "public_id": "alt"}])

        links = await client.get_creator_links("Patreon", "42")
        again = await client.get_creator_links("patreon", "42")

        assert links == again
        assert [(link.id, link.service, link.public_id) for link in links] == [("9", "fanbox", "alt")]
        assert transport.calls == [self.LINKS_URL]
        assert FetchKey(ContentSource.PRIMARY, EntityKind.LINKS, "patreon/42") in client.cache.links

    @pytest.mark.asyncio
    async def test_secondary_links_use_secondary_hosts(self, client: CatalogClient, transport) -> None:
        transport.add(f"{SECONDARY}/v1/onlyfans/user/belle/links", [])

        assert await client.get_creator_links("onlyfans", "belle") == []
        assert transport.calls == [f"{SECONDARY}/v1/onlyfans/user/belle/links"]

    @pytest.mark.asyncio
    async def test_comments_fetched_and_cached(self, client: CatalogClient, transport) -> None:
        transport.add(
            self.COMMENTS_URL,
            {"comments": [{"id": "c1", "commenter_name": "Bob", "content": "nice", "published": "2024-01-01"}]},
        )

        comments = await client.get_comments("patreon", "42", "7")
        await client.get_comments("patreon", "42", "7")

        assert [(c.commenter_name, c.content) for c in comments] == [("Bob", "nice")]
        assert transport.calls == [self.COMMENTS_URL]
        assert transport.headers[0]["Accept"] == "text/css"
        assert len(client.cache.comments) == 1

    @pytest.mark.asyncio
    async def test_missing_comments_are_empty_and_not_cached(self, client: CatalogClient, transport) -> None:
        transport.add(self.COMMENTS_URL, TransportError("HTTP 404", status_code=404))

        assert await client.get_comments("patreon", "42", "7") == []
        assert len(transport.calls) == 1
        assert len(client.cache.comments) == 0

    @pytest.mark.asyncio
    async def test_comment_failures_still_raise(self, client: CatalogClient, transport) -> None:
        transport.add(self.COMMENTS_URL, TransportError("HTTP 502", status_code=502))
        mirror_url = f"{PRIMARY_MIRROR}/v1/patreon/user/42/post/7/comments"
        transport.add(mirror_url, TransportError("HTTP 502", status_code=502))

        with pytest.raises(FetchError) as exc_info:
            await client.get_comments("patreon", "42", "7")

        assert exc_info.value.kind is ErrorKind.SERVER_UNAVAILABLE
        assert len(client.cache.comments) == 0


class TestStorageFailures:
    """A broken blob store never fails a fetch that succeeded."""

    @pytest.fixture
    def failing_store(self, cache_settings, clock, flaky_blob_store) -> CacheStore:
        flaky_blob_store.fail_writes = True
        settings = cache_settings.model_copy(update={"flush_interval": 0})
        return CacheStore(settings, flaky_blob_store, clock=clock)

    @pytest.mark.asyncio
    async def test_get_creator_survives_flush_failure(
        self, make_client, failing_store, flaky_blob_store, transport, caplog
    ) -> None:
        transport.add(PRIMARY, CREATOR_PAYLOAD)
        client = make_client(cache_store=failing_store)

        creator = await client.get_creator("patreon", "42")

        assert creator.name == "Artist"
        assert len(failing_store.creators) == 1
        assert failing_store.creators.dirty is True
        assert flaky_blob_store.write_attempts == 1
        assert "disk full" in caplog.text

        flaky_blob_store.fail_writes = False
        await client.close()
        assert f"{BlobKeys.TABLE_PREFIX}creators" in flaky_blob_store.keys()
        assert failing_store.creators.dirty is False

    @pytest.mark.asyncio
    async def test_search_and_listing_survive_flush_failure(
        self, make_client, failing_store, transport, posts_payload
    ) -> None:
        transport.add(PRIMARY_SEARCH, {"data": [_hit("7", "Artist")]})
        transport.add(f"{PRIMARY}/v1/patreon/user/42/posts", posts_payload(10))
        client = make_client(cache_store=failing_store)

        results = await client.search("artist")
        loaded = await client.load_creator_posts("patreon", "42")

        assert [c.id for c in results] == ["7"]
        assert loaded == 10

    @pytest.mark.asyncio
    async def test_restore_and_close_tolerate_storage_errors(
        self, make_client, failing_store, flaky_blob_store, clock
    ) -> None:
        flaky_blob_store.fail_reads = True
        history = SearchHistory(HistorySettings(max_entries=5), flaky_blob_store, clock=clock)
        client = make_client(cache_store=failing_store, history=history)

        assert await client.restore() == 0
        client.history.record("artist")
        failing_store.creators.put("k", CreatorRecord(id="42", service="patreon"))

        await client.close()

        assert flaky_blob_store.keys() == []
