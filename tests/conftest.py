"""
Pytest configuration and shared fixtures for KC Gallery tests.

Provides a controllable clock, a scripted transport, an in-memory blob
store and a sleep that records delays instead of waiting.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from kcgallery.config import (
    CacheSettings,
    CacheTableSettings,
    FetchSettings,
    HistorySettings,
    Settings,
    SourceSettings,
)
from kcgallery.config.models.retry_settings import BackoffPolicy, RetryPolicy, RetrySettings
from kcgallery.services import (
    CacheStore,
    CatalogClient,
    MemoryBlobStore,
    RetryEngine,
    SearchHistory,
    SourceResolver,
)
from kcgallery.shared.errors import CacheError, ErrorCode

PRIMARY_HOST = "https://kemono.test/api"
PRIMARY_MIRROR = "https://kemono-mirror.test/api"
SECONDARY_HOST = "https://coomer.test/api"
SECONDARY_MIRROR = "https://coomer-mirror.test/api"
PRIMARY_SEARCH = "https://search.kemono.test/"
SECONDARY_SEARCH = "https://search.coomer.test/"


class FakeClock:
    """Manually advanced wall clock (epoch seconds)."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that only records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeTransport:
    """Transport returning scripted responses.

    A route is matched when its prefix starts the requested URL. Each route
    holds a queue of outcomes (payload or exception instance); the last one
    repeats once the queue is down to a single item. A callable outcome is
    invoked with the URL.
    """

    def __init__(self) -> None:
        self.routes: dict[str, list[Any]] = {}
        self.calls: list[str] = []
        self.headers: list[dict[str, str]] = []
        self.timeouts: list[float] = []
        self.closed = False

    def add(self, prefix: str, *outcomes: Any) -> None:
        self.routes.setdefault(prefix, []).extend(outcomes)

    def calls_to(self, prefix: str) -> list[str]:
        return [url for url in self.calls if url.startswith(prefix)]

    async def request(self, url: str, headers: dict[str, str], timeout: float) -> Any:
        self.calls.append(url)
        self.headers.append(headers)
        self.timeouts.append(timeout)
        for prefix in sorted(self.routes, key=len, reverse=True):
            if url.startswith(prefix):
                queue = self.routes[prefix]
                outcome = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(outcome, BaseException):
                    raise outcome
                if callable(outcome):
                    return outcome(url)
                return outcome
        msg = f"No scripted response for {url}"
        raise AssertionError(msg)

    def close(self) -> None:
        self.closed = True


class FlakyBlobStore(MemoryBlobStore):
    """Memory blob store whose reads or writes can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False
        self.write_attempts = 0

    async def load_blob(self, key: str) -> str | None:
        if self.fail_reads:
            raise CacheError(code=ErrorCode.FILE_READ_ERROR, message="permission denied")
        return await super().load_blob(key)

    async def save_blob(self, key: str, value: str) -> None:
        self.write_attempts += 1
        if self.fail_writes:
            raise CacheError(code=ErrorCode.FILE_WRITE_ERROR, message="disk full")
        await super().save_blob(key, value)


def make_posts(count: int, start: int = 0, service: str = "patreon", user: str = "42") -> list[dict[str, Any]]:
    """Build raw post payloads with sequential IDs."""
    return [
        {
            "id": str(start + i),
            "user": user,
            "service": service,
            "title": f"Post {start + i}",
            "file": {"name": f"{start + i}.jpg", "path": f"/data/{start + i}.jpg"},
            "attachments": [],
        }
        for i in range(count)
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def flaky_blob_store() -> FlakyBlobStore:
    return FlakyBlobStore()


@pytest.fixture
def source_settings() -> SourceSettings:
    return SourceSettings(
        primary_hosts=[PRIMARY_HOST, PRIMARY_MIRROR],
        secondary_hosts=[SECONDARY_HOST, SECONDARY_MIRROR],
        primary_search_hosts=[PRIMARY_SEARCH],
        secondary_search_hosts=[SECONDARY_SEARCH],
    )


@pytest.fixture
def retry_settings() -> RetrySettings:
    """Default attempt budgets: primary 3 linear, secondary 6 exponential."""
    return RetrySettings(
        primary=RetryPolicy(
            max_attempts=3,
            backoff=BackoffPolicy(kind="linear", base=0.5, cap=10.0),
        ),
        secondary=RetryPolicy(
            max_attempts=6,
            backoff=BackoffPolicy(kind="exponential", base=1.0, cap=10.0),
        ),
    )


@pytest.fixture
def cache_settings(tmp_path) -> CacheSettings:
    return CacheSettings(
        creators=CacheTableSettings(ttl=3600, max_entries=100),
        post_pages=CacheTableSettings(ttl=1800, max_entries=100),
        posts=CacheTableSettings(ttl=1800, max_entries=100),
        name_search=CacheTableSettings(ttl=600, max_entries=50),
        blob_dir=tmp_path / "cache",
        flush_interval=300,
    )


@pytest.fixture
def fetch_settings() -> FetchSettings:
    return FetchSettings(page_size=50, max_buffered_items=200, top_n_search_results=5)


@pytest.fixture
def settings(
    source_settings: SourceSettings,
    retry_settings: RetrySettings,
    cache_settings: CacheSettings,
    fetch_settings: FetchSettings,
) -> Settings:
    return Settings(
        sources=source_settings,
        retry=retry_settings,
        cache=cache_settings,
        fetch=fetch_settings,
        history=HistorySettings(max_entries=5, retention_days=30),
    )


@pytest.fixture
def cache_store(cache_settings: CacheSettings, blob_store: MemoryBlobStore, clock: FakeClock) -> CacheStore:
    return CacheStore(cache_settings, blob_store, clock=clock)


@pytest.fixture
def make_client(
    transport: FakeTransport,
    cache_store: CacheStore,
    source_settings: SourceSettings,
    retry_settings: RetrySettings,
    fetch_settings: FetchSettings,
    blob_store: MemoryBlobStore,
    sleep: RecordingSleep,
    clock: FakeClock,
) -> Callable[..., CatalogClient]:
    """Factory building a CatalogClient over the fake collaborators."""

    def factory(**overrides: Any) -> CatalogClient:
        options: dict[str, Any] = {
            "transport": transport,
            "cache_store": cache_store,
            "resolver": SourceResolver(source_settings),
            "retry_engine": RetryEngine(sleep=sleep),
            "retry_settings": retry_settings,
            "fetch_settings": fetch_settings,
            "history": SearchHistory(HistorySettings(max_entries=5), blob_store, clock=clock),
        }
        options.update(overrides)
        return CatalogClient(**options)

    return factory


@pytest.fixture
def client(make_client: Callable[..., CatalogClient]) -> CatalogClient:
    return make_client()


@pytest.fixture
def posts_payload() -> Callable[..., list[dict[str, Any]]]:
    return make_posts
