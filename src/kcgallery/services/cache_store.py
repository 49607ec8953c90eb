"""In-memory TTL cache with capacity eviction and blob persistence.

A CacheStore owns one CacheTable per entity class. Tables are plain objects
passed explicitly to whoever needs them; there is no module-level cache.

Each table:

- returns ``None`` for absent or expired entries (expired ones are removed
  on read),
- keeps at most ``max_entries`` entries, evicting the oldest-inserted first,
- hands out deep copies so cached values can never be mutated by callers.

Values are serialized with orjson when the store is flushed to a BlobStore.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

import orjson
from pydantic import TypeAdapter, ValidationError

from kcgallery.config.models.cache_settings import CacheSettings, CacheTableSettings
from kcgallery.shared.constants import BlobKeys, CacheTables
from kcgallery.shared.errors import CacheError, ErrorCode, ErrorContext
from kcgallery.shared.logging import (
    log_operation_error,
    log_operation_start,
    log_operation_success,
)
from kcgallery.shared.models import (
    CommentRecord,
    ContentSource,
    CreatorLink,
    CreatorRecord,
    FetchKey,
    PostRecord,
)
from kcgallery.shared.protocols import BlobStore

logger = logging.getLogger(__name__)

V = TypeVar("V")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """Cached value plus insertion metadata. Owned by its table."""

    value: V
    inserted_at: float
    source: ContentSource | None = None


@dataclass
class CacheTableStats:
    """Counters reported by ``CacheTable.stats()``."""

    name: str
    size: int
    max_entries: int
    ttl: float
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


def _key_str(key: str | FetchKey) -> str:
    return str(key)


class CacheTable(Generic[V]):
    """Key to value map with TTL expiry and bounded size.

    Entries are kept in insertion order; overwriting a key moves it to the
    end, so the first entry is always the oldest-inserted one.

    Args:
        name: Table name, also used for the persistence blob key
        ttl: Entry lifetime in seconds
        max_entries: Capacity bound
        clock: Wall-clock source in epoch seconds
        adapter: Pydantic TypeAdapter used to (de)serialize values for
            persistence. Without one, values must already be JSON-compatible.
        enabled: A disabled table stores nothing and always misses
    """

    def __init__(
        self,
        name: str,
        ttl: float,
        max_entries: int,
        *,
        clock: Clock = time.time,
        adapter: TypeAdapter[V] | None = None,
        enabled: bool = True,
    ) -> None:
        if ttl <= 0:
            msg = f"ttl must be positive, got {ttl}"
            raise ValueError(msg)
        if max_entries <= 0:
            msg = f"max_entries must be positive, got {max_entries}"
            raise ValueError(msg)

        self.name = name
        self.ttl = ttl
        self.max_entries = max_entries
        self.enabled = enabled
        self._clock = clock
        self._adapter = adapter
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._lock = threading.RLock()
        self._stats = CacheTableStats(name=name, size=0, max_entries=max_entries, ttl=ttl)
        self._revision = 0
        self._flushed_revision = 0

    @classmethod
    def from_settings(
        cls,
        name: str,
        settings: CacheTableSettings,
        *,
        clock: Clock = time.time,
        adapter: TypeAdapter[V] | None = None,
        enabled: bool = True,
    ) -> CacheTable[V]:
        return cls(
            name,
            settings.ttl,
            settings.max_entries,
            clock=clock,
            adapter=adapter,
            enabled=enabled,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str | FetchKey) -> bool:
        return self.get_entry(key) is not None

    @property
    def dirty(self) -> bool:
        """True if the table changed since the last successful flush."""
        return self._revision != self._flushed_revision

    @property
    def revision(self) -> int:
        """Change counter, bumped by every mutation."""
        return self._revision

    def mark_clean(self, revision: int | None = None) -> None:
        """Record that the table was persisted as of ``revision``.

        Changes made after that revision keep the table dirty.
        """
        with self._lock:
            self._flushed_revision = self._revision if revision is None else revision

    def _is_expired(self, entry: CacheEntry[V], now: float, ttl: float | None = None) -> bool:
        return now - entry.inserted_at > (self.ttl if ttl is None else ttl)

    def get_entry(self, key: str | FetchKey) -> CacheEntry[V] | None:
        """Return a copy of the live entry for ``key`` (no stats recorded)."""
        with self._lock:
            entry = self._entries.get(_key_str(key))
            if entry is None or self._is_expired(entry, self._clock()):
                return None
            return CacheEntry(copy.deepcopy(entry.value), entry.inserted_at, entry.source)

    def get(self, key: str | FetchKey) -> V | None:
        """Return a copy of the cached value, or None if absent or expired.

        An expired entry is removed as a side effect.
        """
        skey = _key_str(key)
        with self._lock:
            entry = self._entries.get(skey)
            if entry is None:
                self._stats.misses += 1
                return None
            if self._is_expired(entry, self._clock()):
                del self._entries[skey]
                self._stats.expirations += 1
                self._stats.misses += 1
                self._revision += 1
                return None
            self._stats.hits += 1
            return copy.deepcopy(entry.value)

    def put(self, key: str | FetchKey, value: V, source: ContentSource | None = None) -> None:
        """Insert or overwrite ``key`` (last write wins).

        Evicts the oldest-inserted entries until the capacity bound holds.
        """
        if not self.enabled:
            return
        skey = _key_str(key)
        entry = CacheEntry(copy.deepcopy(value), self._clock(), source)
        with self._lock:
            self._entries.pop(skey, None)
            self._entries[skey] = entry
            while len(self._entries) > self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self._stats.evictions += 1
                logger.debug("Evicted %s from cache table %s", evicted_key, self.name)
            self._revision += 1

    def invalidate(self, key: str | FetchKey) -> bool:
        """Remove ``key``. Returns True if an entry was removed."""
        with self._lock:
            removed = self._entries.pop(_key_str(key), None) is not None
            if removed:
                self._revision += 1
            return removed

    def invalidate_where(self, predicate: Callable[[str], bool]) -> int:
        """Remove every entry whose key matches ``predicate``."""
        with self._lock:
            doomed = [key for key in self._entries if predicate(key)]
            for key in doomed:
                del self._entries[key]
            if doomed:
                self._revision += 1
            return len(doomed)

    def clear(self) -> int:
        """Remove all entries. Returns the number removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._revision += 1
            return count

    def cleanup(self, retention_seconds: float) -> int:
        """Remove entries inserted more than ``retention_seconds`` ago."""
        with self._lock:
            now = self._clock()
            stale = [
                key
                for key, entry in self._entries.items()
                if self._is_expired(entry, now, retention_seconds)
            ]
            for key in stale:
                del self._entries[key]
            if stale:
                self._revision += 1
            return len(stale)

    def purge_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        removed = self.cleanup(self.ttl)
        with self._lock:
            self._stats.expirations += removed
        return removed

    def values(self) -> list[V]:
        """Return copies of all live values, oldest first."""
        with self._lock:
            now = self._clock()
            return [
                copy.deepcopy(entry.value)
                for entry in self._entries.values()
                if not self._is_expired(entry, now)
            ]

    def keys(self) -> list[str]:
        """Return the keys of all live entries, oldest first."""
        with self._lock:
            now = self._clock()
            return [key for key, entry in self._entries.items() if not self._is_expired(entry, now)]

    def stats(self) -> CacheTableStats:
        """Return a snapshot of the table counters."""
        with self._lock:
            return CacheTableStats(
                name=self.name,
                size=len(self._entries),
                max_entries=self.max_entries,
                ttl=self.ttl,
                hits=self._stats.hits,
                misses=self._stats.misses,
                evictions=self._stats.evictions,
                expirations=self._stats.expirations,
            )

    def dump(self) -> dict[str, Any]:
        """Serialize live entries to a JSON-compatible payload."""
        with self._lock:
            now = self._clock()
            snapshot = [
                (key, entry)
                for key, entry in self._entries.items()
                if not self._is_expired(entry, now)
            ]

        entries = []
        for key, entry in snapshot:
            value = self._adapter.dump_python(entry.value, mode="json") if self._adapter else entry.value
            entries.append(
                {
                    "key": key,
                    "inserted_at": entry.inserted_at,
                    "source": entry.source.value if entry.source else None,
                    "value": value,
                },
            )
        return {"version": BlobKeys.FORMAT_VERSION, "table": self.name, "entries": entries}

    def load(self, payload: dict[str, Any]) -> int:
        """Restore entries from a ``dump()`` payload.

        Expired entries and entries that fail validation are skipped. Entries
        already in memory are kept if they are newer than the restored ones.

        Returns:
            Number of entries restored

        Raises:
            ValueError: If the payload is not a table dump
        """
        raw_entries = payload.get("entries") if isinstance(payload, dict) else None
        if not isinstance(raw_entries, list):
            msg = f"Invalid cache table payload for {self.name}"
            raise ValueError(msg)

        now = self._clock()
        restored: list[tuple[str, CacheEntry[V]]] = []
        for raw in raw_entries:
            try:
                key = str(raw["key"])
                inserted_at = float(raw["inserted_at"])
                source = ContentSource(raw["source"]) if raw.get("source") else None
                value = self._adapter.validate_python(raw["value"]) if self._adapter else raw["value"]
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.warning("Skipping invalid cache entry in %s: %s", self.name, e)
                continue
            entry = CacheEntry(value, inserted_at, source)
            if not self._is_expired(entry, now):
                restored.append((key, entry))

        restored.sort(key=lambda item: item[1].inserted_at)
        with self._lock:
            merged = dict(self._entries)
            for key, entry in restored:
                current = merged.get(key)
                if current is None or current.inserted_at < entry.inserted_at:
                    merged[key] = entry
            ordered = sorted(merged.items(), key=lambda item: item[1].inserted_at)
            self._entries = OrderedDict(ordered[-self.max_entries :])
        return len(restored)


class CacheStore:
    """Owner of the per-entity cache tables.

    Args:
        settings: Cache configuration (per-table TTL and capacity)
        blob_store: Default persistence target for flush/restore
        clock: Wall-clock source shared by all tables
    """

    def __init__(
        self,
        settings: CacheSettings | None = None,
        blob_store: BlobStore | None = None,
        clock: Clock = time.time,
    ) -> None:
        self.settings = settings or CacheSettings()
        self.blob_store = blob_store
        self._clock = clock
        self._last_flush = clock()

        enabled = self.settings.enabled
        self.creators: CacheTable[CreatorRecord] = CacheTable.from_settings(
            CacheTables.CREATORS,
            self.settings.creators,
            clock=clock,
            adapter=TypeAdapter(CreatorRecord),
            enabled=enabled,
        )
        self.post_pages: CacheTable[list[PostRecord]] = CacheTable.from_settings(
            CacheTables.POST_PAGES,
            self.settings.post_pages,
            clock=clock,
            adapter=TypeAdapter(list[PostRecord]),
            enabled=enabled,
        )
        self.posts: CacheTable[PostRecord] = CacheTable.from_settings(
            CacheTables.POSTS,
            self.settings.posts,
            clock=clock,
            adapter=TypeAdapter(PostRecord),
            enabled=enabled,
        )
        self.name_search: CacheTable[list[CreatorRecord]] = CacheTable.from_settings(
            CacheTables.NAME_SEARCH,
            self.settings.name_search,
            clock=clock,
            adapter=TypeAdapter(list[CreatorRecord]),
            enabled=enabled,
        )
        self.links: CacheTable[list[CreatorLink]] = CacheTable.from_settings(
            CacheTables.LINKS,
            self.settings.links,
            clock=clock,
            adapter=TypeAdapter(list[CreatorLink]),
            enabled=enabled,
        )
        self.comments: CacheTable[list[CommentRecord]] = CacheTable.from_settings(
            CacheTables.COMMENTS,
            self.settings.comments,
            clock=clock,
            adapter=TypeAdapter(list[CommentRecord]),
            enabled=enabled,
        )

    @property
    def tables(self) -> dict[str, CacheTable[Any]]:
        return {
            CacheTables.CREATORS: self.creators,
            CacheTables.POST_PAGES: self.post_pages,
            CacheTables.POSTS: self.posts,
            CacheTables.NAME_SEARCH: self.name_search,
            CacheTables.LINKS: self.links,
            CacheTables.COMMENTS: self.comments,
        }

    def table(self, name: str) -> CacheTable[Any]:
        """Look up a table by name.

        Raises:
            KeyError: If no such table exists
        """
        return self.tables[name]

    def clear(self) -> int:
        """Empty every table. Returns the number of entries removed."""
        return sum(table.clear() for table in self.tables.values())

    def purge_expired(self) -> dict[str, int]:
        """Purge expired entries from every table."""
        return {name: table.purge_expired() for name, table in self.tables.items()}

    def stats(self) -> dict[str, CacheTableStats]:
        return {name: table.stats() for name, table in self.tables.items()}

    def _resolve_blob_store(self, blob_store: BlobStore | None) -> BlobStore | None:
        return blob_store if blob_store is not None else self.blob_store

    async def flush(self, blob_store: BlobStore | None = None, *, force: bool = False) -> int:
        """Write changed tables to the blob store.

        Args:
            blob_store: Target store (defaults to the store given at init)
            force: Write every table, changed or not

        Returns:
            Number of tables written

        Raises:
            CacheError: If the blob store fails to write a table. Tables not
                written stay dirty and are retried by the next flush.
        """
        store = self._resolve_blob_store(blob_store)
        if store is None:
            return 0

        start = time.perf_counter()
        written = 0
        try:
            for name, table in self.tables.items():
                if not (force or table.dirty):
                    continue
                revision = table.revision
                blob = orjson.dumps(table.dump()).decode("utf-8")
                await store.save_blob(f"{BlobKeys.TABLE_PREFIX}{name}", blob)
                table.mark_clean(revision)
                written += 1
        finally:
            self._last_flush = self._clock()

        log_operation_success(
            logger,
            "cache_flush",
            (time.perf_counter() - start) * 1000,
            result_info={"tables_written": written},
        )
        return written

    async def flush_if_due(self, blob_store: BlobStore | None = None) -> bool:
        """Flush when ``flush_interval`` seconds have passed since the last flush."""
        if self._clock() - self._last_flush < self.settings.flush_interval:
            return False
        await self.flush(blob_store)
        return True

    async def restore(self, blob_store: BlobStore | None = None) -> int:
        """Reload non-expired entries from the blob store.

        Corrupt or unreadable blobs are logged and skipped.

        Returns:
            Total number of entries restored
        """
        store = self._resolve_blob_store(blob_store)
        if store is None:
            return 0

        log_operation_start(logger, "cache_restore", {"tables": len(self.tables)})
        restored = 0
        for name, table in self.tables.items():
            key = f"{BlobKeys.TABLE_PREFIX}{name}"
            try:
                blob = await store.load_blob(key)
            except CacheError as e:
                log_operation_error(logger, e, operation="cache_restore", additional_context={"table": name})
                continue
            if blob is None:
                continue
            try:
                restored += table.load(orjson.loads(blob))
            except (orjson.JSONDecodeError, ValueError) as e:
                log_operation_error(
                    logger,
                    CacheError(
                        code=ErrorCode.CACHE_CORRUPTED,
                        message=f"Ignoring corrupt cache blob for table '{name}'",
                        context=ErrorContext(
                            operation="cache_restore",
                            additional_data={"key": key},
                        ),
                        original_error=e,
                    ),
                )
        logger.debug("Restored %d cache entries", restored)
        return restored


__all__ = ["CacheEntry", "CacheStore", "CacheTable", "CacheTableStats"]
