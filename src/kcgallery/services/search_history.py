"""Recent search queries, persisted through the blob store."""

from __future__ import annotations

import logging
import time
from typing import Callable

import orjson
from pydantic import BaseModel, TypeAdapter, ValidationError

from kcgallery.config.models.app_settings import HistorySettings
from kcgallery.shared.constants import DAY, BlobKeys
from kcgallery.shared.errors import CacheError, ErrorCode, ErrorContext
from kcgallery.shared.logging import log_operation_error
from kcgallery.shared.protocols import BlobStore

logger = logging.getLogger(__name__)


class HistoryEntry(BaseModel):
    """One remembered query."""

    query: str
    service_id: str | None = None
    searched_at: float


_ENTRIES_ADAPTER = TypeAdapter(list[HistoryEntry])


class SearchHistory:
    """Most-recent-first list of distinct search queries.

    Queries are compared case-insensitively; searching again moves a query
    back to the front. Entries older than the retention window are dropped.

    Args:
        settings: Size and retention limits
        blob_store: Persistence target (None keeps history in memory only)
        clock: Wall-clock source in epoch seconds
    """

    def __init__(
        self,
        settings: HistorySettings | None = None,
        blob_store: BlobStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or HistorySettings()
        self._blob_store = blob_store
        self._clock = clock
        self._entries: list[HistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, query: str, service_id: str | None = None) -> None:
        """Remember a query (blank queries are ignored)."""
        query = query.strip()
        if not query or not self.settings.enabled:
            return
        folded = query.casefold()
        self._entries = [e for e in self._entries if e.query.casefold() != folded]
        self._entries.insert(
            0,
            HistoryEntry(query=query, service_id=service_id, searched_at=self._clock()),
        )
        del self._entries[self.settings.max_entries :]

    def entries(self) -> list[HistoryEntry]:
        """Return live entries, most recent first."""
        self._drop_expired()
        return [entry.model_copy() for entry in self._entries]

    def queries(self) -> list[str]:
        return [entry.query for entry in self.entries()]

    def clear(self) -> None:
        self._entries.clear()

    def _drop_expired(self) -> None:
        cutoff = self._clock() - self.settings.retention_days * DAY
        self._entries = [e for e in self._entries if e.searched_at >= cutoff]

    async def load(self) -> int:
        """Load history from the blob store, replacing the in-memory list.

        A corrupt blob is logged and ignored.

        Returns:
            Number of entries loaded
        """
        if self._blob_store is None:
            return 0
        blob = await self._blob_store.load_blob(BlobKeys.SEARCH_HISTORY)
        if blob is None:
            return 0
        try:
            entries = _ENTRIES_ADAPTER.validate_python(orjson.loads(blob))
        except (orjson.JSONDecodeError, ValidationError) as e:
            log_operation_error(
                logger,
                CacheError(
                    code=ErrorCode.CACHE_CORRUPTED,
                    message="Ignoring corrupt search history blob",
                    context=ErrorContext(
                        operation="history_load",
                        additional_data={"key": BlobKeys.SEARCH_HISTORY},
                    ),
                    original_error=e,
                ),
            )
            return 0
        entries.sort(key=lambda e: e.searched_at, reverse=True)
        self._entries = entries[: self.settings.max_entries]
        self._drop_expired()
        return len(self._entries)

    async def save(self) -> None:
        """Persist the history to the blob store."""
        if self._blob_store is None:
            return
        self._drop_expired()
        blob = orjson.dumps(_ENTRIES_ADAPTER.dump_python(self._entries, mode="json"))
        await self._blob_store.save_blob(BlobKeys.SEARCH_HISTORY, blob.decode("utf-8"))


__all__ = ["HistoryEntry", "SearchHistory"]
