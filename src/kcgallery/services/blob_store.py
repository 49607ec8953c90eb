"""Blob store implementations used for cache and history persistence."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path

from kcgallery.shared.constants import FileSystem
from kcgallery.shared.errors import CacheError, ErrorCode, ErrorContext
from kcgallery.shared.protocols import BlobStore

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class MemoryBlobStore:
    """In-process blob store."""

    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}

    async def load_blob(self, key: str) -> str | None:
        return self._blobs.get(key)

    async def save_blob(self, key: str, value: str) -> None:
        self._blobs[key] = value

    def keys(self) -> list[str]:
        return sorted(self._blobs)


class FileBlobStore:
    """Stores each blob as one UTF-8 file inside a directory.

    Writes go to a temporary file which then replaces the target, so a crash
    mid-write never leaves a truncated blob behind. File I/O runs in a worker
    thread to keep the event loop responsive.

    Args:
        directory: Directory holding the blob files (created on first write)
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        """Return the file path used for a key."""
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}{FileSystem.BLOB_SUFFIX}"

    async def load_blob(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read, key)

    async def save_blob(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, key, value)

    def _read(self, key: str) -> str | None:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheError(
                code=ErrorCode.FILE_READ_ERROR,
                message=f"Failed to read blob '{key}'",
                context=ErrorContext(
                    operation="load_blob",
                    additional_data={"key": key, "path": path},
                ),
                original_error=e,
            ) from e

    def _write(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(
                code=ErrorCode.DIRECTORY_CREATION_FAILED,
                message=f"Failed to create blob directory '{self.directory}'",
                context=ErrorContext(
                    operation="save_blob",
                    additional_data={"key": key, "path": self.directory},
                ),
                original_error=e,
            ) from e
        try:
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise CacheError(
                code=ErrorCode.FILE_WRITE_ERROR,
                message=f"Failed to write blob '{key}'",
                context=ErrorContext(
                    operation="save_blob",
                    additional_data={"key": key, "path": path},
                ),
                original_error=e,
            ) from e
        logger.debug("Saved blob %s (%d chars)", key, len(value))


__all__ = ["BlobStore", "FileBlobStore", "MemoryBlobStore"]
