"""Protocol definitions for the engine's external collaborators."""

from __future__ import annotations

from .services import BlobStore, Transport

__all__ = ["BlobStore", "Transport"]
