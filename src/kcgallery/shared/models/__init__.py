"""Shared domain models for the fetch & cache engine."""

from .content import ContentSource, EntityKind, FetchKey
from .entities import (
    CatalogModel,
    CommentRecord,
    CreatorLink,
    CreatorRecord,
    CreatorSearchHit,
    PostFile,
    PostRecord,
)

__all__ = [
    "CatalogModel",
    "CommentRecord",
    "ContentSource",
    "CreatorLink",
    "CreatorRecord",
    "CreatorSearchHit",
    "EntityKind",
    "FetchKey",
    "PostFile",
    "PostRecord",
]
