"""Catalog entity models.

Payloads returned by the transport are validated into these models exactly
once, inside the catalog client. Unknown fields are ignored so that upstream
additions never break parsing.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _to_epoch(value: Any) -> int:
    """Normalise a catalog timestamp to integer epoch seconds.

    The catalog mixes integer epochs, numeric strings and ISO-8601 strings;
    anything unparseable becomes 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(float(text))
        except ValueError:
            pass
        try:
            return int(datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp())
        except ValueError:
            return 0
    return 0


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class CatalogModel(BaseModel):
    """Common base for catalog entities (lenient, immutable)."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class CreatorRecord(CatalogModel):
    """Creator profile.

    Attributes:
        id: Creator identifier within its service
        service: Service identifier (e.g. ``patreon``, ``onlyfans``)
        name: Display name
        indexed: Epoch seconds when the creator was first indexed
        updated: Epoch seconds of the last update
        favorited: Favorite count
    """

    id: str
    service: str
    name: str = ""
    indexed: int = 0
    updated: int = 0
    favorited: int = 0

    @field_validator("id", "service", "name", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _to_text(value)

    @field_validator("indexed", "updated", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> int:
        return _to_epoch(value)

    @field_validator("favorited", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        if value is None:
            return 0
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0


class PostFile(CatalogModel):
    """File or attachment reference."""

    name: str = ""
    path: str = ""

    @field_validator("name", "path", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _to_text(value)


class PostRecord(CatalogModel):
    """Single post.

    Accepts the bare post object as well as the ``{"post": {...}}`` wrapper
    returned by the single-post endpoint. ``file`` may arrive either as one
    object or as a list of objects.
    """

    id: str
    user: str = ""
    service: str = ""
    title: str = ""
    content: str = ""
    embed_url: str | None = None
    shared_file: bool = False
    added: str | None = None
    published: str | None = None
    edited: str | None = None
    attachments: list[PostFile] = Field(default_factory=list)
    file: list[PostFile] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _unwrap(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("post"), dict):
            data = data["post"]
        if isinstance(data, dict) and "embed_url" not in data:
            embed = data.get("embed")
            if isinstance(embed, dict) and embed.get("url"):
                return {**data, "embed_url": embed["url"]}
        return data

    @field_validator("id", "user", "service", "title", "content", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _to_text(value)

    @field_validator("added", "published", "edited", "embed_url", mode="before")
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> str | None:
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("shared_file", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return bool(value)

    @field_validator("file", mode="before")
    @classmethod
    def _coerce_file(cls, value: Any) -> list[Any]:
        if value is None:
            return []
        if isinstance(value, dict):
            return [value] if value else []
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict) and item]
        return []

    @field_validator("attachments", mode="before")
    @classmethod
    def _coerce_attachments(cls, value: Any) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(tag) for tag in value if tag is not None]

    @property
    def media(self) -> list[PostFile]:
        """Main file(s) followed by attachments, without duplicates."""
        seen: set[str] = set()
        result: list[PostFile] = []
        for item in [*self.file, *self.attachments]:
            if item.path and item.path not in seen:
                seen.add(item.path)
                result.append(item)
        return result


class CreatorSearchHit(CatalogModel):
    """Hit returned by the name-search resolver service."""

    id: str
    name: str = ""
    service: str = ""
    favorited: int = 0
    indexed: int = 0
    updated: int = 0

    @field_validator("id", "name", "service", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _to_text(value)

    @field_validator("indexed", "updated", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> int:
        return _to_epoch(value)

    @field_validator("favorited", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0

    def to_creator(self) -> CreatorRecord:
        """Convert the hit into a creator record."""
        return CreatorRecord(
            id=self.id,
            service=self.service,
            name=self.name,
            indexed=self.indexed,
            updated=self.updated,
            favorited=self.favorited,
        )


class CreatorLink(CatalogModel):
    """Account linked to a creator, possibly on another service."""

    id: str
    name: str = ""
    service: str = ""
    public_id: str | None = None
    relation_id: int | None = None

    @field_validator("id", "name", "service", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _to_text(value)

    @field_validator("public_id", mode="before")
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> str | None:
        return None if value is None else str(value)

    @field_validator("relation_id", mode="before")
    @classmethod
    def _coerce_relation(cls, value: Any) -> int | None:
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


class CommentRecord(CatalogModel):
    """Comment on a post.

    Attributes:
        id: Comment identifier
        parent_id: Identifier of the comment replied to, if any
        commenter: Commenter account identifier
        commenter_name: Display name (``Anonymous`` when missing)
        content: Comment body
        published: Publication timestamp as sent by the catalog
    """

    id: str
    parent_id: str | None = None
    commenter: str = ""
    commenter_name: str = "Anonymous"
    content: str = ""
    published: str | None = None

    @field_validator("id", "commenter", "content", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _to_text(value)

    @field_validator("commenter_name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        return _to_text(value) or "Anonymous"

    @field_validator("parent_id", "published", mode="before")
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> str | None:
        if value is None or value == "":
            return None
        return str(value)


__all__ = [
    "CatalogModel",
    "CommentRecord",
    "CreatorLink",
    "CreatorRecord",
    "CreatorSearchHit",
    "PostFile",
    "PostRecord",
]
