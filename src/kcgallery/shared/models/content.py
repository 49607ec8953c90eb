"""Content source and fetch key types.

These value types identify *what* is fetched from *which* backend. They are
shared by the cache store, the pagination cursor and the catalog client.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ContentSource(str, Enum):
    """Backend catalog serving a request.

    ``primary`` is the general catalog; ``secondary`` hosts a small fixed set
    of services and is noticeably slower and less reliable.
    """

    PRIMARY = "primary"
    SECONDARY = "secondary"

    @classmethod
    def parse(cls, value: str | ContentSource | None) -> ContentSource:
        """Parse a source name, defaulting to primary for empty input."""
        if isinstance(value, ContentSource):
            return value
        if not value:
            return cls.PRIMARY
        try:
            return cls(value.strip().lower())
        except ValueError as e:
            msg = f"Unknown content source: {value!r}"
            raise ValueError(msg) from e


class EntityKind(str, Enum):
    """Entity class addressed by a FetchKey."""

    CREATOR = "creator"
    POSTS = "posts"
    POST = "post"
    NAME_SEARCH = "name_search"
    LINKS = "links"
    COMMENTS = "comments"


@dataclass(frozen=True)
class FetchKey:
    """Immutable cache and listing key.

    Attributes:
        source: Backend the entity was fetched from
        kind: Entity class
        entity_id: Entity identifier (``service/creator`` for creators,
            ``service/creator/post`` for posts, the query for searches)
        offset: Page offset for paginated listings, 0 otherwise
    """

    source: ContentSource
    kind: EntityKind
    entity_id: str
    offset: int = 0

    SEPARATOR = ":"

    def __post_init__(self) -> None:
        if self.offset < 0:
            msg = f"offset must be non-negative, got {self.offset}"
            raise ValueError(msg)

    def __str__(self) -> str:
        return self.SEPARATOR.join(
            (self.source.value, self.kind.value, self.entity_id, str(self.offset)),
        )

    @classmethod
    def parse(cls, value: str) -> FetchKey:
        """Rebuild a key from its string form.

        The entity id may itself contain the separator, so the source and kind
        are split from the left and the offset from the right.

        Raises:
            ValueError: If the string is not a valid key
        """
        try:
            source, kind, rest = value.split(cls.SEPARATOR, 2)
            entity_id, offset = rest.rsplit(cls.SEPARATOR, 1)
            return cls(
                source=ContentSource(source),
                kind=EntityKind(kind),
                entity_id=entity_id,
                offset=int(offset),
            )
        except ValueError as e:
            msg = f"Invalid fetch key: {value!r}"
            raise ValueError(msg) from e

    def with_offset(self, offset: int) -> FetchKey:
        """Return the key of another page of the same listing."""
        return FetchKey(self.source, self.kind, self.entity_id, offset)


__all__ = ["ContentSource", "EntityKind", "FetchKey"]
