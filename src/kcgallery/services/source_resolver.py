"""Service to content-source routing.

A fixed set of services lives on the secondary catalog; every other service
identifier, including unknown ones and the "all services" sentinel, routes
to the primary catalog. Resolution is pure: no I/O, no mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass

from kcgallery.config.models.source_settings import SourceSettings, normalize_hosts
from kcgallery.shared.models import ContentSource


@dataclass(frozen=True)
class Resolution:
    """Source plus its ordered host candidates."""

    source: ContentSource
    hosts: tuple[str, ...]


class SourceResolver:
    """Resolves service identifiers to a content source and host list.

    Args:
        settings: Host lists and the secondary service table
    """

    def __init__(self, settings: SourceSettings | None = None) -> None:
        self.settings = settings or SourceSettings()
        self._secondary_services = frozenset(self.settings.secondary_services)
        self._hosts = {
            ContentSource.PRIMARY: tuple(normalize_hosts(self.settings.primary_hosts)),
            ContentSource.SECONDARY: tuple(normalize_hosts(self.settings.secondary_hosts)),
        }
        self._search_hosts = {
            ContentSource.PRIMARY: tuple(normalize_hosts(self.settings.primary_search_hosts)),
            ContentSource.SECONDARY: tuple(normalize_hosts(self.settings.secondary_search_hosts)),
        }

    def source_for(self, service_id: str | None) -> ContentSource:
        """Return the source hosting ``service_id``."""
        if service_id and service_id.strip().lower() in self._secondary_services:
            return ContentSource.SECONDARY
        return ContentSource.PRIMARY

    def resolve(self, service_id: str | None) -> Resolution:
        """Resolve a service identifier to its source and host candidates."""
        source = self.source_for(service_id)
        return Resolution(source=source, hosts=self._hosts[source])

    def hosts_for(self, source: ContentSource) -> tuple[str, ...]:
        """Catalog API host candidates for a source, in preference order."""
        return self._hosts[source]

    def search_hosts_for(self, source: ContentSource) -> tuple[str, ...]:
        """Name-search resolver hosts for a source."""
        return self._search_hosts[source]


__all__ = ["Resolution", "SourceResolver"]
