"""Content source configuration model.

Host lists are ordered mirror candidates. Trailing slashes are stripped and
duplicates removed so that URL building never produces ``//``. A bare
domain such as ``kemono.cr`` is accepted and expanded to its HTTPS URL.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from kcgallery.shared.constants import CatalogHosts, SecondaryServices
from kcgallery.shared.models import ContentSource

_DOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_PROTOCOLS = ("https://", "http://")


def clean_host(value: str) -> str:
    """Strip whitespace, the protocol and trailing slashes from a host.

    >>> clean_host(" https://kemono.cr/ ")
    'kemono.cr'
    """
    cleaned = value.strip()
    for protocol in _PROTOCOLS:
        if cleaned.lower().startswith(protocol):
            cleaned = cleaned[len(protocol) :]
            break
    return cleaned.rstrip("/")


def is_valid_domain(value: str) -> bool:
    """Check that ``value`` is a bare domain such as ``coomer.st``."""
    return bool(value) and _DOMAIN_PATTERN.match(value) is not None


def normalize_hosts(hosts: list[str], api_path: str = "") -> list[str]:
    """Strip whitespace and trailing slashes, drop blanks and duplicates.

    Entries without a protocol must be bare domains; they become
    ``https://<domain><api_path>``.

    Raises:
        ValueError: If a bare entry is not a valid domain
    """
    seen: set[str] = set()
    result: list[str] = []
    for host in hosts:
        cleaned = host.strip().rstrip("/")
        if cleaned and not cleaned.lower().startswith(_PROTOCOLS):
            domain = clean_host(cleaned)
            if not is_valid_domain(domain):
                msg = f"invalid host {host!r}: expected a URL or a bare domain"
                raise ValueError(msg)
            cleaned = f"https://{domain}{api_path}"
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result


class SourceSettings(BaseModel):
    """Hosts and service routing for both content sources."""

    default_source: ContentSource = Field(
        default=ContentSource.PRIMARY,
        description="Source used by listings that are not tied to a service",
    )
    primary_hosts: list[str] = Field(default_factory=lambda: list(CatalogHosts.PRIMARY))
    secondary_hosts: list[str] = Field(default_factory=lambda: list(CatalogHosts.SECONDARY))
    primary_search_hosts: list[str] = Field(
        default_factory=lambda: list(CatalogHosts.PRIMARY_SEARCH),
    )
    secondary_search_hosts: list[str] = Field(
        default_factory=lambda: list(CatalogHosts.SECONDARY_SEARCH),
    )
    secondary_services: list[str] = Field(
        default_factory=lambda: sorted(SecondaryServices.IDS),
        description="Service identifiers routed to the secondary source",
    )

    @field_validator(
        "primary_hosts",
        "secondary_hosts",
        "primary_search_hosts",
        "secondary_search_hosts",
    )
    @classmethod
    def _normalize(cls, value: list[str], info: ValidationInfo) -> list[str]:
        api_path = "" if info.field_name.endswith("_search_hosts") else CatalogHosts.API_PATH
        hosts = normalize_hosts(value, api_path)
        if not hosts:
            msg = "at least one host is required"
            raise ValueError(msg)
        return hosts

    @field_validator("secondary_services")
    @classmethod
    def _lowercase(cls, value: list[str]) -> list[str]:
        return sorted({service.strip().lower() for service in value if service.strip()})


__all__ = ["SourceSettings", "clean_host", "is_valid_domain", "normalize_hosts"]
