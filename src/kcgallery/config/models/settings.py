"""KC Gallery Settings Configuration Model.

Main Settings class that consolidates all configuration domains.
"""

from __future__ import annotations

import logging
from pathlib import Path

import toml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kcgallery.config.models.app_settings import (
    AppSettings,
    HistorySettings,
    LoggingSettings,
)
from kcgallery.config.models.cache_settings import CacheSettings
from kcgallery.config.models.fetch_settings import FetchSettings
from kcgallery.config.models.retry_settings import RetrySettings
from kcgallery.config.models.source_settings import SourceSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Settings facade providing unified configuration access.

    Every field can be overridden through ``KCGALLERY_`` environment
    variables, with ``__`` separating nested levels, for example
    ``KCGALLERY_RETRY__SECONDARY__MAX_ATTEMPTS=4``.
    """

    model_config = SettingsConfigDict(
        env_prefix="KCGALLERY_",
        env_nested_delimiter="__",
        env_ignore_empty=True,
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    sources: SourceSettings = Field(default_factory=SourceSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)

    @classmethod
    def from_toml_file(cls, file_path: str | Path) -> Settings:
        """Load settings from TOML file with environment variable overrides.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        file_path = Path(file_path)
        if not file_path.exists():
            msg = f"Configuration file not found: {file_path}"
            raise FileNotFoundError(msg)

        raw_config = toml.load(file_path)
        logger.debug("Loaded configuration from %s", file_path)
        return cls(**raw_config)

    def to_toml_file(self, file_path: str | Path) -> None:
        """Save settings to TOML file."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self.model_dump(mode="json", exclude_none=True)

        with open(file_path, "w", encoding="utf-8") as f:
            toml.dump(config_dict, f)


__all__ = ["Settings"]
