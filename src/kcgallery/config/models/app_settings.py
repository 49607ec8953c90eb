"""Application, logging and search history configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from kcgallery.shared.constants import Application, HistoryDefaults, Logging


class AppSettings(BaseModel):
    """Application metadata."""

    name: str = Field(default=Application.NAME, description="Application name")
    version: str = Field(default=Application.VERSION, description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")


class LoggingSettings(BaseModel):
    """Logging configuration.

    ``console_output`` selects the Rich console handler; ``json_output``
    switches the console to one JSON object per line instead.
    """

    level: str = Field(default=Logging.DEFAULT_LEVEL, description="Logging level")
    file: str | None = Field(default=None, description="Optional JSON log file path")
    console_output: bool = Field(default=True, description="Enable Rich console logging")
    json_output: bool = Field(default=False, description="Log JSON lines to the console")


class HistorySettings(BaseModel):
    """Search history limits."""

    enabled: bool = Field(default=True, description="Record search queries")
    max_entries: int = Field(
        default=HistoryDefaults.MAX_ENTRIES,
        gt=0,
        description="Maximum remembered queries",
    )
    retention_days: int = Field(
        default=HistoryDefaults.RETENTION_DAYS,
        gt=0,
        description="Queries older than this are dropped",
    )


__all__ = ["AppSettings", "HistorySettings", "LoggingSettings"]
