"""
CLI Context Management Module

Holds the options shared by every command (output mode, log level, config
file, source override) in a ContextVar so command handlers can read them
without threading them through every call.
"""

from __future__ import annotations

import contextvars
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from kcgallery.shared.models import ContentSource


class LogLevel(str, Enum):
    """Log level enumeration for type safety."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class CliContext(BaseModel):
    """Global CLI options.

    Attributes:
        json_output: Print machine-readable JSON instead of tables
        log_level: Console log level (None uses the configured level)
        config_path: Explicit configuration file
        source: Source override for the latest-posts listing
    """

    json_output: bool = Field(default=False, description="JSON output mode")
    log_level: LogLevel | None = Field(default=None, description="Logging level override")
    config_path: Path | None = Field(default=None, description="Configuration file")
    source: ContentSource | None = Field(default=None, description="Source override")


_cli_context: contextvars.ContextVar[CliContext | None] = contextvars.ContextVar(
    "cli_context",
    default=None,
)


def set_cli_context(context: CliContext) -> None:
    _cli_context.set(context)


def get_cli_context() -> CliContext:
    """Return the current context (defaults when no callback ran)."""
    return _cli_context.get() or CliContext()


__all__ = ["CliContext", "LogLevel", "get_cli_context", "set_cli_context"]
