"""Settings loader and singleton manager.

This module handles:
- Environment variable loading from .env files
- Configuration file loading from TOML
- Thread-safe singleton pattern for the Settings instance
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv
from pydantic import ValidationError

from kcgallery.config.models.settings import Settings
from kcgallery.shared.constants import FileSystem
from kcgallery.shared.errors import ConfigurationError, ErrorCode, ErrorContext

logger = logging.getLogger(__name__)


def default_config_paths() -> list[Path]:
    """Configuration files searched when no explicit path is given, in order."""
    return [
        Path("config") / FileSystem.CONFIG_FILE,
        Path(FileSystem.CONFIG_FILE),
        Path.home() / FileSystem.HOME_DIR / FileSystem.CONFIG_FILE,
    ]


def _load_env_file(env_file: Path | None = None) -> bool:
    """Load a .env file into the process environment if present.

    Variables already set in the environment win over the file.

    Returns:
        True if a file was loaded
    """
    env_file = env_file or Path(FileSystem.ENV_FILE)
    if not env_file.exists():
        return False
    loaded = load_dotenv(env_file, override=False)
    logger.debug("Loaded environment from %s", env_file)
    return bool(loaded)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from a TOML file or the environment.

    Args:
        config_path: Optional explicit TOML file. If None the default
            locations are searched, then environment variables alone are used.

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If the file cannot be parsed or fails validation
        FileNotFoundError: If an explicit config_path does not exist
    """
    _load_env_file()

    candidates = [Path(config_path)] if config_path else default_config_paths()
    for path in candidates:
        if config_path is None and not path.exists():
            continue
        try:
            return Settings.from_toml_file(path)
        except ValidationError as e:
            raise ConfigurationError(
                code=ErrorCode.INVALID_CONFIG,
                message=f"Invalid configuration in {path}: {e.error_count()} error(s)",
                context=ErrorContext(
                    operation="load_settings",
                    additional_data={"config_path": str(path)},
                ),
                original_error=e,
            ) from e
        except FileNotFoundError:
            raise
        except (OSError, ValueError) as e:
            raise ConfigurationError(
                code=ErrorCode.CONFIGURATION_ERROR,
                message=f"Failed to read configuration file {path}: {e}",
                context=ErrorContext(
                    operation="load_settings",
                    additional_data={"config_path": str(path)},
                ),
                original_error=e,
            ) from e

    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(
            code=ErrorCode.INVALID_CONFIG,
            message=f"Invalid configuration in environment: {e.error_count()} error(s)",
            context=ErrorContext(operation="load_settings"),
            original_error=e,
        ) from e


class SettingsLoader:
    """Thread-safe singleton manager for Settings.

    Uses double-checked locking so the common path needs no lock.
    """

    def __init__(self, factory: Callable[[], Settings] = load_settings) -> None:
        self._factory = factory
        self._instance: Settings | None = None
        self._lock = threading.RLock()

    def get_config(self) -> Settings:
        """Get the global settings instance, loading it on first use."""
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = self._factory()
        return self._instance

    def reload_config(self) -> Settings:
        """Reload the settings from configuration files."""
        with self._lock:
            self._instance = self._factory()
            return self._instance

    def set_config(self, settings: Settings) -> None:
        """Replace the global instance (used by the CLI --config option)."""
        with self._lock:
            self._instance = settings


_loader = SettingsLoader()


def get_config() -> Settings:
    """Get the global settings instance (thread-safe)."""
    return _loader.get_config()


def reload_config() -> Settings:
    """Reload the global settings instance from configuration files."""
    return _loader.reload_config()


def set_config(settings: Settings) -> None:
    """Install an explicitly loaded Settings instance as the global one."""
    _loader.set_config(settings)


__all__ = [
    "SettingsLoader",
    "default_config_paths",
    "get_config",
    "load_settings",
    "reload_config",
    "set_config",
]
