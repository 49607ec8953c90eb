"""
System Configuration Constants

Application metadata, file system locations and logging defaults.
"""

# =============================================================================
# APPLICATION METADATA
# =============================================================================


class Application:
    """Application metadata constants."""

    NAME = "KC Gallery"
    VERSION = "0.1.0"


# =============================================================================
# FILE AND PATH CONFIGURATION
# =============================================================================


class FileSystem:
    """File system related constants."""

    HOME_DIR = ".kcgallery"
    CONFIG_FILE = "config.toml"
    ENV_FILE = ".env"
    BLOB_SUFFIX = ".json"


class Logging:
    """Logging configuration constants."""

    DEFAULT_LEVEL = "INFO"
