"""KC Gallery Shared Module.

This package contains the domain models, constants, error taxonomy and
logging helpers shared across the fetch & cache engine.
"""

__all__ = ["constants", "error_messages", "errors", "logging", "models", "protocols"]
