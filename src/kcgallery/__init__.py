"""
KC Gallery - Kemono/Coomer catalog fetch & cache engine

Fetches creators, posts and listings from the two catalog backends with
per-source retry policies, bounded pagination and a persistent TTL cache.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
