"""Cache backends for relmap metadata."""

from .backends import CacheBackend, InMemoryCache, NoOpCache

__all__ = ["CacheBackend", "NoOpCache", "InMemoryCache"]
