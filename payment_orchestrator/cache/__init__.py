"""Cache store abstraction and Redis implementation."""
from .store import CacheMiss, CacheStore, RedisCacheStore

__all__ = ["CacheMiss", "CacheStore", "RedisCacheStore"]
