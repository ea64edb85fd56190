"""
Storage Package

Handles response caching between the HTTP layer and the market data provider.

Current implementation:
- In-memory TTL cache (CacheStore), one instance per application process

Nothing is persisted: the cache starts empty on every restart and is not
shared between processes.
"""

from storage.cache import CacheStore, CacheEntry, DEFAULT_TTL_MS

__all__ = ["CacheStore", "CacheEntry", "DEFAULT_TTL_MS"]
