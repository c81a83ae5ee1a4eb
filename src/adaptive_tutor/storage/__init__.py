from .cache_store import (
    CacheEntry,
    CacheStore,
    InMemoryCacheStore,
    JsonFileCacheStore,
    cache_key,
    create_cache_store,
)

__all__ = [
    "CacheEntry",
    "CacheStore",
    "InMemoryCacheStore",
    "JsonFileCacheStore",
    "cache_key",
    "create_cache_store",
]
