"""
Application — cache administration.
Stats, full clear and single-cache clear over the shared cache store.
"""

from domain.enums import CacheName
from infrastructure.cache_store import CacheStore, UnknownCacheNameError
from logging_config import get_logger

logger = get_logger(__name__)

__all__ = [
    "CacheStore",
    "UnknownCacheNameError",
    "clear_all_caches",
    "clear_cache",
    "get_cache_stats",
]


def get_cache_stats(store: CacheStore) -> dict[str, dict]:
    """Per-cache hit/miss/key counters keyed by cache name."""
    return store.all_stats()


def clear_all_caches(store: CacheStore) -> dict[str, int]:
    """Flush every named cache. Returns the number of entries removed per cache."""
    removed = store.flush_all()
    logger.info("Cache clear requested: removed %s", removed)
    return removed


def clear_cache(store: CacheStore, name: str) -> int:
    """
    Flush one named cache.

    Raises:
        UnknownCacheNameError: name is not one of rates / historical / metadata.
    """
    if name not in {n.value for n in CacheName}:
        raise UnknownCacheNameError(f"Unknown cache: {name}")
    return store.flush(name)
