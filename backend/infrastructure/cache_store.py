"""
Infrastructure — in-memory tiered cache store.
Three independent named caches (rates / historical / metadata) with per-entry
TTL, bounded capacity and insertion-order (FIFO) eviction, backed by
cachetools.FIFOCache. Lives for the process lifetime; nothing is persisted.

The store is constructed once at startup and passed to the resolver, the
warming scheduler and the request handlers.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from cachetools import FIFOCache

from domain.constants import (
    CACHE_PRUNE_INTERVAL_SECONDS,
    HISTORICAL_CACHE_MAXSIZE,
    HISTORICAL_CACHE_TTL,
    METADATA_CACHE_MAXSIZE,
    METADATA_CACHE_TTL,
    RATES_CACHE_MAXSIZE,
    RATES_CACHE_TTL,
)
from domain.entities import CacheEntry, CacheKey, CachePayload
from domain.enums import CacheName, DatasetType
from logging_config import get_logger

logger = get_logger(__name__)


class UnknownCacheNameError(Exception):
    """Cache name is not one of the named caches."""


@dataclass(frozen=True)
class CacheConfig:
    name: CacheName
    capacity: int
    default_ttl_seconds: float


DEFAULT_CACHE_CONFIGS: tuple[CacheConfig, ...] = (
    CacheConfig(CacheName.RATES, RATES_CACHE_MAXSIZE, RATES_CACHE_TTL),
    CacheConfig(CacheName.HISTORICAL, HISTORICAL_CACHE_MAXSIZE, HISTORICAL_CACHE_TTL),
    CacheConfig(CacheName.METADATA, METADATA_CACHE_MAXSIZE, METADATA_CACHE_TTL),
)


# ---------------------------------------------------------------------------
# Named Cache
# ---------------------------------------------------------------------------


class NamedCache:
    """
    One bounded TTL cache.

    Eviction policy: when inserting a new key into a full cache, expired
    entries are dropped first; if the cache is still full the
    least-recently-inserted entry is evicted. Overwriting a key counts as a
    fresh insertion (the key moves to the newest position).
    """

    def __init__(
        self,
        config: CacheConfig,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.name = config.name
        self.capacity = config.capacity
        self.default_ttl_seconds = config.default_ttl_seconds
        self._timer = timer
        self._entries: FIFOCache = FIFOCache(maxsize=config.capacity)
        self.hit_count = 0
        self.miss_count = 0
        self.evictions = 0

    def set(
        self, key: CacheKey, payload: CachePayload, ttl_seconds: float | None = None
    ) -> None:
        rendered = key.render()
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries.pop(rendered, None)
        if len(self._entries) >= self.capacity:
            self.prune()
            if len(self._entries) >= self.capacity:
                self.evictions += 1
                logger.debug(
                    "[%s] capacity %d reached, evicting oldest entry.",
                    self.name,
                    self.capacity,
                )
        self._entries[rendered] = CacheEntry(
            key=key, payload=payload, inserted_at=self._timer(), ttl_seconds=ttl
        )

    def get(self, key: CacheKey | str) -> CachePayload | None:
        rendered = key if isinstance(key, str) else key.render()
        entry: CacheEntry | None = self._entries.get(rendered)
        if entry is None:
            self.miss_count += 1
            return None
        if entry.is_expired(self._timer()):
            del self._entries[rendered]
            self.miss_count += 1
            return None
        self.hit_count += 1
        return entry.payload

    def delete(self, key: CacheKey | str) -> bool:
        rendered = key if isinstance(key, str) else key.render()
        return self._entries.pop(rendered, None) is not None

    def flush(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def entries(self, dataset: DatasetType | None = None) -> list[CacheEntry]:
        """
        Live entries in insertion order, optionally filtered by dataset.
        Does not touch the hit/miss counters.
        """
        now = self._timer()
        return [
            entry
            for entry in list(self._entries.values())
            if not entry.is_expired(now)
            and (dataset is None or entry.key.dataset == dataset)
        ]

    def keys(self) -> list[str]:
        return [entry.key.render() for entry in self.entries()]

    def prune(self) -> int:
        now = self._timer()
        expired = [
            k for k, entry in list(self._entries.items()) if entry.is_expired(now)
        ]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def stats(self) -> dict:
        return {
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
            "key_count": len(self.entries()),
            "capacity": self.capacity,
            "default_ttl_seconds": self.default_ttl_seconds,
            "evictions": self.evictions,
        }


# ---------------------------------------------------------------------------
# Cache Store
# ---------------------------------------------------------------------------


class CacheStore:
    """Registry of the named caches plus the daily-rolling key builder."""

    def __init__(
        self,
        configs: tuple[CacheConfig, ...] = DEFAULT_CACHE_CONFIGS,
        timer: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = date.today,
    ):
        self._caches: dict[CacheName, NamedCache] = {
            cfg.name: NamedCache(cfg, timer=timer) for cfg in configs
        }
        self._today = today

    @property
    def names(self) -> list[str]:
        return [name.value for name in self._caches]

    def cache(self, cache_name: CacheName | str) -> NamedCache:
        try:
            return self._caches[CacheName(cache_name)]
        except (ValueError, KeyError):
            raise UnknownCacheNameError(f"Unknown cache: {cache_name}") from None

    def key(
        self,
        dataset: DatasetType,
        *params: str,
        subject_date: date | None = None,
        range_start: date | None = None,
    ) -> CacheKey:
        """Key stamped with today's date; deterministic within one calendar day."""
        return CacheKey(
            dataset=dataset,
            as_of=self._today(),
            params=tuple(params),
            subject_date=subject_date,
            range_start=range_start,
        )

    # -- per-cache operations -------------------------------------------------

    def set(
        self,
        cache_name: CacheName | str,
        key: CacheKey,
        payload: CachePayload,
        ttl_seconds: float | None = None,
    ) -> None:
        self.cache(cache_name).set(key, payload, ttl_seconds)
        logger.debug("[%s] set %s (ttl=%s)", cache_name, key, ttl_seconds)

    def get(
        self, cache_name: CacheName | str, key: CacheKey | str
    ) -> CachePayload | None:
        return self.cache(cache_name).get(key)

    def delete(self, cache_name: CacheName | str, key: CacheKey | str) -> bool:
        return self.cache(cache_name).delete(key)

    def flush(self, cache_name: CacheName | str) -> int:
        removed = self.cache(cache_name).flush()
        logger.info(
            "Cache [%s] flushed (%d entries).",
            cache_name,
            removed,
            extra={"cache": str(cache_name)},
        )
        return removed

    def keys(self, cache_name: CacheName | str) -> list[str]:
        return self.cache(cache_name).keys()

    def entries(
        self, cache_name: CacheName | str, dataset: DatasetType | None = None
    ) -> list[CacheEntry]:
        return self.cache(cache_name).entries(dataset)

    def prune(self, cache_name: CacheName | str) -> int:
        return self.cache(cache_name).prune()

    def stats(self, cache_name: CacheName | str) -> dict:
        return self.cache(cache_name).stats()

    # -- all caches -----------------------------------------------------------

    def flush_all(self) -> dict[str, int]:
        result = {name.value: cache.flush() for name, cache in self._caches.items()}
        logger.info("All caches cleared (%d caches).", len(result))
        return result

    def prune_all(self) -> dict[str, int]:
        result = {name.value: cache.prune() for name, cache in self._caches.items()}
        logger.info("Expired cache entries pruned: %s", result)
        return result

    def all_stats(self) -> dict[str, dict]:
        return {name.value: cache.stats() for name, cache in self._caches.items()}


async def run_periodic_prune(
    store: CacheStore, interval_seconds: float = CACHE_PRUNE_INTERVAL_SECONDS
) -> None:
    """Background memory reclamation. get() never relies on it for correctness."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            store.prune_all()
        except Exception as exc:
            logger.warning("Periodic cache prune failed: %s", exc, exc_info=True)
