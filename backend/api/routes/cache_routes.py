"""
API — cache administration routes.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.dependencies import get_cache_store
from api.rate_limit import limiter
from api.schemas import CacheClearResponse, CacheStatsItem
from application.cache_service import (
    CacheStore,
    UnknownCacheNameError,
    clear_all_caches,
    clear_cache,
    get_cache_stats,
)
from domain.constants import ERROR_UNKNOWN_CACHE, RATE_LIMIT_CACHE_ADMIN

router = APIRouter()


@router.get(
    "/cache/stats",
    response_model=dict[str, CacheStatsItem],
    summary="Hit / miss / key counters per cache, keyed by cache name",
)
async def cache_stats(
    store: CacheStore = Depends(get_cache_store),
) -> dict[str, CacheStatsItem]:
    stats = get_cache_stats(store)
    return {name: CacheStatsItem(**item) for name, item in stats.items()}


@router.delete(
    "/cache/clear",
    response_model=CacheClearResponse,
    summary="Flush every cache",
)
@limiter.limit(RATE_LIMIT_CACHE_ADMIN)
async def cache_clear_all(
    request: Request,
    store: CacheStore = Depends(get_cache_store),
) -> CacheClearResponse:
    return CacheClearResponse(removed=clear_all_caches(store))


@router.delete(
    "/cache/{name}",
    response_model=CacheClearResponse,
    summary="Flush one cache (rates / historical / metadata)",
)
@limiter.limit(RATE_LIMIT_CACHE_ADMIN)
async def cache_clear_one(
    request: Request,
    name: str,
    store: CacheStore = Depends(get_cache_store),
) -> CacheClearResponse:
    try:
        removed = clear_cache(store, name)
    except UnknownCacheNameError as e:
        raise HTTPException(
            status_code=404,
            detail={"error_code": ERROR_UNKNOWN_CACHE, "detail": str(e)},
        ) from e
    return CacheClearResponse(removed={name: removed})
