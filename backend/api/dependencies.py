"""
API — dependency providers.
Services are built once in the application lifespan and stored on
app.state.services; handlers receive them through these providers.
"""

from fastapi import Request

from application.cache_warming_service import CacheWarmingScheduler
from application.cache_service import CacheStore
from application.rate_service import RateService
from domain.protocols import TimeSource


def get_cache_store(request: Request) -> CacheStore:
    return request.app.state.services.store


def get_rate_service(request: Request) -> RateService:
    return request.app.state.services.rate_service


def get_scheduler(request: Request) -> CacheWarmingScheduler:
    return request.app.state.services.scheduler


def get_time_source(request: Request) -> TimeSource:
    return request.app.state.services.time_source
