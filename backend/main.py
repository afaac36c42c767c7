"""
BCRA Rates — FastAPI application entry point.
Builds the app, wires the services, registers routes and manages the
background tasks (cache warming sweeps, periodic cache pruning).
"""

import asyncio
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.dependencies import get_time_source
from api.rate_limit import limiter
from api.routes.cache_routes import router as cache_router
from api.routes.cache_warming_routes import router as cache_warming_router
from api.routes.exchange_routes import router as exchange_router
from api.schemas import HealthResponse, TimeResponse
from application.cache_warming_service import CacheWarmingScheduler
from application.rate_service import RateService
from config.settings import init_settings
from domain import constants
from domain.protocols import TimeSource
from infrastructure.bcra_client import BCRAClient
from infrastructure.cache_store import CacheStore, run_periodic_prune
from infrastructure.time_source import WorldTimeSource
from logging_config import get_logger, request_id_var

# Load environment variables from .env file
load_dotenv()
init_settings()

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Service Wiring
# ---------------------------------------------------------------------------


@dataclass
class Services:
    store: CacheStore
    upstream: BCRAClient
    time_source: WorldTimeSource
    rate_service: RateService
    scheduler: CacheWarmingScheduler


def build_services() -> Services:
    """Construct the single process-wide instance of every service."""
    store = CacheStore()
    upstream = BCRAClient()
    time_source = WorldTimeSource()
    return Services(
        store=store,
        upstream=upstream,
        time_source=time_source,
        rate_service=RateService(store, upstream, time_source),
        scheduler=CacheWarmingScheduler(
            store,
            upstream,
            time_source,
            interval_seconds=constants.CACHE_WARMING_INTERVAL_SECONDS,
            initial_delay_seconds=constants.CACHE_WARMING_INITIAL_DELAY_SECONDS,
        ),
    )


# ---------------------------------------------------------------------------
# Lifespan: start / stop background tasks
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("BCRA rates backend starting...")
    services = build_services()
    app.state.services = services

    prune_task = asyncio.create_task(
        run_periodic_prune(services.store), name="cache-prune"
    )
    if constants.CACHE_WARMING_ENABLED:
        services.scheduler.start()
    else:
        logger.info("Cache warming disabled by configuration.")
    logger.info("Service ready.")

    yield

    logger.info("BCRA rates backend shutting down...")
    await services.scheduler.stop()
    prune_task.cancel()
    try:
        await prune_task
    except asyncio.CancelledError:
        pass
    for closeable in (services.upstream, services.time_source):
        aclose = getattr(closeable, "aclose", None)
        if aclose is not None:
            await aclose()


# ---------------------------------------------------------------------------
# App Factory
# ---------------------------------------------------------------------------

app = FastAPI(
    title="BCRA Rates API",
    description="Cached BCRA exchange rates with date fallback",
    version="1.0.0",
    lifespan=lifespan,
)

# Register rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=constants.CORS_ALLOW_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "X-Request-ID"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Health & Time
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse, summary="Health check")
@limiter.exempt
async def health_check() -> dict:
    """Health check endpoint, exempt from rate limiting (Docker healthcheck)."""
    return {"status": "ok", "service": constants.SERVICE_NAME}


@app.get("/api/time", response_model=TimeResponse, summary="Server time")
async def server_time(
    time_source: TimeSource = Depends(get_time_source),
) -> TimeResponse:
    """Server clock plus the date used for upstream queries."""
    effective = await time_source.today()
    return TimeResponse(
        server_time=datetime.now(UTC).isoformat(),
        effective_date=effective.isoformat(),
        timezone=constants.UPSTREAM_TIMEZONE,
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(exchange_router, prefix=constants.API_PREFIX)
app.include_router(cache_router, prefix=constants.API_PREFIX)
app.include_router(cache_warming_router, prefix=constants.API_PREFIX)
