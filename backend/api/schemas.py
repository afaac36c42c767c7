"""
API — Pydantic response schemas.
HTTP-layer validation and serialisation only; no business logic.
"""

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Common
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    service: str


class TimeResponse(BaseModel):
    """GET /api/time response."""

    server_time: str
    effective_date: str
    timezone: str


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Exchange Rates
# ---------------------------------------------------------------------------


class CurrencyResponse(BaseModel):
    code: str
    name: str


class RateRecordResponse(BaseModel):
    code: str
    name: str
    buy: float | None = None
    sell: float | None = None
    date: str


class RatesResponse(BaseModel):
    """Rates for one day. `date` is the day actually served."""

    requested_date: str
    date: str | None = None
    from_previous_date: bool = False
    source: str
    rates: list[RateRecordResponse]


class HistoryPointResponse(BaseModel):
    date: str
    buy: float | None = None
    sell: float | None = None


class HistoryResponse(BaseModel):
    code: str
    start: str
    end: str
    source: str
    points: list[HistoryPointResponse]


class DateRangeResponse(BaseModel):
    start: str
    end: str


class BulkHistoryResponse(BaseModel):
    """Clients must read actual_range; it may differ from requested_range."""

    requested_range: DateRangeResponse
    actual_range: DateRangeResponse
    source: str
    series: dict[str, list[HistoryPointResponse]]


# ---------------------------------------------------------------------------
# Cache Administration
# ---------------------------------------------------------------------------


class CacheStatsItem(BaseModel):
    hit_count: int
    miss_count: int
    key_count: int
    capacity: int
    default_ttl_seconds: float
    evictions: int


class CacheClearResponse(BaseModel):
    status: str = "ok"
    removed: dict[str, int]


# ---------------------------------------------------------------------------
# Cache Warming
# ---------------------------------------------------------------------------


class WarmingJobResponse(BaseModel):
    id: str
    kind: str
    status: str
    last_run_at: str | None = None
    next_run_at: str | None = None
    last_error: str | None = None


class WarmingStatusResponse(BaseModel):
    jobs: list[WarmingJobResponse]
    timestamp: str
    running: bool
    sweep_in_flight: bool


class WarmingRunAllResponse(BaseModel):
    status: str
    message: str
