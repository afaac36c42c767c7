"""
Shared test fixtures — fake upstream, fixed clocks, TestClient with fake services.
"""

import os
import tempfile

# Set environment variables BEFORE any app imports to avoid /app filesystem access
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "bcra_test_logs"))
os.environ.setdefault("CACHE_WARMING_ENABLED", "false")

from collections.abc import Generator  # noqa: E402
from datetime import UTC, date, datetime  # noqa: E402
from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from api.rate_limit import limiter  # noqa: E402
from application.cache_warming_service import CacheWarmingScheduler  # noqa: E402
from application.rate_service import RateService  # noqa: E402
from domain.entities import CurrencyInfo, HistoryPoint, RateRecord  # noqa: E402
from infrastructure.bcra_client import UpstreamUnavailableError  # noqa: E402
from infrastructure.cache_store import CacheStore  # noqa: E402
from main import Services, app  # noqa: E402

# Wednesday; 2025-06-14/15 is a weekend
TODAY = date(2025, 6, 18)
FIXED_NOW = datetime(2025, 6, 18, 15, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


def make_rates(day: date, codes: tuple[str, ...] = ("USD", "EUR")) -> list[RateRecord]:
    base = {"USD": 1180.5, "EUR": 1350.25, "BRL": 215.0, "GBP": 1590.0}
    return [
        RateRecord(
            code=c, name=f"{c} name", buy=base.get(c, 1.0), sell=base.get(c, 1.0), date=day
        )
        for c in codes
    ]


def make_points(*days: date, value: float = 1000.0) -> list[HistoryPoint]:
    return [HistoryPoint(date=d, buy=value, sell=value) for d in days]


class FakeUpstream:
    """In-memory ExchangeRateProvider with call recording."""

    def __init__(
        self,
        rates_by_date: dict[date, list[RateRecord]] | None = None,
        history: dict[str, list[HistoryPoint]] | None = None,
        currencies: list[CurrencyInfo] | None = None,
    ):
        self.rates_by_date = rates_by_date or {}
        self.history = history or {}
        self.currencies = currencies if currencies is not None else [
            CurrencyInfo("USD", "Dolar E.E.U.U."),
            CurrencyInfo("EUR", "Euro"),
        ]
        self.failing_codes: set[str] = set()
        self.failing_dates: set[date] = set()
        self.fail_currencies = False
        self.rate_calls: list[date] = []
        self.history_calls: list[tuple[str, date, date]] = []
        self.currency_calls = 0

    async def get_rates_for_date(self, day: date) -> list[RateRecord]:
        self.rate_calls.append(day)
        if day in self.failing_dates:
            raise UpstreamUnavailableError(f"timeout for {day}")
        return list(self.rates_by_date.get(day, []))

    async def get_rate_history(
        self, code: str, start: date, end: date
    ) -> list[HistoryPoint]:
        self.history_calls.append((code, start, end))
        if code in self.failing_codes:
            raise UpstreamUnavailableError(f"timeout for {code}")
        return [p for p in self.history.get(code, []) if start <= p.date <= end]

    async def get_currencies(self) -> list[CurrencyInfo]:
        self.currency_calls += 1
        if self.fail_currencies:
            raise UpstreamUnavailableError("currency list unavailable")
        return list(self.currencies)


class FakeHTTPResponse:
    def __init__(self, status_code: int, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class ReplaySession:
    """Stands in for curl_cffi AsyncSession; replays queued responses or exceptions."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls: list[tuple[str, dict | None]] = []

    async def get(self, url, params=None, **kwargs):
        self.calls.append((url, params))
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        pass


class FixedTimeSource:
    def __init__(self, today: date = TODAY):
        self.current = today

    async def today(self) -> date:
        return self.current


class FakeTimer:
    """Controllable monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Rate limit counters are process-global; isolate them per test."""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture()
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture()
def store(timer) -> CacheStore:
    return CacheStore(timer=timer, today=lambda: TODAY)


@pytest.fixture()
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture()
def time_source() -> FixedTimeSource:
    return FixedTimeSource()


@pytest.fixture()
def rate_service(store, upstream, time_source) -> RateService:
    return RateService(store, upstream, time_source)


@pytest.fixture()
def scheduler(store, upstream, time_source) -> CacheWarmingScheduler:
    return CacheWarmingScheduler(
        store,
        upstream,
        time_source,
        initial_delay_seconds=3600,
        now=lambda: FIXED_NOW,
    )


@pytest.fixture()
def services(store, upstream, time_source, rate_service, scheduler) -> Services:
    return Services(
        store=store,
        upstream=upstream,
        time_source=time_source,
        rate_service=rate_service,
        scheduler=scheduler,
    )


@pytest.fixture()
def client(services) -> Generator[TestClient, None, None]:
    """TestClient whose lifespan wires the fake services instead of real HTTP clients."""
    with patch("main.build_services", return_value=services):
        with TestClient(app) as c:
            yield c
