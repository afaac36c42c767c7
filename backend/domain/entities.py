"""
Domain — entities and value objects.
Rate records, cache payloads (tagged union), structured cache keys and
warming jobs. Plain dataclasses, no framework dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime

from domain.enums import DatasetType, JobKind, JobStatus, RateSource


# ---------------------------------------------------------------------------
# Rate Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateRecord:
    """One currency quote for one day. buy/sell are None when upstream lacks a side."""

    code: str  # e.g. "USD"
    name: str
    buy: float | None
    sell: float | None
    date: date


@dataclass(frozen=True)
class HistoryPoint:
    """One day of a single currency's history."""

    date: date
    buy: float | None
    sell: float | None


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    name: str


def dedupe_rate_records(records: list[RateRecord]) -> list[RateRecord]:
    """One canonical record per (code, date); the last one wins, first position kept."""
    canonical: dict[tuple[str, date], RateRecord] = {}
    for record in records:
        canonical[(record.code, record.date)] = record
    return list(canonical.values())


# ---------------------------------------------------------------------------
# Cache Payloads (tagged union)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RatesPayload:
    """All quotes published for one day."""

    records: tuple[RateRecord, ...]

    def is_empty(self) -> bool:
        return not self.records


@dataclass(frozen=True)
class CurrenciesPayload:
    currencies: tuple[CurrencyInfo, ...]

    def is_empty(self) -> bool:
        return not self.currencies


@dataclass(frozen=True)
class HistoryPayload:
    """History of one currency over one date range."""

    code: str
    points: tuple[HistoryPoint, ...]

    def is_empty(self) -> bool:
        return not self.points


@dataclass(frozen=True)
class BulkHistoryPayload:
    """History of every currency with data over one range, cached as a single unit."""

    series: dict[str, tuple[HistoryPoint, ...]]

    def is_empty(self) -> bool:
        return not any(self.series.values())


CachePayload = RatesPayload | CurrenciesPayload | HistoryPayload | BulkHistoryPayload


# ---------------------------------------------------------------------------
# Cache Keys & Entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheKey:
    """
    Structured cache key.

    The rendered form is ``<dataset>_<as_of ISO date>_<params joined by "_">``.
    as_of is the day the key was built, not the day the data is about, so keys
    roll over daily even for unchanged queries. subject_date is the day the
    data is about (rates date, or range end) and is what best-match scans query;
    range_start is set for range datasets.
    """

    dataset: DatasetType
    as_of: date
    params: tuple[str, ...] = ()
    subject_date: date | None = None
    range_start: date | None = None

    def render(self) -> str:
        return f"{self.dataset.value}_{self.as_of.isoformat()}_{'_'.join(self.params)}"

    def __str__(self) -> str:
        return self.render()


@dataclass
class CacheEntry:
    key: CacheKey
    payload: CachePayload
    inserted_at: float  # timer() reading at insertion
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        return self.inserted_at + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        """Visible only while now < inserted_at + ttl_seconds."""
        return now >= self.expires_at


# ---------------------------------------------------------------------------
# Resolver Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RatesResult:
    """Rates answer for one day; served_date may precede requested_date."""

    requested_date: date
    served_date: date | None
    records: tuple[RateRecord, ...]
    source: RateSource
    from_previous_date: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.records


@dataclass(frozen=True)
class HistoryResult:
    code: str
    start: date
    end: date
    points: tuple[HistoryPoint, ...]
    source: RateSource


@dataclass(frozen=True)
class BulkHistoryResult:
    """Bulk answer. Consumers must read actual_start/actual_end, not requested_*."""

    requested_start: date
    requested_end: date
    actual_start: date
    actual_end: date
    series: dict[str, tuple[HistoryPoint, ...]]
    source: RateSource

    @property
    def is_exact(self) -> bool:
        return (self.actual_start, self.actual_end) == (
            self.requested_start,
            self.requested_end,
        )


# ---------------------------------------------------------------------------
# Cache Warming Jobs
# ---------------------------------------------------------------------------


@dataclass
class WarmingJob:
    """Mutated in place by the scheduler on every run; never destroyed."""

    id: str
    kind: JobKind
    status: JobStatus = JobStatus.PENDING
    last_run_at: datetime | None = None
    next_run_at: datetime | None = None
    last_error: str | None = field(default=None)

    def snapshot(self) -> WarmingJob:
        return replace(self)
