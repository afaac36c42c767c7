"""
Application — exchange-rate resolution with date fallback.
Consults the cache store first and degrades gracefully when a day has no
quotes (weekends, holidays, "today" before BCRA publishes late morning):
backward cache scan, then bounded backward upstream attempts. Absence of
quotes is a valid answer (empty result), not an error.
"""

import asyncio
from datetime import date

from domain.constants import (
    CURRENCIES_KEY_PARAM,
    CURRENCIES_TTL,
    CURRENT_RATES_TTL,
    DATE_FALLBACK_MAX_DAYS,
    HISTORY_TTL,
)
from domain.dates import fallback_dates, format_iso_date, is_future, previous_days
from domain.entities import (
    BulkHistoryPayload,
    BulkHistoryResult,
    CacheEntry,
    CurrenciesPayload,
    CurrencyInfo,
    HistoryPayload,
    HistoryPoint,
    HistoryResult,
    RatesPayload,
    RatesResult,
    dedupe_rate_records,
)
from domain.enums import CacheName, DatasetType, RateSource
from domain.protocols import ExchangeRateProvider, TimeSource
from infrastructure.bcra_client import UpstreamUnavailableError
from infrastructure.cache_store import CacheStore
from logging_config import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------


class FutureDateRequestedError(Exception):
    """Requested date (or range end) is strictly after the effective today."""


class InvalidDateRangeError(Exception):
    """Range start is after range end."""


class NoDataForRangeError(Exception):
    """No currency returned any history for the range."""


# ---------------------------------------------------------------------------
# Key helpers (shared with the cache warming jobs)
# ---------------------------------------------------------------------------


def rates_key(store: CacheStore, day: date):
    return store.key(DatasetType.RATES, format_iso_date(day), subject_date=day)


def history_key(store: CacheStore, code: str, start: date, end: date):
    return store.key(
        DatasetType.HISTORY,
        code.upper(),
        format_iso_date(start),
        format_iso_date(end),
        subject_date=end,
        range_start=start,
    )


def bulk_history_key(store: CacheStore, start: date, end: date):
    return store.key(
        DatasetType.BULK_HISTORY,
        format_iso_date(start),
        format_iso_date(end),
        subject_date=end,
        range_start=start,
    )


def currencies_key(store: CacheStore):
    return store.key(DatasetType.CURRENCIES, CURRENCIES_KEY_PARAM)


async def fetch_history_fan_out(
    upstream: ExchangeRateProvider, codes: list[str], start: date, end: date
) -> dict[str, tuple[HistoryPoint, ...]]:
    """
    Fetch every currency's history concurrently and wait for all of them.
    A failing currency yields an empty series and does not cancel its siblings.
    """

    async def _fetch_one(code: str) -> tuple[HistoryPoint, ...]:
        try:
            return tuple(await upstream.get_rate_history(code, start, end))
        except Exception as exc:
            logger.warning(
                "History fetch failed for %s (%s → %s): %s", code, start, end, exc
            )
            return ()

    series = await asyncio.gather(*(_fetch_one(code) for code in codes))
    return dict(zip(codes, series))


def _pick_most_recent(entries: list[CacheEntry], limit: date) -> CacheEntry | None:
    """Greatest subject_date ≤ limit with a non-empty payload; first seen wins ties."""
    best: CacheEntry | None = None
    for entry in entries:
        subject = entry.key.subject_date
        if subject is None or subject > limit or entry.payload.is_empty():
            continue
        if best is None or subject > best.key.subject_date:
            best = entry
    return best


# ---------------------------------------------------------------------------
# Rate Service
# ---------------------------------------------------------------------------


class RateService:
    """Date-fallback resolver over the cache store and the upstream provider."""

    def __init__(
        self,
        store: CacheStore,
        upstream: ExchangeRateProvider,
        time_source: TimeSource,
        *,
        max_fallback_days: int = DATE_FALLBACK_MAX_DAYS,
    ):
        self._store = store
        self._upstream = upstream
        self._time_source = time_source
        self._max_fallback_days = max_fallback_days

    async def effective_today(self) -> date:
        return await self._time_source.today()

    # -- single-day rates -----------------------------------------------------

    def _cached_rates(self, day: date) -> RatesPayload | None:
        payload = self._store.get(CacheName.RATES, rates_key(self._store, day))
        if isinstance(payload, RatesPayload) and not payload.is_empty():
            return payload
        return None

    async def _resolve_rates(self, root: date) -> RatesResult:
        """
        1. cache hit for root
        2. cache scan root-1 .. root-N
        3. upstream root, root-1, ... (N attempts); cache under the successful date
        4. empty result
        """
        payload = self._cached_rates(root)
        if payload is not None:
            return RatesResult(root, root, payload.records, RateSource.CACHE)

        for day in previous_days(root, self._max_fallback_days):
            payload = self._cached_rates(day)
            if payload is not None:
                logger.info(
                    "Rates for %s served from cached previous date %s.", root, day
                )
                return RatesResult(
                    root,
                    day,
                    payload.records,
                    RateSource.CACHE,
                    from_previous_date=True,
                )

        for day in fallback_dates(root, self._max_fallback_days):
            try:
                records = await self._upstream.get_rates_for_date(day)
            except UpstreamUnavailableError as exc:
                logger.warning("Upstream rates for %s unavailable: %s", day, exc)
                continue
            if not records:
                logger.debug("No upstream rates for %s, stepping back one day.", day)
                continue
            canonical = tuple(dedupe_rate_records(records))
            self._store.set(
                CacheName.RATES,
                rates_key(self._store, day),
                RatesPayload(canonical),
                CURRENT_RATES_TTL,
            )
            if day != root:
                logger.info(
                    "Rates for %s served from upstream previous date %s.", root, day
                )
            return RatesResult(
                root,
                day,
                canonical,
                RateSource.UPSTREAM,
                from_previous_date=day != root,
            )

        logger.warning(
            "No rates found for %s within %d days.", root, self._max_fallback_days
        )
        return RatesResult(root, None, (), RateSource.NONE)

    async def get_latest_rates(self) -> RatesResult:
        return await self._resolve_rates(await self.effective_today())

    async def get_rates_for_date(self, day: date) -> RatesResult:
        """
        Rates for an explicit day.

        Today or later: the most recent cached snapshot ≤ day is substituted
        before anything else, since upstream has no data for the current day
        until it publishes. Note this may return an older snapshot even when
        today's quotes could be fetched.

        Raises:
            FutureDateRequestedError: day is after today and nothing is cached.
        """
        today = await self.effective_today()
        if day >= today:
            best = _pick_most_recent(
                self._store.entries(CacheName.RATES, DatasetType.RATES), day
            )
            if best is not None:
                served = best.key.subject_date
                return RatesResult(
                    day,
                    served,
                    best.payload.records,
                    RateSource.CACHE,
                    from_previous_date=served != day,
                )
            if is_future(day, today):
                raise FutureDateRequestedError(
                    f"{format_iso_date(day)} is after {format_iso_date(today)}"
                )
        return await self._resolve_rates(day)

    # -- currency list --------------------------------------------------------

    async def get_currencies(self) -> list[CurrencyInfo]:
        """
        Raises:
            UpstreamUnavailableError: cache miss and upstream failure.
        """
        key = currencies_key(self._store)
        payload = self._store.get(CacheName.METADATA, key)
        if isinstance(payload, CurrenciesPayload) and not payload.is_empty():
            return list(payload.currencies)
        currencies = await self._upstream.get_currencies()
        if currencies:
            self._store.set(
                CacheName.METADATA,
                key,
                CurrenciesPayload(tuple(currencies)),
                CURRENCIES_TTL,
            )
        return currencies

    # -- history --------------------------------------------------------------

    async def _validate_range(self, start: date, end: date) -> date:
        if start > end:
            raise InvalidDateRangeError(
                f"start {format_iso_date(start)} is after end {format_iso_date(end)}"
            )
        today = await self.effective_today()
        if is_future(end, today):
            raise FutureDateRequestedError(
                f"range end {format_iso_date(end)} is after {format_iso_date(today)}"
            )
        return today

    async def get_currency_history(
        self, code: str, start: date, end: date
    ) -> HistoryResult:
        """
        Raises:
            InvalidDateRangeError, FutureDateRequestedError: before any upstream call.
            UpstreamUnavailableError: cache miss and upstream failure.
        """
        code = code.upper()
        await self._validate_range(start, end)
        key = history_key(self._store, code, start, end)
        payload = self._store.get(CacheName.HISTORICAL, key)
        if isinstance(payload, HistoryPayload):
            return HistoryResult(code, start, end, payload.points, RateSource.CACHE)

        points = tuple(await self._upstream.get_rate_history(code, start, end))
        if points:
            self._store.set(
                CacheName.HISTORICAL, key, HistoryPayload(code, points), HISTORY_TTL
            )
        return HistoryResult(
            code, start, end, points, RateSource.UPSTREAM if points else RateSource.NONE
        )

    async def get_bulk_history(self, start: date, end: date) -> BulkHistoryResult:
        """
        History for every known currency over one range.

        A cache miss on the exact range is served by the most recent cached
        bulk range ending on or before today, so the returned actual range may
        differ from the requested one.

        Raises:
            InvalidDateRangeError, FutureDateRequestedError: invalid request.
            NoDataForRangeError: no currency has data for the range.
            UpstreamUnavailableError: the currency list cannot be obtained.
        """
        today = await self._validate_range(start, end)
        key = bulk_history_key(self._store, start, end)
        payload = self._store.get(CacheName.HISTORICAL, key)
        if isinstance(payload, BulkHistoryPayload):
            return BulkHistoryResult(
                start, end, start, end, payload.series, RateSource.CACHE
            )

        best = _pick_most_recent(
            self._store.entries(CacheName.HISTORICAL, DatasetType.BULK_HISTORY), today
        )
        if best is not None:
            actual_start, actual_end = best.key.range_start, best.key.subject_date
            logger.info(
                "Bulk history %s → %s served from cached range %s → %s.",
                start,
                end,
                actual_start,
                actual_end,
            )
            return BulkHistoryResult(
                start,
                end,
                actual_start,
                actual_end,
                best.payload.series,
                RateSource.CACHE,
            )

        codes = [c.code for c in await self.get_currencies()]
        series = await fetch_history_fan_out(self._upstream, codes, start, end)
        with_data = {code: points for code, points in series.items() if points}
        if not with_data:
            raise NoDataForRangeError(
                f"No currency has data between {format_iso_date(start)} "
                f"and {format_iso_date(end)}"
            )
        self._store.set(
            CacheName.HISTORICAL, key, BulkHistoryPayload(with_data), HISTORY_TTL
        )
        logger.info(
            "Bulk history %s → %s cached for %d/%d currencies.",
            start,
            end,
            len(with_data),
            len(codes),
        )
        return BulkHistoryResult(start, end, start, end, with_data, RateSource.UPSTREAM)
