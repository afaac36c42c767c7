"""
Application — cache warming scheduler.
Keeps the caches populated ahead of request traffic: a recurring asyncio task
runs a sweep of every warming job shortly after startup and then on a fixed
cadence; sweeps and single jobs can also be triggered manually.

Job state machine: pending → running → completed | failed, and
completed / failed → running on the next run. A failing job records
last_error and is retried by the next sweep; failures never escape a sweep.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from domain.constants import (
    CACHE_WARMING_INITIAL_DELAY_SECONDS,
    CACHE_WARMING_INTERVAL_SECONDS,
    CURRENCIES_TTL,
    CURRENT_RATES_TTL,
    HISTORY_TTL,
    WARMING_BULK_HISTORY_NEXT_RUN,
    WARMING_BULK_LOOKBACK_DAYS,
    WARMING_CURRENCIES_NEXT_RUN,
    WARMING_CURRENT_RATES_NEXT_RUN,
    WARMING_HISTORICAL_NEXT_RUN,
    WARMING_HISTORY_CURRENCIES,
    WARMING_HISTORY_LOOKBACK_DAYS,
    WARMING_RANGE_END_OFFSET_DAYS,
)
from domain.dates import trailing_range
from domain.entities import (
    BulkHistoryPayload,
    CurrenciesPayload,
    HistoryPayload,
    RatesPayload,
    WarmingJob,
    dedupe_rate_records,
)
from domain.enums import CacheName, JobKind, JobStatus
from domain.protocols import ExchangeRateProvider, TimeSource
from infrastructure.cache_store import CacheStore
from application.rate_service import (
    bulk_history_key,
    currencies_key,
    fetch_history_fan_out,
    history_key,
    rates_key,
)
from logging_config import get_logger

logger = get_logger(__name__)


class UnknownJobIdError(Exception):
    """No warming job with that id."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


# job id → (kind, seconds until the next scheduled run)
_JOB_DEFINITIONS: tuple[tuple[str, JobKind, int], ...] = (
    ("currencies", JobKind.CURRENCY_LIST, WARMING_CURRENCIES_NEXT_RUN),
    ("current-rates", JobKind.CURRENT_RATES, WARMING_CURRENT_RATES_NEXT_RUN),
    ("historical-rates", JobKind.HISTORICAL_RATES, WARMING_HISTORICAL_NEXT_RUN),
    ("bulk-history", JobKind.BULK_HISTORY, WARMING_BULK_HISTORY_NEXT_RUN),
)


class CacheWarmingScheduler:
    """Background job runner that populates the shared cache store."""

    def __init__(
        self,
        store: CacheStore,
        upstream: ExchangeRateProvider,
        time_source: TimeSource,
        *,
        interval_seconds: float = CACHE_WARMING_INTERVAL_SECONDS,
        initial_delay_seconds: float = CACHE_WARMING_INITIAL_DELAY_SECONDS,
        history_currencies: tuple[str, ...] = WARMING_HISTORY_CURRENCIES,
        now: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._upstream = upstream
        self._time_source = time_source
        self._interval_seconds = interval_seconds
        self._initial_delay_seconds = initial_delay_seconds
        self._history_currencies = history_currencies
        self._now = now
        self._in_flight = False
        self._task: asyncio.Task | None = None

        created_at = self._now()
        self._jobs: dict[str, WarmingJob] = {
            job_id: WarmingJob(id=job_id, kind=kind, next_run_at=created_at)
            for job_id, kind, _ in _JOB_DEFINITIONS
        }
        self._cadence: dict[str, int] = {
            job_id: cadence for job_id, _, cadence in _JOB_DEFINITIONS
        }
        self._handlers: dict[JobKind, Callable[[], Awaitable[None]]] = {
            JobKind.CURRENCY_LIST: self._warm_currencies,
            JobKind.CURRENT_RATES: self._warm_current_rates,
            JobKind.HISTORICAL_RATES: self._warm_historical_rates,
            JobKind.BULK_HISTORY: self._warm_bulk_history,
        }

    # -- lifecycle ------------------------------------------------------------

    @property
    def is_sweep_in_flight(self) -> bool:
        return self._in_flight

    @property
    def is_started(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the initial warm and the recurring sweeps. Needs a running loop."""
        if self.is_started:
            return
        self._task = asyncio.create_task(self._run_forever(), name="cache-warming")
        logger.info(
            "Cache warming scheduler started (initial delay %ss, every %ss).",
            self._initial_delay_seconds,
            self._interval_seconds,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Cache warming scheduler stopped.")

    async def _run_forever(self) -> None:
        await asyncio.sleep(self._initial_delay_seconds)
        while True:
            await self.run_all()
            await asyncio.sleep(self._interval_seconds)

    # -- public surface -------------------------------------------------------

    async def run_all(self) -> bool:
        """
        One sweep: every job concurrently, failures isolated per job.

        Returns False without doing anything while another sweep is in flight.
        """
        if self._in_flight:
            logger.info("Cache warming sweep already running, skipping.")
            return False
        self._in_flight = True
        start = time.monotonic()
        logger.info("Cache warming sweep starting (%d jobs)...", len(self._jobs))
        try:
            await asyncio.gather(*(self._execute(job) for job in self._jobs.values()))
        finally:
            self._in_flight = False
        failed = [
            job.id for job in self._jobs.values() if job.status == JobStatus.FAILED
        ]
        logger.info(
            "Cache warming sweep finished in %.1f s (failed: %s).",
            time.monotonic() - start,
            ", ".join(failed) or "none",
        )
        return True

    async def run_job(self, job_id: str) -> WarmingJob:
        """
        Run a single job now; may overlap the same job inside a sweep.

        Returns a snapshot of the job after the run (status completed or failed).

        Raises:
            UnknownJobIdError: job_id is not a known job.
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise UnknownJobIdError(f"Job {job_id} not found")
        await self._execute(job)
        return job.snapshot()

    def get_status(self) -> list[WarmingJob]:
        return [job.snapshot() for job in self._jobs.values()]

    def get_job_status(self, job_id: str) -> WarmingJob | None:
        job = self._jobs.get(job_id)
        return job.snapshot() if job is not None else None

    # -- execution ------------------------------------------------------------

    async def _execute(self, job: WarmingJob) -> None:
        started_at = self._now()
        job.status = JobStatus.RUNNING
        job.last_run_at = started_at
        job.next_run_at = started_at + timedelta(seconds=self._cadence[job.id])
        job.last_error = None
        try:
            await self._handlers[job.kind]()
        except Exception as exc:
            job.status = JobStatus.FAILED
            job.last_error = str(exc) or exc.__class__.__name__
            logger.error(
                "Cache warming job [%s] failed: %s",
                job.id,
                exc,
                exc_info=True,
                extra={"job_id": job.id},
            )
            return
        job.status = JobStatus.COMPLETED
        logger.info(
            "Cache warming job [%s] completed.", job.id, extra={"job_id": job.id}
        )

    async def _warm_currencies(self) -> None:
        currencies = await self._upstream.get_currencies()
        self._store.set(
            CacheName.METADATA,
            currencies_key(self._store),
            CurrenciesPayload(tuple(currencies)),
            CURRENCIES_TTL,
        )
        logger.info("Currencies cache warmed: %d currencies.", len(currencies))

    async def _warm_current_rates(self) -> None:
        today = await self._time_source.today()
        records = await self._upstream.get_rates_for_date(today)
        if not records:
            logger.warning("No rates published for %s yet, nothing to warm.", today)
            return
        rates_date = records[0].date or today
        self._store.set(
            CacheName.RATES,
            rates_key(self._store, rates_date),
            RatesPayload(tuple(dedupe_rate_records(records))),
            CURRENT_RATES_TTL,
        )
        logger.info(
            "Current rates cache warmed for %s: %d rates.", rates_date, len(records)
        )

    async def _warm_historical_rates(self) -> None:
        today = await self._time_source.today()
        start, end = trailing_range(
            today, WARMING_HISTORY_LOOKBACK_DAYS, WARMING_RANGE_END_OFFSET_DAYS
        )
        warmed = 0
        for code in self._history_currencies:
            try:
                points = await self._upstream.get_rate_history(code, start, end)
            except Exception as exc:
                logger.warning(
                    "Historical warming for %s (%s → %s) failed: %s",
                    code,
                    start,
                    end,
                    exc,
                )
                continue
            if not points:
                logger.debug(
                    "No history for %s (%s → %s), not cached.", code, start, end
                )
                continue
            self._store.set(
                CacheName.HISTORICAL,
                history_key(self._store, code, start, end),
                HistoryPayload(code, tuple(points)),
                HISTORY_TTL,
            )
            warmed += 1
            logger.debug("Historical cache set for %s: %d points.", code, len(points))
        logger.info(
            "Historical rates cache warmed for %d/%d currencies (%s → %s).",
            warmed,
            len(self._history_currencies),
            start,
            end,
        )

    async def _warm_bulk_history(self) -> None:
        today = await self._time_source.today()
        start, end = trailing_range(
            today, WARMING_BULK_LOOKBACK_DAYS, WARMING_RANGE_END_OFFSET_DAYS
        )
        codes = [c.code for c in await self._upstream.get_currencies()]
        series = await fetch_history_fan_out(self._upstream, codes, start, end)
        with_data = {code: points for code, points in series.items() if points}
        if not with_data:
            logger.warning(
                "Bulk history warming found no data (%s → %s).", start, end
            )
            return
        self._store.set(
            CacheName.HISTORICAL,
            bulk_history_key(self._store, start, end),
            BulkHistoryPayload(with_data),
            HISTORY_TTL,
        )
        logger.info(
            "Bulk history cache warmed for %d/%d currencies (%s → %s).",
            len(with_data),
            len(codes),
            start,
            end,
        )
