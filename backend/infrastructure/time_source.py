"""
Infrastructure — effective "today" for upstream queries.
Asks public world-time APIs for the current time (the host clock may be
skewed), validates the answer against the local clock, memoises it for a few
minutes and falls back to the local clock in the upstream's timezone when
every source fails.
"""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from cachetools import TTLCache
from curl_cffi.curl import CurlError
from curl_cffi.requests import AsyncSession

from domain.constants import (
    CURL_CFFI_IMPERSONATE,
    UPSTREAM_TIMEZONE,
    WORLD_TIME_API_URLS,
    WORLD_TIME_CACHE_TTL,
    WORLD_TIME_MAX_FUTURE_SECONDS,
    WORLD_TIME_MAX_SKEW_SECONDS,
    WORLD_TIME_REQUEST_TIMEOUT,
)
from logging_config import get_logger

logger = get_logger(__name__)

_CACHE_KEY = "clock_offset"


def _local_now() -> datetime:
    return datetime.now(UTC)


def validate_remote_time(remote: datetime, local: datetime) -> bool:
    """Reject answers over a year off the local clock, or over a day ahead of it."""
    delta = (remote - local).total_seconds()
    if abs(delta) > WORLD_TIME_MAX_SKEW_SECONDS:
        return False
    return delta <= WORLD_TIME_MAX_FUTURE_SECONDS


class WorldTimeSource:
    """TimeSource that trusts world-time APIs over the host clock."""

    def __init__(
        self,
        urls: tuple[str, ...] = WORLD_TIME_API_URLS,
        *,
        timezone: str = UPSTREAM_TIMEZONE,
        timeout: float = WORLD_TIME_REQUEST_TIMEOUT,
        cache_ttl: float = WORLD_TIME_CACHE_TTL,
        session: AsyncSession | None = None,
        clock=_local_now,
    ):
        self._urls = urls
        self._tz = ZoneInfo(timezone)
        self._timeout = timeout
        self._session = session
        self._clock = clock
        self._memo: TTLCache = TTLCache(maxsize=1, ttl=cache_ttl)

    def _get_session(self) -> AsyncSession:
        if self._session is None:
            self._session = AsyncSession(impersonate=CURL_CFFI_IMPERSONATE)
        return self._session

    async def aclose(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _fetch_remote_now(self, url: str) -> datetime | None:
        try:
            response = await self._get_session().get(url, timeout=self._timeout)
            if response.status_code != 200:
                logger.warning(
                    "World time API %s answered HTTP %d", url, response.status_code
                )
                return None
            remote = datetime.fromisoformat(response.json()["datetime"])
        except (CurlError, OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("World time API %s failed: %s", url, exc)
            return None
        if remote.tzinfo is None:
            remote = remote.replace(tzinfo=UTC)
        if not validate_remote_time(remote, self._clock()):
            logger.warning(
                "World time API %s returned an implausible time: %s",
                url,
                remote.isoformat(),
            )
            return None
        return remote

    async def now(self) -> datetime:
        offset = self._memo.get(_CACHE_KEY)
        if offset is not None:
            return self._clock() + offset
        for url in self._urls:
            remote = await self._fetch_remote_now(url)
            if remote is not None:
                logger.debug("Current time from %s: %s", url, remote.isoformat())
                self._memo[_CACHE_KEY] = remote - self._clock()
                return remote
        logger.warning("All world time APIs failed, using the local clock.")
        return self._clock()

    async def today(self) -> date:
        return (await self.now()).astimezone(self._tz).date()


class LocalTimeSource:
    """TimeSource backed by the host clock only."""

    def __init__(self, timezone: str = UPSTREAM_TIMEZONE, clock=_local_now):
        self._tz = ZoneInfo(timezone)
        self._clock = clock

    async def today(self) -> date:
        return self._clock().astimezone(self._tz).date()
