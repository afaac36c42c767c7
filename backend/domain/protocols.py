from datetime import date
from typing import Protocol, runtime_checkable

from domain.entities import CurrencyInfo, HistoryPoint, RateRecord


@runtime_checkable
class ExchangeRateProvider(Protocol):
    """Interface for the upstream exchange-rate API (BCRA).

    Every call may raise UpstreamUnavailableError on network/HTTP failure and
    may legitimately return an empty list (non-trading days).
    """

    async def get_rates_for_date(self, day: date) -> list[RateRecord]:
        """All quotes published for one day."""
        ...

    async def get_rate_history(
        self, code: str, start: date, end: date
    ) -> list[HistoryPoint]:
        """Daily history of one currency, ascending by date."""
        ...

    async def get_currencies(self) -> list[CurrencyInfo]:
        """Currency master list."""
        ...


@runtime_checkable
class TimeSource(Protocol):
    """Provides the upstream's notion of the current date."""

    async def today(self) -> date:
        ...
