"""
Domain — enumerations.
Cache names, dataset types and the warming job state machine.
"""

from enum import StrEnum


class CacheName(StrEnum):
    """The three independent named caches."""

    RATES = "rates"  # short-lived daily quotes
    HISTORICAL = "historical"  # long-lived per-currency and bulk history
    METADATA = "metadata"  # currency list


class DatasetType(StrEnum):
    """Dataset prefix of a cache key."""

    RATES = "rates"
    HISTORY = "history"
    BULK_HISTORY = "bulk_history"
    CURRENCIES = "currencies"


class JobKind(StrEnum):
    """Cache warming job kinds (one job per kind)."""

    CURRENCY_LIST = "currency-list"
    CURRENT_RATES = "current-rates"
    HISTORICAL_RATES = "historical-rates"
    BULK_HISTORY = "bulk-history"


class JobStatus(StrEnum):
    """pending → running → completed | failed, then running again on the next run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RateSource(StrEnum):
    """Where a resolved answer came from."""

    CACHE = "cache"
    UPSTREAM = "upstream"
    NONE = "none"
