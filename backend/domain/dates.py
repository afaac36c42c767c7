"""
Domain — calendar date helpers used by the date-fallback resolver.
Pure functions, no clock access: callers pass "today" explicitly.
"""

from datetime import date, timedelta


def parse_iso_date(text: str) -> date:
    """Parse YYYY-MM-DD (a trailing time part such as "T00:00:00" is ignored).

    Raises:
        ValueError: if text is not a valid calendar date.
    """
    if not text:
        raise ValueError("empty date")
    return date.fromisoformat(text.strip()[:10])


def format_iso_date(day: date) -> str:
    return day.isoformat()


def previous_days(day: date, count: int) -> list[date]:
    """[day-1, day-2, ..., day-count]."""
    return [day - timedelta(days=offset) for offset in range(1, count + 1)]


def fallback_dates(day: date, attempts: int) -> list[date]:
    """[day, day-1, ..., day-(attempts-1)] — the upstream retry sequence."""
    return [day - timedelta(days=offset) for offset in range(attempts)]


def trailing_range(
    today: date, lookback_days: int, end_offset_days: int = 0
) -> tuple[date, date]:
    """(today - lookback_days, today - end_offset_days)."""
    return today - timedelta(days=lookback_days), today - timedelta(
        days=end_offset_days
    )


def is_future(day: date, today: date) -> bool:
    """Strictly after today."""
    return day > today
