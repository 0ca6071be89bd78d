"""Year range expansion for annual compositing."""

from __future__ import annotations

from datetime import date, datetime

from covertrend._types import TimeRange


def _as_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def expand_years(
    start: date | datetime | str,
    end: date | datetime | str,
) -> list[int]:
    """Expand a date range into the ordered list of calendar years it touches.

    An end year before the start year is not an error: the result is
    empty and every downstream stage produces zero records.

    Args:
        start: First day of the range (date, datetime or ISO string).
        end: Last day of the range.

    Returns:
        ``[start.year, ..., end.year]`` inclusive, possibly empty.

    Example:
        >>> expand_years("2000-01-01", "2002-06-30")
        [2000, 2001, 2002]
        >>> expand_years("2000-01-01", "1999-12-31")
        []
    """
    first = _as_date(start).year
    last = _as_date(end).year
    return list(range(first, last + 1))


def year_time_range(year: int) -> TimeRange:
    """Return the inclusive ``(YYYY-01-01, YYYY-12-31)`` window of *year*."""
    return (f"{year:04d}-01-01", f"{year:04d}-12-31")
