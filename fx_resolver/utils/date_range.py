"""Date helpers used to chunk provider requests and align ranges to months."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator, Tuple


@dataclass(frozen=True)
class DateRange:
    """Container representing a closed date range."""

    start: date
    end: date

    def as_tuple(self) -> Tuple[date, date]:
        """Return the range as a tuple of ``(start, end)``."""
        return (self.start, self.end)


def parse_date(value: str | date | datetime) -> date:
    """Coerce ISO strings and datetimes to a day-granular :class:`date`."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def start_of_month(day: date) -> date:
    return date(day.year, day.month, 1)


def end_of_month(day: date) -> date:
    """Return the last day of the month for ``day``."""

    if day.month == 12:
        return date(day.year, 12, 31)
    first_next_month = date(day.year, day.month + 1, 1)
    return first_next_month - timedelta(days=1)


def add_months(day: date, months: int) -> date:
    """Shift ``day`` by ``months``, clamping to the end of the target month."""

    month_index = day.year * 12 + (day.month - 1) + months
    year, month_offset = divmod(month_index, 12)
    last_day = end_of_month(date(year, month_offset + 1, 1)).day
    return date(year, month_offset + 1, min(day.day, last_day))


def month_ranges(start: str | date, end: str | date) -> Iterator[DateRange]:
    """Yield date ranges aligned by month within the inclusive window."""

    start_date = parse_date(start)
    end_date = parse_date(end)
    if start_date > end_date:
        raise ValueError("start date must not be after end date")

    current = start_date
    while current <= end_date:
        chunk_end = min(end_of_month(current), end_date)
        yield DateRange(start=current, end=chunk_end)
        current = chunk_end + timedelta(days=1)


def split_ranges(start: str | date, end: str | date, window_days: int) -> Iterator[DateRange]:
    """Split the period into consecutive windows of at most ``window_days`` days."""

    if window_days <= 0:
        raise ValueError("window_days must be positive")

    start_date = parse_date(start)
    end_date = parse_date(end)
    if start_date > end_date:
        raise ValueError("start date must not be after end date")

    current = start_date
    delta = timedelta(days=window_days - 1)
    while current <= end_date:
        chunk_end = min(current + delta, end_date)
        yield DateRange(start=current, end=chunk_end)
        current = chunk_end + timedelta(days=1)


def days_back(start: date, floor: date) -> Iterator[date]:
    """Yield ``start``, ``start - 1`` ... down to and including ``floor``."""

    current = start
    while current >= floor:
        yield current
        if current == date.min:
            return
        current -= timedelta(days=1)
