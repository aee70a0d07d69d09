from __future__ import annotations

"""Calendar helpers: ``DD.MM.YYYY`` day keys and day arithmetic."""

from datetime import date, datetime, timedelta
from typing import Callable, Iterator

DATE_KEY_FORMAT = "%d.%m.%Y"
EPOCH = date(1970, 1, 1)

Clock = Callable[[], datetime]


def date_key(day: date) -> str:
    return day.strftime(DATE_KEY_FORMAT)


def parse_date_key(key: str) -> date:
    """Parse a ``DD.MM.YYYY`` key; raises ``ValueError`` when malformed."""
    return datetime.strptime(key.strip(), DATE_KEY_FORMAT).date()


def try_parse_date_key(key: object) -> date | None:
    if not isinstance(key, str):
        return None
    try:
        return parse_date_key(key)
    except ValueError:
        return None


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every day from ``start`` to ``end`` inclusive (nothing if start > end)."""
    current = start
    while current <= end:
        yield current
        current = add_days(current, 1)


def trailing_days(reference: date, count: int) -> list[date]:
    """``count`` days ending at ``reference`` (inclusive), newest first."""
    return [add_days(reference, -offset) for offset in range(max(0, count))]


def minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def to_iso(moment: datetime) -> str:
    return moment.replace(microsecond=0).isoformat()


__all__ = [
    "Clock",
    "DATE_KEY_FORMAT",
    "EPOCH",
    "add_days",
    "date_key",
    "iter_days",
    "minute_of_day",
    "parse_date_key",
    "to_iso",
    "trailing_days",
    "try_parse_date_key",
]
