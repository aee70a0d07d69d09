from __future__ import annotations

"""Minute totals per activity type over one or many days."""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable

from .dates import iter_days
from .models import MINUTES_PER_DAY, TYPED_ACTIVITIES, ActivityType, DayActivity
from .timeline import valid_intervals

DayLoader = Callable[[date], DayActivity]


@dataclass(slots=True, frozen=True)
class ActivityShare:
    type: ActivityType
    minutes: int
    percentage: float
    average_per_day: float


def empty_totals() -> dict[ActivityType, int]:
    return {activity: 0 for activity in TYPED_ACTIVITIES}


def day_minutes_by_type(day: DayActivity) -> dict[ActivityType, int]:
    totals = empty_totals()
    for segment in valid_intervals(day):
        totals[segment.type] += segment.duration
    return totals


def minutes_of_type(day: DayActivity, activity: ActivityType) -> int:
    return day_minutes_by_type(day)[activity] if activity.is_typed else 0


def day_count(start: date, end: date) -> int:
    return max(1, (end - start).days + 1)


def percentage_of_period(minutes: int, days: int) -> float:
    return minutes / (MINUTES_PER_DAY * max(1, days)) * 100


class Aggregator:
    """Read-only queries over days supplied by ``load_day``."""

    def __init__(self, load_day: DayLoader):
        self._load_day = load_day

    def sum_minutes_by_type(self, days: Iterable[date]) -> dict[ActivityType, int]:
        totals = empty_totals()
        for day in days:
            for activity, minutes in day_minutes_by_type(self._load_day(day)).items():
                totals[activity] += minutes
        return totals

    def productive_minutes(self, day: date) -> int:
        return minutes_of_type(self._load_day(day), ActivityType.PRODUCTIVE)

    def sleep_minutes(self, day: date) -> int:
        return minutes_of_type(self._load_day(day), ActivityType.SLEEP)

    def breakdown(self, start: date, end: date) -> list[ActivityShare]:
        """Share of the period and daily average for every typed activity."""
        if end < start:
            start, end = end, start
        days = day_count(start, end)
        totals = self.sum_minutes_by_type(iter_days(start, end))
        return [
            ActivityShare(
                type=activity,
                minutes=minutes,
                percentage=percentage_of_period(minutes, days),
                average_per_day=minutes / days,
            )
            for activity, minutes in totals.items()
        ]


__all__ = [
    "ActivityShare",
    "Aggregator",
    "DayLoader",
    "day_count",
    "day_minutes_by_type",
    "empty_totals",
    "minutes_of_type",
    "percentage_of_period",
]
