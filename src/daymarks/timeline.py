from __future__ import annotations

"""Day timeline reconciliation.

A day is the ordered sequence ``start-of-day, real marks..., end-of-day``.
Every consecutive pair of that sequence holds at most one interval record;
pairs without a record are untyped time.

All edit functions are pure: they never mutate the ``DayActivity`` they are
given and return the input object itself when the edit changes nothing, so
callers can skip persistence with an identity check.
"""

from dataclasses import dataclass, replace
import logging
from typing import Callable, Optional
import uuid

from .models import (
    LAST_MINUTE,
    MINUTES_PER_DAY,
    ActivityInterval,
    ActivityType,
    DayActivity,
    TimeMark,
    clamp_minute,
)

logger = logging.getLogger(__name__)

START_OF_DAY_ID = "__start_of_day__"
END_OF_DAY_ID = "__end_of_day__"
VIRTUAL_MARK_IDS = frozenset({START_OF_DAY_ID, END_OF_DAY_ID})

IdFactory = Callable[[], str]


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True, frozen=True)
class Segment:
    start_mark_id: str
    end_mark_id: str
    start_minute: int
    end_minute: int  # 1440 for the end-of-day boundary
    type: ActivityType
    interval_id: Optional[str] = None

    @property
    def duration(self) -> int:
        return max(0, self.end_minute - self.start_minute)


# --- Lookups ---------------------------------------------------------------

def mark_sequence(day: DayActivity) -> list[tuple[str, int]]:
    """(mark id, minute) pairs including both virtual boundaries."""
    reals = sorted(day.marks, key=lambda m: m.timestamp)
    return [(START_OF_DAY_ID, 0), *((m.id, m.timestamp) for m in reals), (END_OF_DAY_ID, MINUTES_PER_DAY)]


def mark_minute(day: DayActivity, mark_id: str, display: bool = False) -> Optional[int]:
    """Minute a mark id resolves to, ``None`` for an unknown id.

    End-of-day resolves to 1440 for durations and to 1439 for display.
    """
    if mark_id == START_OF_DAY_ID:
        return 0
    if mark_id == END_OF_DAY_ID:
        return LAST_MINUTE if display else MINUTES_PER_DAY
    for mark in day.marks:
        if mark.id == mark_id:
            return mark.timestamp
    return None


def find_mark(day: DayActivity, mark_id: str) -> Optional[TimeMark]:
    return next((m for m in day.marks if m.id == mark_id), None)


def find_mark_at(day: DayActivity, minute: int) -> Optional[TimeMark]:
    return next((m for m in day.marks if m.timestamp == minute), None)


def find_interval(day: DayActivity, start_mark_id: str, end_mark_id: str) -> Optional[ActivityInterval]:
    return next((i for i in day.intervals if _spans(i, start_mark_id, end_mark_id)), None)


def resolve_minute(day: DayActivity, minute: int) -> tuple[str, str]:
    """Covering (predecessor, successor) ids for an arbitrary minute.

    Predecessor is the last mark at or before ``minute``, successor the first
    mark strictly after it; the virtual boundaries fill in missing sides.
    """
    predecessor, successor = START_OF_DAY_ID, END_OF_DAY_ID
    for mark in sorted(day.marks, key=lambda m: m.timestamp):
        if mark.timestamp <= minute:
            predecessor = mark.id
        elif successor == END_OF_DAY_ID:
            successor = mark.id
    return predecessor, successor


def interval_bounds(day: DayActivity, interval: ActivityInterval) -> Optional[tuple[int, int]]:
    """Resolved (start, end) minutes, ``None`` for degenerate intervals."""
    start = mark_minute(day, interval.start_mark_id)
    end = mark_minute(day, interval.end_mark_id)
    if start is None or end is None or end <= start:
        return None
    return start, end


def valid_intervals(day: DayActivity) -> list[Segment]:
    """Typed intervals whose endpoints exist and enclose a positive duration."""
    result: list[Segment] = []
    for interval in day.intervals:
        if not interval.type.is_typed:
            continue
        bounds = interval_bounds(day, interval)
        if bounds is None:
            continue
        result.append(
            Segment(
                start_mark_id=interval.start_mark_id,
                end_mark_id=interval.end_mark_id,
                start_minute=bounds[0],
                end_minute=bounds[1],
                type=interval.type,
                interval_id=interval.id,
            )
        )
    return result


def segments(day: DayActivity) -> list[Segment]:
    """The whole day as consecutive segments, untyped gaps included."""
    result: list[Segment] = []
    sequence = mark_sequence(day)
    for (start_id, start), (end_id, end) in zip(sequence, sequence[1:]):
        if end <= start:
            continue
        interval = find_interval(day, start_id, end_id)
        result.append(
            Segment(
                start_mark_id=start_id,
                end_mark_id=end_id,
                start_minute=start,
                end_minute=end,
                type=interval.type if interval else ActivityType.UNTYPED,
                interval_id=interval.id if interval else None,
            )
        )
    return result


def partition_errors(day: DayActivity) -> list[str]:
    """Human readable violations of the timeline invariants (empty when valid)."""
    errors: list[str] = []
    timestamps = [m.timestamp for m in day.marks]
    if timestamps != sorted(timestamps):
        errors.append("marks are not sorted by timestamp")
    if len(set(timestamps)) != len(timestamps):
        errors.append("several marks share a timestamp")
    for mark in day.marks:
        if mark.timestamp != mark.hour * 60 + mark.minute:
            errors.append(f"mark {mark.id} timestamp does not match {mark.hour:02d}:{mark.minute:02d}")
        if mark.id in VIRTUAL_MARK_IDS:
            errors.append(f"real mark uses reserved id {mark.id}")
    sequence = mark_sequence(day)
    adjacent = {(a[0], b[0]) for a, b in zip(sequence, sequence[1:])}
    seen: set[tuple[str, str]] = set()
    for interval in day.intervals:
        pair = (interval.start_mark_id, interval.end_mark_id)
        if pair in seen:
            errors.append(f"duplicate interval between {pair[0]} and {pair[1]}")
        seen.add(pair)
        if pair not in adjacent:
            errors.append(f"interval {interval.id} does not join adjacent marks")
        if interval_bounds(day, interval) is None:
            errors.append(f"interval {interval.id} is degenerate")
        if not interval.type.is_typed:
            errors.append(f"interval {interval.id} is stored untyped")
    return errors


# --- Edits -----------------------------------------------------------------

def insert_mark(day: DayActivity, minute: int, id_factory: IdFactory = new_id) -> tuple[DayActivity, TimeMark]:
    """Place a mark at ``minute``; a typed interval around it is split in two."""
    value = clamp_minute(minute)
    existing = find_mark_at(day, value)
    if existing is not None:
        return day, existing

    predecessor, successor = _insertion_neighbours(day, value)
    removed = [i for i in day.intervals if _spans(i, predecessor, successor)]
    intervals = [i for i in day.intervals if not _spans(i, predecessor, successor)]
    if len(removed) > 1:
        logger.warning("dropping %d duplicate intervals while splitting on %s", len(removed), day.date)

    mark = TimeMark.at(id_factory(), value)
    marks = sorted([*day.marks, mark], key=lambda m: m.timestamp)
    result = DayActivity(date=day.date, marks=marks, intervals=intervals)

    split_type = next((i.type for i in removed if i.type.is_typed), ActivityType.UNTYPED)
    if split_type.is_typed:
        for start_id, end_id in ((predecessor, mark.id), (mark.id, successor)):
            # A mark on a boundary yields a zero-length side, which is not stored.
            if _pair_duration(result, start_id, end_id) > 0:
                intervals.append(ActivityInterval(id_factory(), start_id, end_id, split_type))
    return result, mark


def delete_mark(day: DayActivity, mark_id: str) -> DayActivity:
    """Remove a mark and every interval touching it (neighbours are not merged)."""
    if find_mark(day, mark_id) is None:
        return day
    return DayActivity(
        date=day.date,
        marks=[m for m in day.marks if m.id != mark_id],
        intervals=[i for i in day.intervals if mark_id not in (i.start_mark_id, i.end_mark_id)],
    )


def retype_interval(
    day: DayActivity,
    start_mark_id: str,
    end_mark_id: str,
    activity_type: ActivityType | str | None,
    id_factory: IdFactory = new_id,
) -> DayActivity:
    """Set the type between two adjacent marks; untyped removes the record."""
    activity_type = ActivityType.parse(activity_type)
    matching = [i for i in day.intervals if _spans(i, start_mark_id, end_mark_id)]

    if matching:
        if not activity_type.is_typed:
            intervals = [i for i in day.intervals if not _spans(i, start_mark_id, end_mark_id)]
            return DayActivity(date=day.date, marks=list(day.marks), intervals=intervals)
        if len(matching) == 1 and matching[0].type is activity_type:
            return day
        intervals = []
        updated = False
        for interval in day.intervals:
            if _spans(interval, start_mark_id, end_mark_id):
                if not updated:
                    intervals.append(replace(interval, type=activity_type))
                    updated = True
                continue
            intervals.append(interval)
        return DayActivity(date=day.date, marks=list(day.marks), intervals=intervals)

    if not activity_type.is_typed:
        return day
    if not _adjacent(day, start_mark_id, end_mark_id):
        logger.debug("ignoring retype of non-adjacent pair %s -> %s", start_mark_id, end_mark_id)
        return day
    if _pair_duration(day, start_mark_id, end_mark_id) <= 0:
        return day
    interval = ActivityInterval(id_factory(), start_mark_id, end_mark_id, activity_type)
    return DayActivity(date=day.date, marks=list(day.marks), intervals=[*day.intervals, interval])


def move_mark(day: DayActivity, mark_id: str, minute: int) -> DayActivity:
    """Change a mark's time without re-splitting intervals.

    Intervals keep pointing at the mark by id; if it crosses a neighbour they
    become degenerate and are skipped by ``valid_intervals``. Moving onto a
    minute already holding another mark is refused.
    """
    value = clamp_minute(minute)
    target = find_mark(day, mark_id)
    if target is None or target.timestamp == value:
        return day
    if find_mark_at(day, value) is not None:
        logger.debug("mark %s not moved: minute %d already marked", mark_id, value)
        return day
    moved = TimeMark.at(mark_id, value)
    marks = sorted((moved if m.id == mark_id else m for m in day.marks), key=lambda m: m.timestamp)
    return DayActivity(date=day.date, marks=marks, intervals=list(day.intervals))


def assign_span(
    day: DayActivity,
    start_mark_id: str,
    end_mark_id: str,
    activity_type: ActivityType | str | None,
    id_factory: IdFactory = new_id,
) -> DayActivity:
    """Retype every consecutive pair from ``start_mark_id`` to ``end_mark_id``."""
    ids = [mark_id for mark_id, _ in mark_sequence(day)]
    if start_mark_id not in ids or end_mark_id not in ids:
        return day
    first, last = ids.index(start_mark_id), ids.index(end_mark_id)
    result = day
    for k in range(first, last):
        result = retype_interval(result, ids[k], ids[k + 1], activity_type, id_factory)
    return result


# --- Internal --------------------------------------------------------------

def _spans(interval: ActivityInterval, start_mark_id: str, end_mark_id: str) -> bool:
    return interval.start_mark_id == start_mark_id and interval.end_mark_id == end_mark_id


def _insertion_neighbours(day: DayActivity, minute: int) -> tuple[str, str]:
    predecessor, successor = START_OF_DAY_ID, END_OF_DAY_ID
    for mark in sorted(day.marks, key=lambda m: m.timestamp):
        if mark.timestamp < minute:
            predecessor = mark.id
        elif mark.timestamp > minute:
            successor = mark.id
            break
    return predecessor, successor


def _adjacent(day: DayActivity, start_mark_id: str, end_mark_id: str) -> bool:
    sequence = mark_sequence(day)
    return any(a[0] == start_mark_id and b[0] == end_mark_id for a, b in zip(sequence, sequence[1:]))


def _pair_duration(day: DayActivity, start_mark_id: str, end_mark_id: str) -> int:
    start = mark_minute(day, start_mark_id)
    end = mark_minute(day, end_mark_id)
    if start is None or end is None:
        return 0
    return end - start


__all__ = [
    "END_OF_DAY_ID",
    "IdFactory",
    "START_OF_DAY_ID",
    "Segment",
    "VIRTUAL_MARK_IDS",
    "assign_span",
    "delete_mark",
    "find_interval",
    "find_mark",
    "find_mark_at",
    "insert_mark",
    "interval_bounds",
    "mark_minute",
    "mark_sequence",
    "move_mark",
    "new_id",
    "partition_errors",
    "resolve_minute",
    "retype_interval",
    "segments",
    "valid_intervals",
]
