import random

from conftest import counter_ids

from daymarks.models import ActivityType, DayActivity
from daymarks.timeline import (
    END_OF_DAY_ID,
    START_OF_DAY_ID,
    assign_span,
    delete_mark,
    find_interval,
    insert_mark,
    mark_minute,
    mark_sequence,
    move_mark,
    partition_errors,
    resolve_minute,
    retype_interval,
    segments,
    valid_intervals,
)


def _day_with_marks(*minutes):
    ids = counter_ids("m")
    day = DayActivity(date="01.03.2025")
    marks = []
    for minute in minutes:
        day, mark = insert_mark(day, minute, ids)
        marks.append(mark)
    return day, marks, ids


def _pairs(day):
    return sorted((i.start_mark_id, i.end_mark_id, i.type) for i in day.intervals)


def test_empty_day_is_one_untyped_segment():
    day = DayActivity(date="01.03.2025")
    segs = segments(day)
    assert len(segs) == 1
    assert segs[0].start_mark_id == START_OF_DAY_ID
    assert segs[0].end_mark_id == END_OF_DAY_ID
    assert segs[0].duration == 1440
    assert segs[0].type is ActivityType.UNTYPED
    assert partition_errors(day) == []


def test_split_inside_typed_interval_preserves_type():
    day, (a, b), ids = _day_with_marks(360, 720)
    day = retype_interval(day, a.id, b.id, ActivityType.PRODUCTIVE, ids)
    day, m = insert_mark(day, 540, ids)
    assert _pairs(day) == sorted(
        [
            (a.id, m.id, ActivityType.PRODUCTIVE),
            (m.id, b.id, ActivityType.PRODUCTIVE),
        ]
    )
    assert find_interval(day, a.id, b.id) is None
    assert partition_errors(day) == []


def test_split_inside_gap_creates_no_interval():
    day, (a, b), ids = _day_with_marks(360, 720)
    day, _ = insert_mark(day, 500, ids)
    assert day.intervals == []
    assert [m.timestamp for m in day.marks] == [360, 500, 720]


def test_split_uses_virtual_boundaries_on_an_empty_day():
    ids = counter_ids()
    day = retype_interval(DayActivity(date="01.03.2025"), START_OF_DAY_ID, END_OF_DAY_ID, "sleep", ids)
    day, m = insert_mark(day, 420, ids)
    assert _pairs(day) == sorted(
        [
            (START_OF_DAY_ID, m.id, ActivityType.SLEEP),
            (m.id, END_OF_DAY_ID, ActivityType.SLEEP),
        ]
    )


def test_split_on_day_start_drops_zero_length_side():
    ids = counter_ids()
    day = retype_interval(DayActivity(date="01.03.2025"), START_OF_DAY_ID, END_OF_DAY_ID, "sleep", ids)
    day, m = insert_mark(day, 0, ids)
    assert _pairs(day) == [(m.id, END_OF_DAY_ID, ActivityType.SLEEP)]
    assert partition_errors(day) == []


def test_split_on_last_minute_keeps_one_minute_tail():
    ids = counter_ids()
    day = retype_interval(DayActivity(date="01.03.2025"), START_OF_DAY_ID, END_OF_DAY_ID, "rest", ids)
    day, m = insert_mark(day, 1439, ids)
    bounds = sorted((s.start_minute, s.end_minute) for s in valid_intervals(day))
    assert bounds == [(0, 1439), (1439, 1440)]


def test_insert_is_idempotent():
    day, (a,), ids = _day_with_marks(300)
    again, mark = insert_mark(day, 300, ids)
    assert again is day
    assert mark == a
    assert len(again.marks) == 1


def test_insert_clamps_out_of_range_minutes():
    day, marks, _ = _day_with_marks(-30, 5000)
    assert [m.timestamp for m in marks] == [0, 1439]
    assert (marks[1].hour, marks[1].minute) == (23, 59)


def test_insert_does_not_mutate_input():
    day, (a, b), ids = _day_with_marks(360, 720)
    typed = retype_interval(day, a.id, b.id, "productive", ids)
    snapshot = list(typed.intervals)
    insert_mark(typed, 400, ids)
    assert typed.intervals == snapshot
    assert len(typed.marks) == 2


def test_delete_mark_drops_both_adjacent_intervals():
    day, (a, m, b), ids = _day_with_marks(360, 540, 720)
    day = retype_interval(day, a.id, m.id, "productive", ids)
    day = retype_interval(day, m.id, b.id, "rest", ids)
    day = delete_mark(day, m.id)
    assert [x.id for x in day.marks] == [a.id, b.id]
    assert day.intervals == []
    assert all(s.type is ActivityType.UNTYPED for s in segments(day))


def test_delete_unknown_or_virtual_mark_is_noop():
    day, _, _ = _day_with_marks(100)
    assert delete_mark(day, "missing") is day
    assert delete_mark(day, START_OF_DAY_ID) is day


def test_retype_updates_in_place_and_untyped_removes():
    day, (a, b), ids = _day_with_marks(60, 120)
    day = retype_interval(day, a.id, b.id, "procrastination", ids)
    interval_id = day.intervals[0].id
    day = retype_interval(day, a.id, b.id, ActivityType.REST, ids)
    assert [(i.id, i.type) for i in day.intervals] == [(interval_id, ActivityType.REST)]
    assert retype_interval(day, a.id, b.id, "rest", ids) is day
    day = retype_interval(day, a.id, b.id, ActivityType.UNTYPED, ids)
    assert day.intervals == []
    assert retype_interval(day, a.id, b.id, None, ids) is day


def test_retype_rejects_non_adjacent_pair():
    day, (a, _m, b), ids = _day_with_marks(60, 90, 120)
    assert retype_interval(day, a.id, b.id, "sleep", ids) is day


def test_retype_collapses_duplicate_records():
    day, (a, b), ids = _day_with_marks(60, 120)
    day = retype_interval(day, a.id, b.id, "sleep", ids)
    duplicated = DayActivity(date=day.date, marks=list(day.marks), intervals=day.intervals * 2)
    fixed = retype_interval(duplicated, a.id, b.id, "rest", ids)
    assert len(fixed.intervals) == 1
    assert fixed.intervals[0].type is ActivityType.REST


def test_move_keeps_intervals_and_filters_degenerate_ones():
    day, (a, b), ids = _day_with_marks(360, 720)
    day = retype_interval(day, a.id, b.id, "productive", ids)
    moved = move_mark(day, b.id, 300)
    assert [m.id for m in moved.marks] == [b.id, a.id]
    assert mark_minute(moved, b.id) == 300
    assert len(moved.intervals) == 1
    assert valid_intervals(moved) == []
    assert partition_errors(moved)


def test_move_onto_existing_mark_is_refused():
    day, (a, b), _ = _day_with_marks(360, 720)
    assert move_mark(day, a.id, 720) is day
    assert move_mark(day, "missing", 10) is day


def test_resolve_minute_uses_virtual_defaults():
    day, (a, b), _ = _day_with_marks(360, 720)
    assert resolve_minute(day, 0) == (START_OF_DAY_ID, a.id)
    assert resolve_minute(day, 360) == (a.id, b.id)
    assert resolve_minute(day, 800) == (b.id, END_OF_DAY_ID)
    assert resolve_minute(DayActivity(date="x"), 700) == (START_OF_DAY_ID, END_OF_DAY_ID)


def test_end_of_day_resolves_differently_for_display():
    day = DayActivity(date="01.03.2025")
    assert mark_minute(day, END_OF_DAY_ID) == 1440
    assert mark_minute(day, END_OF_DAY_ID, display=True) == 1439


def test_assign_span_types_every_pair_between_marks():
    day, (s, x, e), ids = _day_with_marks(600, 630, 660)
    day = assign_span(day, s.id, e.id, ActivityType.PRODUCTIVE, ids)
    assert _pairs(day) == sorted(
        [
            (s.id, x.id, ActivityType.PRODUCTIVE),
            (x.id, e.id, ActivityType.PRODUCTIVE),
        ]
    )
    assert assign_span(day, e.id, s.id, "rest", ids) is day


def test_partition_invariant_holds_under_random_edits():
    rng = random.Random(1234)
    ids = counter_ids()
    day = DayActivity(date="01.03.2025")
    types = list(ActivityType)
    for _ in range(400):
        op = rng.choice(["insert", "insert", "delete", "retype", "span"])
        sequence = [mark_id for mark_id, _ in mark_sequence(day)]
        if op == "insert":
            day, _ = insert_mark(day, rng.randint(0, 1439), ids)
        elif op == "delete" and day.marks:
            day = delete_mark(day, rng.choice(day.marks).id)
        elif op == "retype":
            k = rng.randrange(len(sequence) - 1)
            day = retype_interval(day, sequence[k], sequence[k + 1], rng.choice(types), ids)
        elif op == "span":
            first, last = sorted(rng.sample(range(len(sequence)), 2)) if len(sequence) > 2 else (0, 1)
            day = assign_span(day, sequence[first], sequence[last], rng.choice(types), ids)
        assert partition_errors(day) == []
