from datetime import date, datetime

from conftest import FakeClock

from daymarks.home_service import HomeService
from daymarks.models import ActivityType, DayActivity, HomeState
from daymarks.repositories import PersistenceError, SqlitePersistence, load_day_activity, load_home_state
from daymarks.state_store import StateStore
from daymarks.timeline import END_OF_DAY_ID

DAY = date(2025, 3, 1)


class FailingProvider:
    """Reads work, every write fails."""

    def load_day_activity(self, date_key):
        return DayActivity(date=date_key)

    def save_day_activity(self, date_key, day):
        raise PersistenceError("disk full")

    def load_all_day_activities(self):
        return {}

    def load_home_state(self):
        return HomeState()

    def save_home_state(self, state):
        raise PersistenceError("disk full")


def test_edits_are_persisted_and_signalled(store, db, qtbot):
    with qtbot.waitSignals([store.day_changed, store.mutated]):
        mark = store.insert_mark(DAY, 600)
    assert store.retype_interval(DAY, mark.id, END_OF_DAY_ID, ActivityType.REST)

    stored = load_day_activity(db, "user_1", "01.03.2025")
    assert [m.timestamp for m in stored.marks] == [600]
    assert [(i.start_mark_id, i.end_mark_id, i.type) for i in stored.intervals] == [
        (mark.id, END_OF_DAY_ID, ActivityType.REST)
    ]
    assert store.aggregator.sum_minutes_by_type([DAY])[ActivityType.REST] == 840


def test_noop_edit_does_not_emit(store, qtbot):
    mark = store.insert_mark(DAY, 600)
    with qtbot.assertNotEmitted(store.mutated):
        assert store.insert_mark(DAY, 600) == mark
        assert not store.delete_mark(DAY, "missing")
        assert not store.move_mark(DAY, mark.id, 600)


def test_day_returns_a_copy(store):
    store.insert_mark(DAY, 60)
    copy = store.day(DAY)
    copy.marks.clear()
    assert len(store.day(DAY).marks) == 1


def test_state_survives_a_reload(store, db):
    a = store.insert_mark(DAY, 360)
    b = store.insert_mark(DAY, 420)
    store.assign_span(DAY, a.id, b.id, ActivityType.SLEEP)
    store.set_goal(DAY, 45, datetime(2025, 3, 1, 7, 0))

    again = StateStore(SqlitePersistence(db, "user_1"))
    again.load()
    assert again.aggregator.sleep_minutes(DAY) == 60
    assert again.home().goals["01.03.2025"].target_minutes == 45


def test_set_goal_persists_once(store, db, qtbot):
    now = datetime(2025, 3, 1, 9, 0)
    with qtbot.waitSignal(store.home_changed):
        assert store.set_goal(DAY, 60, now)
    assert not store.set_goal(DAY, 90, now)
    assert load_home_state(db, "user_1").goals["01.03.2025"].target_minutes == 60


def test_home_returns_a_copy(store):
    home = store.home()
    home.currency = 999
    assert store.home().currency == 0


def test_persistence_failure_keeps_memory_state(qtbot):
    store = StateStore(FailingProvider())
    store.load()
    with qtbot.waitSignal(store.persistence_failed) as blocker:
        store.insert_mark(DAY, 300)
    assert blocker.args == ["disk full"]
    assert store.last_error == "disk full"
    assert [m.timestamp for m in store.day(DAY).marks] == [300]


def test_reads_do_not_add_empty_days_to_snapshot(store, qtbot):
    HomeService(store, clock=FakeClock(datetime(2025, 3, 10, 12, 0))).refresh()
    store.day(DAY)
    assert store.aggregator.productive_minutes(date(2025, 2, 1)) == 0
    assert store.snapshot()["activityData"] == {}

    store.insert_mark(DAY, 30)
    assert list(store.snapshot()["activityData"]) == ["01.03.2025"]


def test_snapshot_and_apply_remote(store, db, qtbot):
    store.insert_mark(DAY, 100)
    snapshot = store.snapshot()
    assert set(snapshot) == {"activityData", "homeState"}
    assert snapshot["activityData"]["01.03.2025"]["marks"][0]["timestamp"] == 100

    remote = {
        "activityData": {"02.03.2025": {"marks": [{"id": "r1", "hour": 8, "minute": 15}], "intervals": []}},
        "homeState": {"currentStreak": 7, "currency": 300},
    }
    with qtbot.waitSignal(store.reloaded):
        store.apply_remote(remote)
    assert [m.timestamp for m in store.day(date(2025, 3, 2)).marks] == [495]
    assert store.home().current_streak == 7
    assert load_home_state(db, "user_1").currency == 300
