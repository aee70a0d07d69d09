from __future__ import annotations

"""StateStore: the single in-memory root for one user's timelines and home state.

Reads hand out clones; writes run a pure engine function, swap the result in
and persist the whole blob. Persistence failures never reach the caller: the
in-memory copy stays authoritative and ``persistence_failed`` is emitted.
"""

from datetime import date, datetime
import logging
from typing import Any, Callable

from PyQt6.QtCore import QObject, pyqtSignal

from . import timeline
from .aggregator import Aggregator
from .dates import date_key
from .goals import set_daily_goal
from .models import ActivityType, DayActivity, HomeState, TimeMark
from .repositories import PersistenceError, PersistenceProvider

logger = logging.getLogger(__name__)


class StateStore(QObject):
    day_changed = pyqtSignal(str)  # date key
    home_changed = pyqtSignal()
    mutated = pyqtSignal()  # local write that should reach the remote store
    reloaded = pyqtSignal()  # state replaced from the remote store
    persistence_failed = pyqtSignal(str)

    def __init__(self, provider: PersistenceProvider, id_factory: timeline.IdFactory = timeline.new_id):
        super().__init__()
        self._provider = provider
        self._id_factory = id_factory
        self._days: dict[str, DayActivity] = {}
        self._home = HomeState()
        self._loaded = False
        self.last_error: str | None = None

    # --- Loading --------------------------------------------------------
    def load(self) -> None:
        try:
            self._home = self._provider.load_home_state()
            self._days = self._provider.load_all_day_activities()
        except PersistenceError as e:
            self._report(e)
        self._loaded = True
        self.home_changed.emit()

    @property
    def loaded(self) -> bool:
        return self._loaded

    # --- Timeline -------------------------------------------------------
    def day(self, day: date) -> DayActivity:
        return self._current_day(date_key(day)).clone()

    def insert_mark(self, day: date, minute: int) -> TimeMark:
        key = date_key(day)
        before = self._current_day(key)
        after, mark = timeline.insert_mark(before, minute, self._id_factory)
        self._commit_day(key, before, after)
        return mark

    def delete_mark(self, day: date, mark_id: str) -> bool:
        key = date_key(day)
        before = self._current_day(key)
        return self._commit_day(key, before, timeline.delete_mark(before, mark_id))

    def retype_interval(self, day: date, start_mark_id: str, end_mark_id: str, activity_type: ActivityType) -> bool:
        key = date_key(day)
        before = self._current_day(key)
        after = timeline.retype_interval(before, start_mark_id, end_mark_id, activity_type, self._id_factory)
        return self._commit_day(key, before, after)

    def move_mark(self, day: date, mark_id: str, minute: int) -> bool:
        key = date_key(day)
        before = self._current_day(key)
        return self._commit_day(key, before, timeline.move_mark(before, mark_id, minute))

    def assign_span(self, day: date, start_mark_id: str, end_mark_id: str, activity_type: ActivityType) -> bool:
        key = date_key(day)
        before = self._current_day(key)
        after = timeline.assign_span(before, start_mark_id, end_mark_id, activity_type, self._id_factory)
        return self._commit_day(key, before, after)

    @property
    def aggregator(self) -> Aggregator:
        # Aggregation only reads, so it may see the cached objects directly.
        return Aggregator(lambda d: self._current_day(date_key(d)))

    # --- Home state -----------------------------------------------------
    def home(self) -> HomeState:
        return self._home.clone()

    def replace_home(self, state: HomeState) -> None:
        self._home = state.clone()
        snapshot = self._home
        self._persist(lambda: self._provider.save_home_state(snapshot))
        self.home_changed.emit()
        self.mutated.emit()

    def set_goal(self, day: date, minutes: int, now: datetime) -> bool:
        result = set_daily_goal(self._home, day, minutes, now)
        if result.changed:
            self.replace_home(result.state)
        return result.changed

    # --- Remote sync ----------------------------------------------------
    def snapshot(self) -> dict[str, Any]:
        return {
            "activityData": {key: day.to_dict() for key, day in self._days.items()},
            "homeState": self._home.to_dict(),
        }

    def apply_remote(self, payload: dict[str, Any]) -> None:
        """Replace local state with whatever the remote payload carries."""
        activity = payload.get("activityData")
        if isinstance(activity, dict):
            days = {key: DayActivity.from_dict(raw, key) for key, raw in activity.items() if isinstance(key, str)}
            self._days = days
            for key, day in days.items():
                self._persist(lambda k=key, d=day: self._provider.save_day_activity(k, d))
        home = payload.get("homeState")
        if isinstance(home, dict):
            self._home = HomeState.from_dict(home)
            snapshot = self._home
            self._persist(lambda: self._provider.save_home_state(snapshot))
        self.reloaded.emit()
        self.home_changed.emit()

    # --- Internal -------------------------------------------------------
    def _current_day(self, key: str) -> DayActivity:
        cached = self._days.get(key)
        if cached is None:
            try:
                cached = self._provider.load_day_activity(key)
            except PersistenceError as e:
                self._report(e)
                return DayActivity(date=key)
            # Untouched empty days stay out of the cache and out of snapshot().
            if cached.marks or cached.intervals:
                self._days[key] = cached
        return cached

    def _commit_day(self, key: str, before: DayActivity, after: DayActivity) -> bool:
        if after is before:
            return False
        for problem in timeline.partition_errors(after):
            logger.debug("timeline %s: %s", key, problem)
        self._days[key] = after
        self._persist(lambda: self._provider.save_day_activity(key, after))
        self.day_changed.emit(key)
        self.mutated.emit()
        return True

    def _persist(self, write: Callable[[], None]) -> bool:
        try:
            write()
        except PersistenceError as e:
            self._report(e)
            return False
        self.last_error = None
        return True

    def _report(self, error: PersistenceError) -> None:
        self.last_error = str(error)
        logger.error("persistence failed: %s", error)
        self.persistence_failed.emit(str(error))


__all__ = ["StateStore"]
