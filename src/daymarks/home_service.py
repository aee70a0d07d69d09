from __future__ import annotations

"""Periodic goal backfill, live goal check and achievement evaluation.

A ``QTimer`` polls every ``poll_interval_ms``; ``on_visibility_regained`` and
every timeline change trigger the same refresh. The refresh only touches the
home state and reads timelines through the aggregator, so it is safe to run
between any two user edits.
"""

from datetime import datetime
import logging
from typing import Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from .achievements import evaluate_achievements
from .dates import Clock
from .goals import GoalStatus, goal_status, process_pending_days, refresh_today_goal
from .state_store import StateStore

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 30_000


class HomeService(QObject):
    state_changed = pyqtSignal()
    achievement_unlocked = pyqtSignal(str)  # achievement key

    def __init__(
        self,
        store: StateStore,
        clock: Optional[Clock] = None,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> None:
        super().__init__()
        self._store = store
        self._clock: Clock = clock or datetime.now
        self._timer = QTimer(self)
        self._timer.setInterval(poll_interval_ms)
        self._timer.timeout.connect(self._on_poll)
        self._store.day_changed.connect(self._on_day_changed)

    # --- Lifecycle ------------------------------------------------------
    def start(self) -> None:
        self._timer.start()
        self.refresh()

    def stop(self) -> None:
        self._timer.stop()

    @property
    def running(self) -> bool:
        return self._timer.isActive()

    def on_visibility_regained(self) -> bool:
        return self.refresh()

    # --- Goals ----------------------------------------------------------
    def set_goal_for_today(self, minutes: int) -> bool:
        now = self._clock()
        created = self._store.set_goal(now.date(), minutes, now)
        if created:
            self.refresh()
        return created

    def today_status(self) -> GoalStatus:
        today = self._clock().date()
        return goal_status(self._store.home(), today, today)

    def refresh(self) -> bool:
        """Run backfill, live check and achievements; persist once if anything changed."""
        now = self._clock()
        today = now.date()
        aggregator = self._store.aggregator

        backfill = process_pending_days(self._store.home(), today, aggregator.productive_minutes)
        live = refresh_today_goal(backfill.state, today, aggregator.productive_minutes(today))
        achievements = evaluate_achievements(
            live.state,
            today,
            now,
            aggregator.productive_minutes,
            aggregator.sleep_minutes,
        )
        changed = backfill.changed or live.changed or achievements.changed
        if not changed:
            return False
        self._store.replace_home(achievements.state)
        self.state_changed.emit()
        for key in achievements.unlocked:
            self.achievement_unlocked.emit(key.value)
        return True

    # --- Internal -------------------------------------------------------
    def _on_poll(self) -> None:
        self.refresh()

    def _on_day_changed(self, _date_key: str) -> None:
        self.refresh()


__all__ = ["DEFAULT_POLL_INTERVAL_MS", "HomeService"]
