from __future__ import annotations

"""Focus (work) and rest timer writing into today's timeline.

Design:
 - Start places a mark at the current minute (reusing one already there).
 - When the planned duration elapses, an end mark is placed and every pair
   between the two marks is typed (productive for work, rest for rest). A
   finished work block prompts for a rest block, a finished rest block
   prompts to resume.
 - ``stop`` is the normal cancellation path: the block is finalised at the
   elapsed minute instead of the planned one.
 - State machine: idle -> work|rest -> idle. Emits Qt signals for UI binding.
"""

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from .dates import Clock, minute_of_day
from .models import ActivityType, clamp_minute
from .state_store import StateStore
from .timeline import find_mark, find_mark_at

logger = logging.getLogger(__name__)

WORK = "work"
REST = "rest"
IDLE = "idle"


@dataclass(slots=True)
class FocusTimerConfig:
    work_minutes: int = 30
    rest_minutes: int = 5


@dataclass(slots=True)
class ActiveBlock:
    kind: str
    day: date
    start_minute: int
    start_mark_id: str
    started_at: datetime
    duration_minutes: int

    @property
    def activity(self) -> ActivityType:
        return ActivityType.PRODUCTIVE if self.kind == WORK else ActivityType.REST

    @property
    def target_end_minute(self) -> int:
        return clamp_minute(self.start_minute + self.duration_minutes)


class FocusTimerService(QObject):
    tick = pyqtSignal(int, str)  # remaining seconds, kind
    started = pyqtSignal(str, str)  # kind, start mark id
    finished = pyqtSignal(str, int)  # kind, end minute
    stopped = pyqtSignal(str, int)  # kind, end minute
    rest_prompt = pyqtSignal(str)  # mark id a rest block can start from
    resume_prompt = pyqtSignal()
    state_changed = pyqtSignal(str)

    def __init__(
        self,
        store: StateStore,
        config: FocusTimerConfig | None = None,
        time_provider: Optional[Clock] = None,
    ) -> None:
        super().__init__()
        self._store = store
        self._config = config or FocusTimerConfig()
        self._time_provider: Clock = time_provider or datetime.now
        self._timer = QTimer(self)
        self._timer.setInterval(1000)
        self._timer.timeout.connect(self._on_tick)
        self._active: ActiveBlock | None = None

    # --- Properties -----------------------------------------------------
    @property
    def state(self) -> str:
        return self._active.kind if self._active else IDLE

    @property
    def active(self) -> ActiveBlock | None:
        return self._active

    def config(self) -> FocusTimerConfig:
        return self._config

    # --- Public API -----------------------------------------------------
    def start_work(self) -> str:
        now = self._time_provider()
        return self._begin(WORK, now, minute_of_day(now), self._config.work_minutes)

    def start_rest(self, from_mark_id: str | None = None) -> str:
        now = self._time_provider()
        minute = minute_of_day(now)
        if from_mark_id is not None:
            mark = find_mark(self._store.day(now.date()), from_mark_id)
            if mark is not None:
                minute = mark.timestamp
        return self._begin(REST, now, minute, self._config.rest_minutes)

    def stop(self) -> Optional[int]:
        block = self._active
        if block is None:
            return None
        elapsed_minutes = self._elapsed_seconds(block) // 60
        reached = clamp_minute(block.start_minute + elapsed_minutes)
        end_minute = self._finalize(block, min(block.target_end_minute, reached))
        self.stopped.emit(block.kind, end_minute)
        return end_minute

    # --- Internal -------------------------------------------------------
    def _begin(self, kind: str, now: datetime, minute: int, duration: int) -> str:
        if self._active is not None:
            raise RuntimeError("Timer already active; stop it before starting a new block")
        day = now.date()
        mark = self._store.insert_mark(day, minute)
        self._active = ActiveBlock(
            kind=kind,
            day=day,
            start_minute=mark.timestamp,
            start_mark_id=mark.id,
            started_at=now,
            duration_minutes=duration,
        )
        self._timer.start()
        self.state_changed.emit(kind)
        self.started.emit(kind, mark.id)
        self.tick.emit(duration * 60, kind)
        logger.info("%s block started", kind, extra={"_json_minute": mark.timestamp})
        return mark.id

    def _on_tick(self) -> None:
        block = self._active
        if block is None:
            return
        elapsed = self._elapsed_seconds(block)
        remaining = max(0, block.duration_minutes * 60 - elapsed)
        self.tick.emit(remaining, block.kind)
        reached = clamp_minute(block.start_minute + elapsed // 60)
        if remaining > 0 and reached < block.target_end_minute:
            return
        end_minute = self._finalize(block, block.target_end_minute)
        self.finished.emit(block.kind, end_minute)
        if block.kind == WORK:
            mark = find_mark_at(self._store.day(block.day), end_minute)
            if mark is not None:
                self.rest_prompt.emit(mark.id)
        else:
            self.resume_prompt.emit()

    def _finalize(self, block: ActiveBlock, end_minute: int) -> int:
        self._timer.stop()
        self._active = None
        end_mark = self._store.insert_mark(block.day, end_minute)
        if end_mark.timestamp > block.start_minute:
            self._store.assign_span(block.day, block.start_mark_id, end_mark.id, block.activity)
        self.state_changed.emit(IDLE)
        logger.info(
            "%s block finalised",
            block.kind,
            extra={"_json_start": block.start_minute, "_json_end": end_mark.timestamp},
        )
        return end_mark.timestamp

    def _elapsed_seconds(self, block: ActiveBlock) -> int:
        return max(0, int((self._time_provider() - block.started_at).total_seconds()))


__all__ = ["FocusTimerConfig", "FocusTimerService", "ActiveBlock", "IDLE", "REST", "WORK"]
