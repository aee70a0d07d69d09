from __future__ import annotations

"""Daily goals, streak bookkeeping and currency rewards.

Goal lifecycle per date: no goal -> pending (set, day is today or later) ->
completed | failed. The terminal outcome is written by
``process_pending_days`` once the date lies strictly before today. Today's
goal is only flagged live by ``refresh_today_goal`` and stays mutable until
the next backfill picks it up.

Every function takes a ``HomeState`` and returns an ``EngineResult`` holding
either the untouched input (``changed=False``) or a modified clone.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
import logging
from typing import Callable

from .dates import EPOCH, add_days, date_key, iter_days, to_iso, try_parse_date_key
from .models import DailyGoalState, HomeState

logger = logging.getLogger(__name__)

GOAL_REWARD = 100

MinutesForDay = Callable[[date], int]


class GoalStatus(str, Enum):
    NO_GOAL = "no_goal"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class EngineResult:
    state: HomeState
    changed: bool


def set_daily_goal(state: HomeState, day: date, minutes: int, now: datetime) -> EngineResult:
    """Create the goal for ``day``; an existing goal is never overwritten."""
    key = date_key(day)
    if key in state.goals:
        logger.info("goal for %s already set; keeping %d min", key, state.goals[key].target_minutes)
        return EngineResult(state, False)
    if minutes <= 0:
        return EngineResult(state, False)
    next_state = state.clone()
    next_state.goals[key] = DailyGoalState(target_minutes=int(minutes), set_at=to_iso(now))
    logger.info("goal set", extra={"_json_date": key, "_json_target": int(minutes)})
    return EngineResult(next_state, True)


def process_pending_days(state: HomeState, today: date, productive_minutes: MinutesForDay) -> EngineResult:
    """Finalise every unprocessed day up to yesterday, oldest first."""
    if today <= EPOCH:
        return EngineResult(state, False)
    yesterday = add_days(today, -1)

    start = yesterday
    if state.last_processed_date:
        last = try_parse_date_key(state.last_processed_date)
        if last is None:
            logger.warning("unreadable lastProcessedDate %r; restarting at yesterday", state.last_processed_date)
        else:
            start = add_days(last, 1)
    if start > yesterday:
        return EngineResult(state, False)

    next_state = state.clone()
    for day in iter_days(start, yesterday):
        key = date_key(day)
        goal = next_state.goals.get(key)
        target = goal.target_minutes if goal else 0
        produced = productive_minutes(day)
        completed = target > 0 and produced >= target

        reward_granted = goal.reward_granted if goal else False
        if completed and not reward_granted:
            next_state.currency += GOAL_REWARD
            reward_granted = True

        if target > 0:
            if not completed:
                next_state.current_streak = 0
            elif not (goal and goal.counted_in_streak):
                next_state.current_streak += 1

        next_state.goals[key] = DailyGoalState(
            target_minutes=target,
            completed=completed,
            counted_in_streak=True,
            reward_granted=reward_granted,
            set_at=goal.set_at if goal else to_iso(datetime.combine(day, time.min)),
        )
        next_state.last_processed_date = key
        if target > 0:
            logger.info(
                "day finalised",
                extra={
                    "_json_date": key,
                    "_json_completed": completed,
                    "_json_productive": produced,
                    "_json_streak": next_state.current_streak,
                },
            )
    return EngineResult(next_state, True)


def refresh_today_goal(state: HomeState, today: date, productive_minutes: int) -> EngineResult:
    """Live check for today's goal: flags completion and grants the reward once."""
    key = date_key(today)
    goal = state.goals.get(key)
    if goal is None or goal.target_minutes <= 0 or goal.counted_in_streak:
        return EngineResult(state, False)
    completed = productive_minutes >= goal.target_minutes
    if completed == goal.completed and (not completed or goal.reward_granted):
        return EngineResult(state, False)

    next_state = state.clone()
    live = next_state.goals[key]
    live.completed = completed
    if completed and not live.reward_granted:
        next_state.currency += GOAL_REWARD
        live.reward_granted = True
        logger.info("today's goal reached", extra={"_json_date": key, "_json_currency": next_state.currency})
    return EngineResult(next_state, True)


def goal_status(state: HomeState, day: date, today: date) -> GoalStatus:
    goal = state.goals.get(date_key(day))
    if goal is None or goal.target_minutes <= 0:
        return GoalStatus.NO_GOAL
    if day >= today or not goal.counted_in_streak:
        return GoalStatus.PENDING
    return GoalStatus.COMPLETED if goal.completed else GoalStatus.FAILED


__all__ = [
    "EngineResult",
    "GOAL_REWARD",
    "GoalStatus",
    "MinutesForDay",
    "goal_status",
    "process_pending_days",
    "refresh_today_goal",
    "set_daily_goal",
]
