from __future__ import annotations

"""One-way achievement latches derived from goal and timeline history."""

from dataclasses import dataclass
from datetime import date, datetime
import logging

from .dates import to_iso, trailing_days
from .goals import MinutesForDay
from .models import AchievementFlag, AchievementKey, HomeState

logger = logging.getLogger(__name__)

FOCUS_DAY_MINUTES = 8 * 60
FOCUS_LOOKBACK_DAYS = 30
SLEEP_TOTAL_MINUTES = 7 * 8 * 60
SLEEP_LOOKBACK_DAYS = 7


@dataclass(slots=True)
class AchievementResult:
    state: HomeState
    unlocked: tuple[AchievementKey, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.unlocked)


def evaluate_achievements(
    state: HomeState,
    today: date,
    now: datetime,
    productive_minutes: MinutesForDay,
    sleep_minutes: MinutesForDay,
) -> AchievementResult:
    """Unlock every achievement whose condition now holds.

    Already unlocked flags are skipped, so re-running on unchanged history is
    a no-op and an unlock time is never rewritten.
    """
    earned: list[AchievementKey] = []
    for key in AchievementKey:
        flag = state.achievements.get(key)
        if flag is not None and flag.unlocked:
            continue
        if _condition_met(key, state, today, productive_minutes, sleep_minutes):
            earned.append(key)
    if not earned:
        return AchievementResult(state)

    next_state = state.clone()
    stamp = to_iso(now)
    for key in earned:
        next_state.achievements[key] = AchievementFlag(unlocked=True, unlocked_at=stamp)
        logger.info("achievement unlocked", extra={"_json_achievement": key.value})
    return AchievementResult(next_state, tuple(earned))


def _condition_met(
    key: AchievementKey,
    state: HomeState,
    today: date,
    productive_minutes: MinutesForDay,
    sleep_minutes: MinutesForDay,
) -> bool:
    if key is AchievementKey.FIRST_GOAL_COMPLETED:
        return any(goal.completed for goal in state.goals.values())
    if key is AchievementKey.FOCUS_EIGHT_HOURS:
        return any(productive_minutes(day) >= FOCUS_DAY_MINUTES for day in trailing_days(today, FOCUS_LOOKBACK_DAYS))
    if key is AchievementKey.SLEEP_SEVEN_NIGHTS:
        return sum(sleep_minutes(day) for day in trailing_days(today, SLEEP_LOOKBACK_DAYS)) >= SLEEP_TOTAL_MINUTES
    raise ValueError(f"unhandled achievement {key!r}")


__all__ = [
    "AchievementResult",
    "FOCUS_DAY_MINUTES",
    "FOCUS_LOOKBACK_DAYS",
    "SLEEP_LOOKBACK_DAYS",
    "SLEEP_TOTAL_MINUTES",
    "evaluate_achievements",
]
