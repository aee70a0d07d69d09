from __future__ import annotations

"""Dataclass models for day timelines and per-user home state.

Stored blobs use the camelCase field names of the existing JSON data. The
``from_dict`` constructors sanitise whatever they are given: they never raise
on malformed input, they drop or default the offending fields instead.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

MINUTES_PER_DAY = 24 * 60
LAST_MINUTE = MINUTES_PER_DAY - 1


def clamp_minute(minute: int) -> int:
    return max(0, min(LAST_MINUTE, int(minute)))


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value)


def _as_bool(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


class ActivityType(str, Enum):
    SLEEP = "sleep"
    PRODUCTIVE = "productive"
    REST = "rest"
    PROCRASTINATION = "procrastination"
    UNTYPED = "untyped"

    @classmethod
    def parse(cls, raw: Any) -> "ActivityType":
        if isinstance(raw, ActivityType):
            return raw
        try:
            return cls(raw)
        except ValueError:
            return cls.UNTYPED

    @property
    def is_typed(self) -> bool:
        return self is not ActivityType.UNTYPED

    def stored(self) -> Optional[str]:
        # Untyped is persisted as null.
        return self.value if self.is_typed else None


TYPED_ACTIVITIES: tuple[ActivityType, ...] = tuple(t for t in ActivityType if t.is_typed)


@dataclass(slots=True, frozen=True)
class TimeMark:
    id: str
    hour: int
    minute: int
    timestamp: int  # minute of day, always hour * 60 + minute

    @classmethod
    def at(cls, mark_id: str, minute: int) -> "TimeMark":
        value = clamp_minute(minute)
        return cls(id=mark_id, hour=value // 60, minute=value % 60, timestamp=value)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "hour": self.hour, "minute": self.minute, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["TimeMark"]:
        if not isinstance(data, dict):
            return None
        mark_id = _as_str(data.get("id"))
        hour = data.get("hour")
        minute = data.get("minute")
        if mark_id is None or isinstance(hour, bool) or isinstance(minute, bool):
            return None
        if not isinstance(hour, int) or not isinstance(minute, int):
            return None
        hour = max(0, min(23, hour))
        minute = max(0, min(59, minute))
        return cls.at(mark_id, hour * 60 + minute)


@dataclass(slots=True, frozen=True)
class ActivityInterval:
    id: str
    start_mark_id: str
    end_mark_id: str
    type: ActivityType = ActivityType.UNTYPED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startMarkId": self.start_mark_id,
            "endMarkId": self.end_mark_id,
            "type": self.type.stored(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ActivityInterval"]:
        if not isinstance(data, dict):
            return None
        interval_id = _as_str(data.get("id"))
        start = _as_str(data.get("startMarkId"))
        end = _as_str(data.get("endMarkId"))
        if interval_id is None or start is None or end is None:
            return None
        return cls(id=interval_id, start_mark_id=start, end_mark_id=end, type=ActivityType.parse(data.get("type")))


@dataclass(slots=True)
class DayActivity:
    date: str  # DD.MM.YYYY
    marks: list[TimeMark] = field(default_factory=list)
    intervals: list[ActivityInterval] = field(default_factory=list)

    def clone(self) -> "DayActivity":
        # Marks and intervals are frozen, copying the lists is enough.
        return DayActivity(date=self.date, marks=list(self.marks), intervals=list(self.intervals))

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "marks": [m.to_dict() for m in self.marks],
            "intervals": [i.to_dict() for i in self.intervals],
        }

    @classmethod
    def from_dict(cls, data: Any, date_key: str) -> "DayActivity":
        if not isinstance(data, dict):
            return cls(date=date_key)
        marks: list[TimeMark] = []
        seen: set[int] = set()
        raw_marks = data.get("marks") if isinstance(data.get("marks"), list) else []
        parsed = [m for m in (TimeMark.from_dict(raw) for raw in raw_marks) if m is not None]
        for mark in sorted(parsed, key=lambda m: m.timestamp):
            if mark.timestamp in seen:
                continue
            seen.add(mark.timestamp)
            marks.append(mark)
        raw_intervals = data.get("intervals") if isinstance(data.get("intervals"), list) else []
        intervals = [i for i in (ActivityInterval.from_dict(raw) for raw in raw_intervals) if i is not None]
        return cls(date=date_key, marks=marks, intervals=intervals)


@dataclass(slots=True)
class DailyGoalState:
    target_minutes: int
    completed: bool = False
    counted_in_streak: bool = False
    reward_granted: bool = False
    set_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "targetMinutes": self.target_minutes,
            "completed": self.completed,
            "countedInStreak": self.counted_in_streak,
            "rewardGranted": self.reward_granted,
            "setAt": self.set_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["DailyGoalState"]:
        if not isinstance(data, dict):
            return None
        return cls(
            target_minutes=max(0, _as_int(data.get("targetMinutes"))),
            completed=_as_bool(data.get("completed")),
            counted_in_streak=_as_bool(data.get("countedInStreak")),
            reward_granted=_as_bool(data.get("rewardGranted")),
            set_at=_as_str(data.get("setAt")) or "",
        )


class AchievementKey(str, Enum):
    FIRST_GOAL_COMPLETED = "firstGoalCompleted"
    FOCUS_EIGHT_HOURS = "focusEightHours"
    SLEEP_SEVEN_NIGHTS = "sleepSevenNights"


# Names written by older app versions.
LEGACY_ACHIEVEMENT_KEYS: dict[str, AchievementKey] = {
    "workDay": AchievementKey.FOCUS_EIGHT_HOURS,
    "healthySleep": AchievementKey.SLEEP_SEVEN_NIGHTS,
}


@dataclass(slots=True)
class AchievementFlag:
    unlocked: bool = False
    unlocked_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"unlocked": self.unlocked, "unlockedAt": self.unlocked_at}

    @classmethod
    def from_dict(cls, data: Any) -> "AchievementFlag":
        if not isinstance(data, dict):
            return cls()
        unlocked = _as_bool(data.get("unlocked"))
        return cls(unlocked=unlocked, unlocked_at=_as_str(data.get("unlockedAt")) if unlocked else None)


def default_achievements() -> dict[AchievementKey, AchievementFlag]:
    return {key: AchievementFlag() for key in AchievementKey}


@dataclass(slots=True)
class HomeState:
    current_streak: int = 0
    last_processed_date: Optional[str] = None
    currency: int = 0
    goals: dict[str, DailyGoalState] = field(default_factory=dict)
    achievements: dict[AchievementKey, AchievementFlag] = field(default_factory=default_achievements)

    def clone(self) -> "HomeState":
        return HomeState(
            current_streak=self.current_streak,
            last_processed_date=self.last_processed_date,
            currency=self.currency,
            goals={
                key: DailyGoalState(
                    target_minutes=g.target_minutes,
                    completed=g.completed,
                    counted_in_streak=g.counted_in_streak,
                    reward_granted=g.reward_granted,
                    set_at=g.set_at,
                )
                for key, g in self.goals.items()
            },
            achievements={
                key: AchievementFlag(unlocked=f.unlocked, unlocked_at=f.unlocked_at)
                for key, f in self.achievements.items()
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentStreak": self.current_streak,
            "lastProcessedDate": self.last_processed_date,
            "currency": self.currency,
            "goals": {key: g.to_dict() for key, g in self.goals.items()},
            "achievements": {key.value: f.to_dict() for key, f in self.achievements.items()},
        }

    @classmethod
    def from_dict(cls, data: Any) -> "HomeState":
        if not isinstance(data, dict):
            return cls()
        goals: dict[str, DailyGoalState] = {}
        raw_goals = data.get("goals")
        if isinstance(raw_goals, dict):
            for key, raw in raw_goals.items():
                goal = DailyGoalState.from_dict(raw)
                if goal is not None and isinstance(key, str):
                    goals[key] = goal
        achievements = default_achievements()
        raw_achievements = data.get("achievements")
        if isinstance(raw_achievements, dict):
            # Legacy names first so a current key present in the same blob wins.
            for legacy, key in LEGACY_ACHIEVEMENT_KEYS.items():
                if legacy in raw_achievements:
                    achievements[key] = AchievementFlag.from_dict(raw_achievements[legacy])
            for key in AchievementKey:
                if key.value in raw_achievements:
                    achievements[key] = AchievementFlag.from_dict(raw_achievements[key.value])
        return cls(
            current_streak=max(0, _as_int(data.get("currentStreak"))),
            last_processed_date=_as_str(data.get("lastProcessedDate")),
            currency=max(0, _as_int(data.get("currency"))),
            goals=goals,
            achievements=achievements,
        )


__all__ = [
    "ActivityInterval",
    "ActivityType",
    "AchievementFlag",
    "AchievementKey",
    "DailyGoalState",
    "DayActivity",
    "HomeState",
    "LAST_MINUTE",
    "LEGACY_ACHIEVEMENT_KEYS",
    "MINUTES_PER_DAY",
    "TYPED_ACTIVITIES",
    "TimeMark",
    "clamp_minute",
    "default_achievements",
]
