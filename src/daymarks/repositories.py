from __future__ import annotations

"""Whole-object persistence of day timelines, home state and settings.

Blobs are replaced as a whole on every write; there are no field-level
updates. ``SqlitePersistence`` binds the functions to one user and is the
provider the state store talks to.
"""

import json
import logging
import sqlite3
from typing import Any, Protocol

from .database_manager import DatabaseManager
from .models import DayActivity, HomeState

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    pass


class PersistenceProvider(Protocol):
    def load_day_activity(self, date_key: str) -> DayActivity: ...

    def save_day_activity(self, date_key: str, day: DayActivity) -> None: ...

    def load_all_day_activities(self) -> dict[str, DayActivity]: ...

    def load_home_state(self) -> HomeState: ...

    def save_home_state(self, state: HomeState) -> None: ...


def _decode(payload: str, what: str) -> Any:
    try:
        return json.loads(payload)
    except ValueError:
        logger.warning("discarding unreadable %s blob", what)
        return None


# --- Day activities ---------------------------------------------------------

def load_day_activity(db: DatabaseManager, user_id: str, date_key: str) -> DayActivity:
    row = db.query_one(
        "SELECT payload FROM day_activities WHERE user_id=? AND date_key=?",
        (user_id, date_key),
    )
    if not row:
        return DayActivity(date=date_key)
    return DayActivity.from_dict(_decode(row["payload"], "day activity"), date_key)


def list_day_activities(db: DatabaseManager, user_id: str) -> dict[str, DayActivity]:
    rows = db.query_all(
        "SELECT date_key, payload FROM day_activities WHERE user_id=?",
        (user_id,),
    )
    return {r["date_key"]: DayActivity.from_dict(_decode(r["payload"], "day activity"), r["date_key"]) for r in rows}


def save_day_activity(db: DatabaseManager, user_id: str, date_key: str, day: DayActivity) -> None:
    payload = json.dumps(day.to_dict(), ensure_ascii=False)
    db.execute(
        """
        INSERT INTO day_activities (user_id, date_key, payload) VALUES (?,?,?)
        ON CONFLICT(user_id, date_key) DO UPDATE SET
            payload=excluded.payload,
            updated_at=strftime('%Y-%m-%dT%H:%M:%fZ','now')
        """,
        (user_id, date_key, payload),
    )


# --- Home state -------------------------------------------------------------

def load_home_state(db: DatabaseManager, user_id: str) -> HomeState:
    row = db.query_one("SELECT payload FROM home_states WHERE user_id=?", (user_id,))
    if not row:
        return HomeState()
    return HomeState.from_dict(_decode(row["payload"], "home state"))


def save_home_state(db: DatabaseManager, user_id: str, state: HomeState) -> None:
    payload = json.dumps(state.to_dict(), ensure_ascii=False)
    db.execute(
        """
        INSERT INTO home_states (user_id, payload) VALUES (?,?)
        ON CONFLICT(user_id) DO UPDATE SET
            payload=excluded.payload,
            updated_at=strftime('%Y-%m-%dT%H:%M:%fZ','now')
        """,
        (user_id, payload),
    )


# --- Settings ---------------------------------------------------------------

def get_setting(db: DatabaseManager, key: str) -> str | None:
    row = db.query_one("SELECT value FROM settings WHERE key=?", (key,))
    return row["value"] if row else None


def set_setting(db: DatabaseManager, key: str, value: str) -> None:
    db.execute(
        "INSERT INTO settings(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
        (key, value),
    )


# --- Stat sharing -----------------------------------------------------------

def set_stat_sharing(db: DatabaseManager, owner_id: str, viewer_id: str, *, is_friend: bool, share_enabled: bool) -> None:
    db.execute(
        """
        INSERT INTO stat_sharing (owner_id, viewer_id, is_friend, share_enabled) VALUES (?,?,?,?)
        ON CONFLICT(owner_id, viewer_id) DO UPDATE SET
            is_friend=excluded.is_friend,
            share_enabled=excluded.share_enabled,
            updated_at=strftime('%Y-%m-%dT%H:%M:%fZ','now')
        """,
        (owner_id, viewer_id, int(is_friend), int(share_enabled)),
    )


def get_stat_sharing(db: DatabaseManager, owner_id: str, viewer_id: str) -> tuple[bool, bool]:
    row = db.query_one(
        "SELECT is_friend, share_enabled FROM stat_sharing WHERE owner_id=? AND viewer_id=?",
        (owner_id, viewer_id),
    )
    if not row:
        return False, False
    return bool(row["is_friend"]), bool(row["share_enabled"])


# --- Provider ---------------------------------------------------------------

class SqlitePersistence:
    """``PersistenceProvider`` scoped to a single user id."""

    def __init__(self, db: DatabaseManager, user_id: str):
        self._db = db
        self.user_id = user_id

    def load_day_activity(self, date_key: str) -> DayActivity:
        try:
            return load_day_activity(self._db, self.user_id, date_key)
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot load {date_key}: {e}") from e

    def save_day_activity(self, date_key: str, day: DayActivity) -> None:
        try:
            save_day_activity(self._db, self.user_id, date_key, day)
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot save {date_key}: {e}") from e

    def load_all_day_activities(self) -> dict[str, DayActivity]:
        try:
            return list_day_activities(self._db, self.user_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot load activity data: {e}") from e

    def load_home_state(self) -> HomeState:
        try:
            return load_home_state(self._db, self.user_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot load home state: {e}") from e

    def save_home_state(self, state: HomeState) -> None:
        try:
            save_home_state(self._db, self.user_id, state)
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot save home state: {e}") from e


__all__ = [
    "PersistenceError",
    "PersistenceProvider",
    "SqlitePersistence",
    "get_setting",
    "get_stat_sharing",
    "list_day_activities",
    "load_day_activity",
    "load_home_state",
    "save_day_activity",
    "save_home_state",
    "set_setting",
    "set_stat_sharing",
]
