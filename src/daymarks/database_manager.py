from __future__ import annotations

"""SQLite storage for per-user JSON blobs, with versioned migrations.

Each schema change is a function in ``MIGRATIONS``; applied versions are
recorded in ``schema_migrations`` so ``init_db`` can run on every start.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
import sqlite3
from typing import Callable, Iterable, Iterator

ISO_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"


@dataclass(slots=True)
class DBConfig:
    path: Path
    pragmas: tuple[tuple[str, str | int], ...] = (
        ("journal_mode", "WAL"),
        ("synchronous", "NORMAL"),
    )


class DatabaseManager:
    def __init__(self, config: DBConfig):
        self.config = config
        self._conn: sqlite3.Connection | None = None

    # --- Connection --------------------------------------------------------
    def connect(self) -> sqlite3.Connection:
        if self._conn is None:
            self.config.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.config.path)
            conn.row_factory = sqlite3.Row
            for key, value in self.config.pragmas:
                conn.execute(f"PRAGMA {key}={value}")
            self._conn = conn
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self.connect()
        with conn:
            yield conn

    # --- Migrations --------------------------------------------------------
    def init_db(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL DEFAULT ({ISO_NOW_SQL})
                )
                """
            )
        applied = {row["version"] for row in self.query_all("SELECT version FROM schema_migrations")}
        for version, migration in enumerate(MIGRATIONS, start=1):
            if version in applied:
                continue
            with self.transaction() as conn:
                migration(conn)
                conn.execute("INSERT INTO schema_migrations (version) VALUES (?)", (version,))

    # --- Queries -----------------------------------------------------------
    def execute(self, sql: str, params: Iterable | None = None) -> sqlite3.Cursor:
        with self.transaction() as conn:
            return conn.execute(sql, tuple(params or ()))

    def query_all(self, sql: str, params: Iterable | None = None) -> list[sqlite3.Row]:
        return self.connect().execute(sql, tuple(params or ())).fetchall()

    def query_one(self, sql: str, params: Iterable | None = None) -> sqlite3.Row | None:
        return self.connect().execute(sql, tuple(params or ())).fetchone()


# --- Migration definitions --------------------------------------------------

def migration_001_create_state_tables(conn: sqlite3.Connection) -> None:
    conn.executescript(
        f"""
        CREATE TABLE day_activities (
            user_id TEXT NOT NULL,
            date_key TEXT NOT NULL,
            payload TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT ({ISO_NOW_SQL}),
            PRIMARY KEY (user_id, date_key)
        );

        CREATE TABLE home_states (
            user_id TEXT PRIMARY KEY,
            payload TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT ({ISO_NOW_SQL})
        );

        CREATE TABLE settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )


def migration_002_add_sharing(conn: sqlite3.Connection) -> None:
    conn.executescript(
        f"""
        CREATE TABLE IF NOT EXISTS stat_sharing (
            owner_id TEXT NOT NULL,
            viewer_id TEXT NOT NULL,
            is_friend INTEGER NOT NULL DEFAULT 0,
            share_enabled INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT NOT NULL DEFAULT ({ISO_NOW_SQL}),
            PRIMARY KEY (owner_id, viewer_id)
        );
        """
    )


MIGRATIONS: list[Callable[[sqlite3.Connection], None]] = [
    migration_001_create_state_tables,
    migration_002_add_sharing,
]

__all__ = [
    "DBConfig",
    "DatabaseManager",
    "MIGRATIONS",
]
