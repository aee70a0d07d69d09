from datetime import datetime, timedelta
import itertools
import os
from pathlib import Path
import sys
import pytest

# Ensure src/ is on sys.path for direct test invocation without an editable install
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from daymarks.database_manager import DBConfig, DatabaseManager
from daymarks.repositories import SqlitePersistence
from daymarks.state_store import StateStore


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def advance(self, seconds: int = 0, minutes: int = 0, days: int = 0) -> None:
        self.now += timedelta(seconds=seconds, minutes=minutes, days=days)

    def __call__(self) -> datetime:
        return self.now


def counter_ids(prefix: str = "id"):
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


@pytest.fixture()
def db(tmp_path: Path):
    config = DBConfig(path=tmp_path / "test.sqlite")
    manager = DatabaseManager(config)
    manager.init_db()
    yield manager
    manager.close()


@pytest.fixture()
def store(db, qtbot):
    s = StateStore(SqlitePersistence(db, "user_1"), id_factory=counter_ids("m"))
    s.load()
    return s
