import logging
from pathlib import Path

from daymarks.config import load_config
from daymarks.identity import DEFAULT_USER_ID, resolve_user_id, sanitize_user_id
from daymarks.models import HomeState
from daymarks.repositories import set_stat_sharing
from daymarks.sharing import DbSharingGate, visible_streak


def test_sanitize_user_id():
    assert sanitize_user_id("  user_1 ") == "user_1"
    assert sanitize_user_id("a-b") == "a-b"
    assert sanitize_user_id("") is None
    assert sanitize_user_id("../etc") is None
    assert sanitize_user_id("x" * 65) is None
    assert sanitize_user_id(42) is None


def test_resolve_user_id_order(db):
    assert resolve_user_id(db, {}) == DEFAULT_USER_ID
    assert resolve_user_id(db, {"DAYMARKS_USER_ID": "from_env"}) == "from_env"
    # remembered for the next session
    assert resolve_user_id(db, {}) == "from_env"
    assert resolve_user_id(db, {"DAYMARKS_USER_ID": "from_env"}, explicit="chosen") == "chosen"
    assert resolve_user_id(db, {"DAYMARKS_USER_ID": "bad id!"}) == "chosen"


def test_load_config_defaults():
    config = load_config({})
    assert config.data_dir == Path("data")
    assert config.db_path == Path("data") / "daymarks.sqlite"
    assert not config.sync_enabled
    assert config.user_id is None
    assert config.log_level == logging.INFO


def test_load_config_from_env(tmp_path):
    config = load_config(
        {
            "DAYMARKS_DATA_DIR": str(tmp_path),
            "DAYMARKS_API_BASE": "https://example.test/",
            "DAYMARKS_USER_ID": "u1",
            "DAYMARKS_LOG_LEVEL": "debug",
            "DAYMARKS_SYNC_DEBOUNCE_MS": "250",
            "DAYMARKS_POLL_INTERVAL_MS": "nope",
        }
    )
    assert config.data_dir == tmp_path
    assert config.api_base == "https://example.test"
    assert config.sync_enabled
    assert config.user_id == "u1"
    assert config.log_level == logging.DEBUG
    assert config.sync_debounce_ms == 250
    assert config.poll_interval_ms == 30_000


def test_visible_streak_requires_friend_and_opt_in(db):
    gate = DbSharingGate(db)
    state = HomeState(current_streak=5)
    assert visible_streak(state, "owner", "owner", gate) == 5
    assert visible_streak(state, "owner", "viewer", gate) is None
    set_stat_sharing(db, "owner", "viewer", is_friend=True, share_enabled=False)
    assert visible_streak(state, "owner", "viewer", gate) is None
    set_stat_sharing(db, "owner", "viewer", is_friend=True, share_enabled=True)
    assert visible_streak(state, "owner", "viewer", gate) == 5
