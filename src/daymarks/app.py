from __future__ import annotations

import logging
import os
import signal
import sys
from dataclasses import dataclass
from typing import Optional

from PyQt6.QtCore import QCoreApplication

from . import __version__
from .config import AppConfig, load_config
from .database_manager import DBConfig, DatabaseManager
from .focus_timer import IDLE, FocusTimerService
from .home_service import HomeService
from .identity import resolve_user_id
from .logging_setup import configure_logging
from .repositories import SqlitePersistence
from .sharing import DbSharingGate
from .state_store import StateStore
from .sync import StateSyncClient, SyncClientConfig, SyncService

APP_NAME = "daymarks"


@dataclass(slots=True)
class AppState:
    config: AppConfig
    user_id: str
    db: DatabaseManager
    store: StateStore
    home_service: HomeService
    focus_timer: FocusTimerService
    sync_service: SyncService
    sharing_gate: DbSharingGate


def get_app_state(config: AppConfig | None = None) -> AppState:
    config = config or load_config()
    config.data_dir.mkdir(parents=True, exist_ok=True)
    db = DatabaseManager(DBConfig(path=config.db_path))
    db.init_db()
    user_id = resolve_user_id(db, os.environ, explicit=config.user_id)
    # Logging first, everything below may log.
    configure_logging(config.data_dir, config.log_level, user_id=user_id)

    store = StateStore(SqlitePersistence(db, user_id))
    store.load()
    client = None
    if config.sync_enabled:
        client = StateSyncClient(SyncClientConfig(api_base=config.api_base, user_id=user_id))
    sync_service = SyncService(store, client, user_id, debounce_ms=config.sync_debounce_ms)
    home_service = HomeService(store, poll_interval_ms=config.poll_interval_ms)
    focus_timer = FocusTimerService(store)
    logging.getLogger(__name__).info(
        "app_state_created",
        extra={"_json_version": __version__, "_json_sync": sync_service.enabled},
    )
    return AppState(
        config=config,
        user_id=user_id,
        db=db,
        store=store,
        home_service=home_service,
        focus_timer=focus_timer,
        sync_service=sync_service,
        sharing_gate=DbSharingGate(db),
    )


def run(argv: Optional[list[str]] = None) -> int:
    if argv is None:
        argv = sys.argv
    app = QCoreApplication(argv)
    app.setApplicationName(APP_NAME)
    state = get_app_state()
    state.sync_service.load_remote()
    state.home_service.start()

    def _shutdown(*_args) -> None:  # pragma: no cover signal handler
        state.home_service.stop()
        if state.focus_timer.state != IDLE:
            state.focus_timer.stop()
        state.sync_service.force_sync_now()
        app.quit()

    signal.signal(signal.SIGINT, _shutdown)
    try:
        return app.exec()
    finally:
        state.db.close()


def main() -> None:  # pragma: no cover
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main()
