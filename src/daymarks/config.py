from __future__ import annotations

"""Application configuration read from ``DAYMARKS_*`` environment variables."""

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from .home_service import DEFAULT_POLL_INTERVAL_MS
from .sync import DEFAULT_DEBOUNCE_MS

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppConfig:
    data_dir: Path
    api_base: str = ""
    user_id: Optional[str] = None
    log_level: int = logging.INFO
    sync_debounce_ms: int = DEFAULT_DEBOUNCE_MS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS

    @property
    def db_path(self) -> Path:
        return self.data_dir / "daymarks.sqlite"

    @property
    def sync_enabled(self) -> bool:
        return bool(self.api_base)


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return max(0, int(raw))
    except ValueError:
        logger.warning("invalid %s=%r, using %d", name, raw, default)
        return default


def load_config(env: Mapping[str, str] | None = None) -> AppConfig:
    env = os.environ if env is None else env
    level_name = env.get("DAYMARKS_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(level_name)
    return AppConfig(
        data_dir=Path(env.get("DAYMARKS_DATA_DIR", "data")).expanduser(),
        api_base=env.get("DAYMARKS_API_BASE", "").strip().rstrip("/"),
        user_id=env.get("DAYMARKS_USER_ID") or None,
        log_level=level if isinstance(level, int) else logging.INFO,
        sync_debounce_ms=_int_env(env, "DAYMARKS_SYNC_DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS),
        poll_interval_ms=_int_env(env, "DAYMARKS_POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS),
    )


__all__ = ["AppConfig", "load_config"]
