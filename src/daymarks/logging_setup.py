from __future__ import annotations

"""JSON log file for daymarks sessions.

Every record carries the active user id; engines attach structured fields as
``extra={"_json_<name>": value}``. Only handlers installed here are replaced
on reconfiguration, handlers owned by the host (pytest, an embedding app)
are left alone.
"""

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Optional

LOG_FILE = Path("logs") / "daymarks.log"
JSON_PREFIX = "_json_"
_OWNED = "_daymarks_handler"


class JsonFormatter(logging.Formatter):
    def __init__(self, user_id: Optional[str] = None):
        super().__init__()
        self.user_id = user_id

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "user": self.user_id,
            "msg": record.getMessage(),
        }
        payload.update(
            (key[len(JSON_PREFIX):], value) for key, value in vars(record).items() if key.startswith(JSON_PREFIX)
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(data_dir: Path, level: int = logging.INFO, user_id: Optional[str] = None) -> Path:
    logfile = data_dir / LOG_FILE
    logfile.parent.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger()
    for handler in [h for h in root.handlers if getattr(h, _OWNED, False)]:
        root.removeHandler(handler)
        handler.close()

    file_handler = RotatingFileHandler(logfile, maxBytes=512_000, backupCount=5, encoding="utf-8")
    file_handler.setFormatter(JsonFormatter(user_id))
    console = logging.StreamHandler()
    console.setLevel(logging.WARNING)
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    for handler in (file_handler, console):
        setattr(handler, _OWNED, True)
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger(__name__).info("logging configured", extra={"_json_file": str(logfile)})
    return logfile


__all__ = ["JsonFormatter", "configure_logging"]
