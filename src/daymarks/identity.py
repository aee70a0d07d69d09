from __future__ import annotations

"""User id resolution. The id only scopes which state blobs are read and written."""

import logging
import re
from typing import Mapping, Optional

from .database_manager import DatabaseManager
from .repositories import get_setting, set_setting

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "local"
USER_ID_KEY = "last_user_id"
USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def sanitize_user_id(raw: object) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    if not value or not USER_ID_PATTERN.match(value):
        return None
    return value


def resolve_user_id(db: DatabaseManager, env: Mapping[str, str], explicit: str | None = None) -> str:
    """Pick the active user: explicit id, then environment, then the last stored id.

    A valid explicit or environment id is remembered for the next session.
    """
    for source, candidate in (("explicit", explicit), ("env", env.get("DAYMARKS_USER_ID"))):
        if candidate is None:
            continue
        user_id = sanitize_user_id(candidate)
        if user_id is None:
            logger.warning("ignoring invalid %s user id", source)
            continue
        set_setting(db, USER_ID_KEY, user_id)
        return user_id
    return sanitize_user_id(get_setting(db, USER_ID_KEY)) or DEFAULT_USER_ID


__all__ = ["DEFAULT_USER_ID", "USER_ID_PATTERN", "resolve_user_id", "sanitize_user_id"]
