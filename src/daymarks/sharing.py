from __future__ import annotations

"""Read-only sharing predicate guarding the streak shown to other users."""

from typing import Optional, Protocol

from .database_manager import DatabaseManager
from .models import HomeState
from .repositories import get_stat_sharing


class SharingGate(Protocol):
    def can_view(self, owner_id: str, viewer_id: str) -> bool: ...


class DbSharingGate:
    """Viewer may see the owner's stats when they are friends and the owner opted in."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    def can_view(self, owner_id: str, viewer_id: str) -> bool:
        is_friend, share_enabled = get_stat_sharing(self._db, owner_id, viewer_id)
        return is_friend and share_enabled


def visible_streak(state: HomeState, owner_id: str, viewer_id: str, gate: SharingGate) -> Optional[int]:
    if owner_id == viewer_id or gate.can_view(owner_id, viewer_id):
        return state.current_streak
    return None


__all__ = ["DbSharingGate", "SharingGate", "visible_streak"]
