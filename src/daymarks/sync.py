from __future__ import annotations

"""Remote state sync over HTTP.

``StateSyncClient`` is a thin httpx wrapper around
``{api_base}/api/user/{user_id}/state`` (GET to load, POST to push the whole
``{activityData, homeState}`` snapshot). ``SyncService`` debounces local
mutations, keeps at most one request in flight and reports failures through
``SyncStatus`` instead of raising.

Requests run on a worker thread; the result comes back to the Qt thread
through a queued signal. Tests pass a synchronous executor and an
``httpx.MockTransport``.
"""

from dataclasses import dataclass, replace
from datetime import datetime
import logging
import threading
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx
from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from .dates import Clock, to_iso
from .identity import DEFAULT_USER_ID
from .state_store import StateStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 1_000

Executor = Callable[[Callable[[], None]], None]


class SyncError(Exception):
    pass


@dataclass(slots=True, frozen=True)
class SyncStatus:
    is_syncing: bool = False
    last_synced_at: Optional[str] = None
    error: Optional[str] = None


@dataclass(slots=True)
class SyncClientConfig:
    api_base: str
    user_id: str
    timeout: float = 10.0


class StateSyncClient:
    def __init__(self, config: SyncClientConfig, transport: httpx.BaseTransport | None = None):
        self._config = config
        self._client = httpx.Client(timeout=config.timeout, transport=transport)

    def close(self) -> None:  # pragma: no cover simple
        self._client.close()

    @property
    def endpoint(self) -> str:
        base = self._config.api_base.rstrip("/")
        return f"{base}/api/user/{quote(self._config.user_id, safe='')}/state"

    def fetch(self) -> dict[str, Any]:
        return self._request("GET")

    def push(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", payload)

    def _request(self, method: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            resp = self._client.request(method, self.endpoint, json=payload)
        except httpx.HTTPError as e:
            raise SyncError(f"{method} failed: {e}") from e
        if resp.status_code >= 400:
            raise SyncError(f"HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            data = resp.json()
        except ValueError as e:
            raise SyncError(f"invalid JSON in response: {e}") from e
        if not isinstance(data, dict):
            raise SyncError("unexpected response body")
        return data


def run_in_thread(work: Callable[[], None]) -> None:
    threading.Thread(target=work, daemon=True).start()


class SyncService(QObject):
    status_changed = pyqtSignal(object)  # SyncStatus
    _request_done = pyqtSignal(object, object)  # response payload | None, error | None

    def __init__(
        self,
        store: StateStore,
        client: StateSyncClient | None,
        user_id: str,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        executor: Executor = run_in_thread,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__()
        self._store = store
        self._client = client
        self._enabled = client is not None and user_id != DEFAULT_USER_ID
        self._executor = executor
        self._clock: Clock = clock or datetime.now
        self._status = SyncStatus()
        self._in_flight = False
        self._pending = False
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(debounce_ms)
        self._timer.timeout.connect(self.perform_sync)
        self._request_done.connect(self._on_request_done)
        self._store.mutated.connect(self.schedule_sync)

    # --- Properties -----------------------------------------------------
    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def scheduled(self) -> bool:
        return self._timer.isActive()

    # --- Public API -----------------------------------------------------
    def schedule_sync(self) -> None:
        if not self._enabled:
            return
        if self._in_flight:
            # The in-flight response predates this change and must not be applied.
            self._pending = True
        # Restarting the single-shot timer coalesces bursts of writes.
        self._timer.start()

    def force_sync_now(self) -> None:
        self._timer.stop()
        self.perform_sync()

    def perform_sync(self) -> None:
        if not self._enabled:
            return
        payload = self._store.snapshot()
        self._dispatch(lambda client: client.push(payload))

    def load_remote(self) -> None:
        """Fetch the remote state once at session start; local cache stays on failure."""
        if not self._enabled:
            return
        self._dispatch(lambda client: client.fetch())

    # --- Internal -------------------------------------------------------
    def _dispatch(self, call: Callable[[StateSyncClient], dict[str, Any]]) -> None:
        if self._in_flight:
            self._pending = True
            return
        client = self._client
        if client is None:
            return
        self._in_flight = True
        self._set_status(is_syncing=True, error=None)

        def work() -> None:
            try:
                result = call(client)
            except SyncError as e:
                self._request_done.emit(None, str(e))
                return
            self._request_done.emit(result, None)

        self._executor(work)

    def _on_request_done(self, payload: Optional[dict[str, Any]], error: Optional[str]) -> None:
        self._in_flight = False
        if error is not None:
            logger.warning("sync failed: %s", error)
            self._set_status(is_syncing=False, error=error)
        elif payload is not None:
            if self._pending:
                # Local edits happened meanwhile; they win over the older echo.
                logger.info("skipping remote payload, local changes pending")
            elif "activityData" in payload or "homeState" in payload:
                self._store.apply_remote(payload)
            updated_at = payload.get("updatedAt")
            self._set_status(
                is_syncing=False,
                last_synced_at=updated_at if isinstance(updated_at, str) else to_iso(self._clock()),
                error=None,
            )
            logger.info("sync completed")
        if self._pending:
            self._pending = False
            self.schedule_sync()

    def _set_status(self, **changes: Any) -> None:
        self._status = replace(self._status, **changes)
        self.status_changed.emit(self._status)


__all__ = [
    "DEFAULT_DEBOUNCE_MS",
    "StateSyncClient",
    "SyncClientConfig",
    "SyncError",
    "SyncService",
    "SyncStatus",
    "run_in_thread",
]
