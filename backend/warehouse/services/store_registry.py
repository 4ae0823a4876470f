# Overview: One WarehouseStore per authenticated session.

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable

from .store import WarehouseStore
from ..time_utils import utcnow


logger = logging.getLogger(__name__)


class StoreRegistry:
    """
    Keeps each session's store alive between requests.

    A store is built and loaded (refresh_data) the first time its session is
    seen. It is dropped on logout, when its token stops resolving, or once it
    has gone unused for longer than `max_idle` (sessions idle that long are
    revoked anyway). Stores are never shared across sessions.
    """

    def __init__(self, factory: Callable[[], WarehouseStore], max_idle: timedelta | None = None):
        self._factory = factory
        self._max_idle = max_idle
        self._stores: dict[int, WarehouseStore] = {}
        self._last_used: dict[int, datetime] = {}
        self._lock = threading.Lock()

    def get(self, session_id: int) -> WarehouseStore | None:
        with self._lock:
            return self._stores.get(session_id)

    def get_or_create(self, session_id: int) -> WarehouseStore:
        now = utcnow()
        with self._lock:
            self._prune_locked(now)
            store = self._stores.get(session_id)
            if store is None:
                store = self._factory()
                self._stores[session_id] = store
            self._last_used[session_id] = now
        if not store.loaded:
            store.refresh_data()
        return store

    def discard(self, session_id: int) -> None:
        with self._lock:
            self._stores.pop(session_id, None)
            self._last_used.pop(session_id, None)

    def prune(self, now: datetime | None = None) -> int:
        """Drop stores unused for longer than max_idle; returns how many went."""
        with self._lock:
            return self._prune_locked(now or utcnow())

    def _prune_locked(self, now: datetime) -> int:
        if self._max_idle is None:
            return 0
        cutoff = now - self._max_idle
        stale = [sid for sid, used in self._last_used.items() if used < cutoff]
        for sid in stale:
            self._stores.pop(sid, None)
            self._last_used.pop(sid, None)
        if stale:
            logger.info("Dropped %d idle session store(s)", len(stale))
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._stores.clear()
            self._last_used.clear()

    def __len__(self) -> int:
        return len(self._stores)

    def __contains__(self, session_id: int) -> bool:
        return session_id in self._stores
