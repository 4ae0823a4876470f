"""
Store bookkeeping tests.

Verifies:
- `loading` stays raised across every backend call an operation makes
- A store's lock is held while its backend writes run
"""

import threading

import pytest

from warehouse.services.gateway import RemoteDataGateway
from warehouse.services.store import WarehouseStore
from warehouse.validation import ValidationError


class RecordingGateway(RemoteDataGateway):
    """Notes the store's state at each backend call."""

    def __init__(self):
        super().__init__()
        self.store = None
        self.loading_seen = []
        self.lock_free_seen = []

    def _lock_is_free(self) -> bool:
        result = {}

        def try_lock():
            result["free"] = self.store._lock.acquire(blocking=False)
            if result["free"]:
                self.store._lock.release()

        worker = threading.Thread(target=try_lock)
        worker.start()
        worker.join()
        return result["free"]

    def fetch_all(self, collection):
        self.loading_seen.append(self.store.loading)
        return super().fetch_all(collection)

    def insert(self, collection, values):
        self.loading_seen.append(self.store.loading)
        self.lock_free_seen.append(self._lock_is_free())
        return super().insert(collection, values)


def _store():
    gateway = RecordingGateway()
    store = WarehouseStore(gateway)
    gateway.store = store
    return store, gateway


class TestLoadingFlag:

    def test_refresh_keeps_loading_raised(self, db_session):
        store, gateway = _store()
        assert store.loading is False

        store.refresh_data()

        assert gateway.loading_seen == [True] * 5
        assert store.loading is False
        assert store.loaded is True

    def test_loading_cleared_after_failure(self, db_session):
        store, gateway = _store()
        store.refresh_data()

        with pytest.raises(ValidationError):
            store.add_product({"name": "Broken", "quantity": -1})

        assert store.loading is False


class TestStoreLock:

    def test_lock_held_during_backend_write(self, db_session):
        store, gateway = _store()
        store.refresh_data()

        store.add_supplier({"name": "TechParts Ltd"})

        assert gateway.lock_free_seen == [False]
        assert gateway._lock_is_free() is True
