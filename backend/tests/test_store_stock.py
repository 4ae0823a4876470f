"""
Stock movement tests: receipts and transfers.

Verifies:
- A receipt adds its quantity in the same backend transaction as the ledger row
- A transfer removes quantity exactly once, when it becomes completed
- Insufficient stock rejects the transfer with nothing written
- Completed transfers cannot move to another status
"""

import pytest

from warehouse.models import Product as ProductRow, StockReceipt as ReceiptRow, StockTransfer as TransferRow
from warehouse.services.store import (
    InsufficientStockError,
    NotFoundError,
    RemoteOperationError,
    TransferStatusError,
    WarehouseStore,
)
from warehouse.services.gateway import RemoteDataGateway
from warehouse.services.records import UserProfile
from warehouse.validation import ValidationError


def _receipt(product, quantity, **extra):
    payload = {"product_id": product.id, "supplier_name": "Steel Works Inc", "quantity": quantity}
    payload.update(extra)
    return payload


def _transfer(product, quantity, **extra):
    payload = {"product_id": product.id, "receiver_name": "Site B", "quantity": quantity}
    payload.update(extra)
    return payload


# =============================================================================
# RECEIPTS
# =============================================================================


class TestStockReceipts:

    def test_receipt_clears_low_stock(self, store, db_session, steel_pipes):
        assert steel_pipes.id in {p.id for p in store.get_low_stock_products()}

        receipt = store.add_stock_receipt(_receipt(steel_pipes, 10))

        assert store.get_product(steel_pipes.id).quantity == 35
        assert db_session.get(ProductRow, steel_pipes.id).quantity == 35
        assert steel_pipes.id not in {p.id for p in store.get_low_stock_products()}
        assert store.get_stock_receipts()[0].id == receipt.id

    def test_receipt_toast_and_defaults(self, store, steel_pipes):
        store.current_user = UserProfile(id="p1", user_id="u1", username="jane", email="jane@warehouse.test")

        receipt = store.add_stock_receipt(_receipt(steel_pipes, 10))

        assert receipt.product_name == "Steel Pipes (2m)"
        assert receipt.received_by == "jane"
        assert receipt.date is not None
        note = store.notifications.last
        assert note.title == "Stock Received"
        assert note.description == "10 Steel Pipes (2m) received from Steel Works Inc."

    @pytest.mark.parametrize("quantity", [0, -4])
    def test_non_positive_receipt_rejected(self, store, db_session, steel_pipes, quantity):
        with pytest.raises(ValidationError):
            store.add_stock_receipt(_receipt(steel_pipes, quantity))

        assert db_session.query(ReceiptRow).count() == 0
        assert store.get_product(steel_pipes.id).quantity == 25

    def test_receipt_for_unknown_product(self, store, db_session):
        with pytest.raises(NotFoundError):
            store.add_stock_receipt({"product_id": "missing", "supplier_name": "X", "quantity": 1})
        assert db_session.query(ReceiptRow).count() == 0

    def test_product_removed_remotely_rolls_back_receipt(self, store, db_session, steel_pipes):
        # Local snapshot still has the product; the backend no longer does.
        db_session.delete(db_session.get(ProductRow, steel_pipes.id))
        db_session.commit()

        with pytest.raises(RemoteOperationError):
            store.add_stock_receipt(_receipt(steel_pipes, 10))

        assert db_session.query(ReceiptRow).count() == 0
        assert store.get_stock_receipts() == []
        assert store.notifications.last.is_error


# =============================================================================
# TRANSFERS
# =============================================================================


class TestStockTransfers:

    def test_insufficient_stock_rejected_without_record(self, store, db_session, steel_pipes):
        with pytest.raises(InsufficientStockError):
            store.add_stock_transfer(_transfer(steel_pipes, 40))

        assert store.get_stock_transfers() == []
        assert db_session.query(TransferRow).count() == 0
        assert store.get_product(steel_pipes.id).quantity == 25
        note = store.notifications.last
        assert note.title == "Transfer Failed"
        assert note.description == "Insufficient stock for this transfer."

    def test_pending_transfer_leaves_quantity(self, store, steel_pipes):
        transfer = store.add_stock_transfer(_transfer(steel_pipes, 10))

        assert transfer.status == "pending"
        assert store.get_product(steel_pipes.id).quantity == 25
        assert store.notifications.last.description == "Transfer of 10 Steel Pipes (2m) to Site B created."

    def test_completed_on_creation_decrements(self, store, db_session, steel_pipes):
        store.add_stock_transfer(_transfer(steel_pipes, 10, status="completed"))

        assert store.get_product(steel_pipes.id).quantity == 15
        assert db_session.get(ProductRow, steel_pipes.id).quantity == 15

    def test_exact_quantity_allowed(self, store, steel_pipes):
        store.add_stock_transfer(_transfer(steel_pipes, 25, status="completed"))
        assert store.get_product(steel_pipes.id).quantity == 0

    def test_completing_decrements_once(self, store, db_session, steel_pipes):
        transfer = store.add_stock_transfer(_transfer(steel_pipes, 10))

        store.update_transfer_status(transfer.id, "in_transit")
        assert store.get_product(steel_pipes.id).quantity == 25

        completed = store.update_transfer_status(transfer.id, "completed")
        assert completed.status == "completed"
        assert store.get_product(steel_pipes.id).quantity == 15

        again = store.update_transfer_status(transfer.id, "completed")
        assert again.status == "completed"
        assert store.get_product(steel_pipes.id).quantity == 15
        assert db_session.get(ProductRow, steel_pipes.id).quantity == 15
        assert store.notifications.last.title == "Transfer Updated"

    def test_completed_is_terminal(self, store, steel_pipes):
        transfer = store.add_stock_transfer(_transfer(steel_pipes, 10, status="completed"))

        with pytest.raises(TransferStatusError):
            store.update_transfer_status(transfer.id, "cancelled")

        assert store.get_stock_transfers()[0].status == "completed"
        assert store.get_product(steel_pipes.id).quantity == 15

    def test_completion_rechecks_stock(self, store, steel_pipes):
        first = store.add_stock_transfer(_transfer(steel_pipes, 20))
        second = store.add_stock_transfer(_transfer(steel_pipes, 20))

        store.update_transfer_status(first.id, "completed")
        with pytest.raises(InsufficientStockError):
            store.update_transfer_status(second.id, "completed")

        assert store.get_product(steel_pipes.id).quantity == 5
        statuses = {t.id: t.status for t in store.get_stock_transfers()}
        assert statuses[second.id] == "pending"

    def test_backend_constraint_blocks_negative_stock(self, store, db_session, steel_pipes):
        # Another session drained the product; the local mirror is stale.
        db_session.get(ProductRow, steel_pipes.id).quantity = 5
        db_session.commit()

        with pytest.raises(RemoteOperationError):
            store.add_stock_transfer(_transfer(steel_pipes, 10, status="completed"))

        assert db_session.query(TransferRow).count() == 0
        assert db_session.get(ProductRow, steel_pipes.id).quantity == 5
        assert store.get_stock_transfers() == []

    def test_unknown_status_rejected(self, store, steel_pipes):
        transfer = store.add_stock_transfer(_transfer(steel_pipes, 1))
        with pytest.raises(ValidationError):
            store.update_transfer_status(transfer.id, "lost")

    def test_unknown_transfer_raises(self, store):
        with pytest.raises(NotFoundError):
            store.update_transfer_status("missing", "completed")


# =============================================================================
# TWO SESSIONS OVER ONE DATABASE
# =============================================================================


class TestConcurrentSessions:
    """Each session has its own store; the backend row decides what applies."""

    @pytest.fixture
    def other_store(self, store):
        other = WarehouseStore(RemoteDataGateway())
        other.refresh_data()
        return other

    def test_completion_from_second_session_is_a_repeat(self, store, other_store, db_session, steel_pipes):
        transfer = store.add_stock_transfer(_transfer(steel_pipes, 10))
        other_store.refresh_data()

        store.update_transfer_status(transfer.id, "completed")
        again = other_store.update_transfer_status(transfer.id, "completed")

        assert again.status == "completed"
        assert other_store.notifications.last.title == "Transfer Updated"
        assert other_store.get_product(steel_pipes.id).quantity == 15
        assert db_session.get(ProductRow, steel_pipes.id).quantity == 15

        fresh = WarehouseStore(RemoteDataGateway())
        fresh.refresh_data()
        assert fresh.get_product(steel_pipes.id).quantity == 15

    def test_second_session_cannot_reopen_completed(self, store, other_store, db_session, steel_pipes):
        transfer = store.add_stock_transfer(_transfer(steel_pipes, 10))
        other_store.refresh_data()
        store.update_transfer_status(transfer.id, "completed")

        with pytest.raises(TransferStatusError):
            other_store.update_transfer_status(transfer.id, "cancelled")

        assert db_session.get(TransferRow, transfer.id).status == "completed"
        assert other_store.get_stock_transfers()[0].status == "completed"
        assert db_session.get(ProductRow, steel_pipes.id).quantity == 15

    def test_open_status_changes_still_apply(self, store, other_store, steel_pipes):
        transfer = store.add_stock_transfer(_transfer(steel_pipes, 10))
        other_store.refresh_data()
        store.update_transfer_status(transfer.id, "in_transit")

        updated = other_store.update_transfer_status(transfer.id, "cancelled")

        assert updated.status == "cancelled"
        assert other_store.get_product(steel_pipes.id).quantity == 25
