# Overview: Domain state store; the in-session mirror of warehouse data and the
# only place cross-entity stock rules are enforced.

"""
Warehouse Domain State Store

WHY: Routes (and any other caller) never call the gateway directly. Every
mutation goes through this store, which:
- validates input and business rules BEFORE any backend write
- calls the gateway
- replaces the affected local records with the rows the backend returned
- swaps in a new immutable Snapshot and notifies subscribers once
- pushes a toast describing what happened

FAILURE CONTRACT:
- Validation / business-rule rejection: no backend call, snapshot unchanged,
  destructive notification, exception raised.
- Backend failure: snapshot unchanged, destructive notification carrying the
  backend message, RemoteOperationError raised. No retry.
- Unknown ids raise NotFoundError (never a silent no-op).

STOCK:
- Receipt: ledger insert and quantity increment are one backend transaction.
- Transfer: quantity is decremented exactly once, when the transfer is
  created as completed or first moves into completed. Completed is terminal.
- Status writes only apply while the backend row is still open. If another
  session completed the transfer first, the store adopts the backend rows
  and treats the request as a repeat of completed.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from functools import wraps
from typing import Callable

from .gateway import GatewayError, RemoteDataGateway, StaleRecordError
from .notifications import NotificationCenter
from .records import (
    DEFAULT_ROLE_PERMISSIONS,
    OPEN_TRANSFER_STATUSES,
    ROLE_STAFF,
    ROLES,
    TRANSFER_STATUS_COMPLETED,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUSES,
    Product,
    Snapshot,
    StockReceipt,
    StockTransfer,
    Supplier,
    UserProfile,
)
from ..validation import ValidationError, validate_collection


logger = logging.getLogger(__name__)

Listener = Callable[[Snapshot], None]


class StoreError(Exception):
    """Base class for store operation failures."""


class NotFoundError(StoreError):
    """The referenced id is not in the local snapshot."""


class InsufficientStockError(StoreError):
    """A transfer asked for more than the product has on hand."""


class TransferStatusError(StoreError):
    """The requested status change is not allowed."""


class RemoteOperationError(StoreError):
    """The backend rejected or failed the call."""

    def __init__(self, message: str, action: str):
        super().__init__(message)
        self.action = action


def _prepend(items: tuple, record) -> tuple:
    return (record,) + items


def _replace(items: tuple, record) -> tuple:
    return tuple(record if item.id == record.id else item for item in items)


def _without(items: tuple, record_id: str) -> tuple:
    return tuple(item for item in items if item.id != record_id)


def _find(items: tuple, record_id: str):
    return next((item for item in items if item.id == record_id), None)


def _operation(method):
    """
    Run a store operation under the store's lock with `loading` raised for
    its whole duration, including every backend call it makes.
    """
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            outer = self.loading
            self.loading = True
            try:
                return method(self, *args, **kwargs)
            finally:
                self.loading = outer

    return wrapper


class WarehouseStore:
    """Authoritative in-session snapshot plus the mutation API over it."""

    def __init__(
        self,
        gateway: RemoteDataGateway | None = None,
        *,
        notifications: NotificationCenter | None = None,
        current_user: UserProfile | None = None,
    ):
        self._gateway = gateway or RemoteDataGateway()
        self.notifications = notifications or NotificationCenter()
        self._snapshot = Snapshot()
        self._listeners: list[Listener] = []
        self._current_user = current_user
        # Requests from one session can overlap; mutations are serialised.
        self._lock = threading.RLock()
        self.loaded = False
        self.loading = False

    # ------------------------------------------------------------ state / observers

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def products(self) -> tuple:
        return self._snapshot.products

    @property
    def suppliers(self) -> tuple:
        return self._snapshot.suppliers

    @property
    def users(self) -> tuple:
        return self._snapshot.users

    @property
    def current_user(self) -> UserProfile | None:
        return self._current_user

    @current_user.setter
    def current_user(self, profile: UserProfile | None) -> None:
        self._current_user = profile

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener(snapshot)`; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, **changes) -> None:
        self._snapshot = replace(self._snapshot, **changes)
        for listener in list(self._listeners):
            listener(self._snapshot)

    # ------------------------------------------------------------ failure plumbing

    def _remote(self, action: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except StaleRecordError:
            # Caller resynchronises and decides.
            raise
        except GatewayError as exc:
            message = exc.message or f"Failed to {action}"
            logger.warning("Error %s: %s", action, message)
            self.notifications.error(message)
            raise RemoteOperationError(message, action) from exc

    def _validate(self, collection: str, data: dict, *, partial: bool) -> dict:
        try:
            return validate_collection(collection, data, partial=partial)
        except ValidationError as exc:
            self.notifications.error(str(exc), title="Invalid Input")
            raise

    def _reject(self, exc: StoreError, title: str, description: str):
        logger.info("%s: %s", title, exc)
        self.notifications.error(description, title=title)
        raise exc

    def _require(self, items: tuple, record_id: str, label: str):
        record = _find(items, record_id)
        if record is None:
            self._reject(
                NotFoundError(f"{label} {record_id} not found"),
                "Not Found",
                f"{label} not found.",
            )
        return record

    def _actor(self) -> str | None:
        return self._current_user.username if self._current_user else None

    # ------------------------------------------------------------ loading

    @_operation
    def refresh_data(self) -> Snapshot:
        """
        Re-fetch every collection and replace the snapshot in one step.

        If any fetch fails nothing is replaced.
        """
        rows = {}
        for collection in ("products", "suppliers", "stock_receipts", "stock_transfers", "profiles"):
            rows[collection] = self._remote(f"fetch {collection}", self._gateway.fetch_all, collection)

        users = tuple(UserProfile.from_row(r) for r in rows["profiles"])
        if self._current_user is not None:
            self._current_user = _find(users, self._current_user.id) or self._current_user

        self.loaded = True
        self._commit(
            products=tuple(Product.from_row(r) for r in rows["products"]),
            suppliers=tuple(Supplier.from_row(r) for r in rows["suppliers"]),
            stock_receipts=tuple(StockReceipt.from_row(r) for r in rows["stock_receipts"]),
            stock_transfers=tuple(StockTransfer.from_row(r) for r in rows["stock_transfers"]),
            users=users,
        )
        return self._snapshot

    # ------------------------------------------------------------ products

    def get_product(self, product_id: str) -> Product | None:
        return _find(self._snapshot.products, product_id)

    def get_low_stock_products(self) -> list[Product]:
        return [p for p in self._snapshot.products if p.quantity <= p.stock_alert]

    @_operation
    def add_product(self, data: dict) -> Product:
        values = self._validate("products", data, partial=False)
        row = self._remote("add product", self._gateway.insert, "products", values)
        product = Product.from_row(row)
        self._commit(products=_prepend(self._snapshot.products, product))
        self.notifications.notify("Product Added", f"{product.name} has been added to inventory.")
        return product

    @_operation
    def update_product(self, product_id: str, changes: dict) -> Product:
        self._require(self._snapshot.products, product_id, "Product")
        values = self._validate("products", changes, partial=True)
        row = self._remote("update product", self._gateway.update, "products", product_id, values)
        product = Product.from_row(row)
        self._commit(products=_replace(self._snapshot.products, product))
        self.notifications.notify("Product Updated", "Product information has been updated.")
        return product

    @_operation
    def delete_product(self, product_id: str) -> Product:
        # Ledger rows keep their copied product_name; nothing cascades.
        product = self._require(self._snapshot.products, product_id, "Product")
        self._remote("delete product", self._gateway.delete, "products", product_id)
        self._commit(products=_without(self._snapshot.products, product_id))
        self.notifications.notify("Product Deleted", f"{product.name} has been removed from inventory.")
        return product

    # ------------------------------------------------------------ receipts

    def get_stock_receipts(self) -> list[StockReceipt]:
        return list(self._snapshot.stock_receipts)

    @_operation
    def add_stock_receipt(self, data: dict) -> StockReceipt:
        values = self._validate("stock_receipts", data, partial=False)
        product = self._require(self._snapshot.products, values["product_id"], "Product")

        values["product_name"] = values.get("product_name") or product.name
        values.setdefault("received_by", self._actor())
        quantity = values["quantity"]

        row, product_row = self._remote(
            "add stock receipt",
            self._gateway.insert_with_stock_adjustment,
            "stock_receipts", values, product.id, quantity,
        )
        receipt = StockReceipt.from_row(row)
        self._commit(
            stock_receipts=_prepend(self._snapshot.stock_receipts, receipt),
            products=_replace(self._snapshot.products, Product.from_row(product_row)),
        )
        self.notifications.notify(
            "Stock Received",
            f"{quantity} {receipt.product_name} received from {receipt.supplier_name}.",
        )
        return receipt

    # ------------------------------------------------------------ transfers

    def get_stock_transfers(self) -> list[StockTransfer]:
        return list(self._snapshot.stock_transfers)

    def _check_status(self, status) -> str:
        if status not in TRANSFER_STATUSES:
            self.notifications.error(f"Unknown transfer status: {status}", title="Invalid Input")
            raise ValidationError(
                f"status must be one of: {', '.join(TRANSFER_STATUSES)}"
            )
        return status

    def _check_stock(self, product_id: str, quantity: int) -> Product:
        product = self.get_product(product_id)
        if product is None:
            self._reject(
                NotFoundError(f"Product {product_id} not found"),
                "Transfer Failed",
                "Insufficient stock for this transfer.",
            )
        if product.quantity < quantity:
            self._reject(
                InsufficientStockError(
                    f"Insufficient stock for product {product_id}. "
                    f"On-hand: {product.quantity}, requested: {quantity}"
                ),
                "Transfer Failed",
                "Insufficient stock for this transfer.",
            )
        return product

    def _completed_transfer(self, transfer: StockTransfer, status: str) -> StockTransfer:
        """Completed is terminal: repeating it is a no-op, anything else is refused."""
        if status == TRANSFER_STATUS_COMPLETED:
            self.notifications.notify("Transfer Updated", "Transfer status updated to completed.")
            return transfer
        self._reject(
            TransferStatusError(f"Cannot move transfer {transfer.id} out of completed"),
            "Transfer Update Failed",
            "Completed transfers cannot change status.",
        )

    def _resync_transfer(self, transfer: StockTransfer) -> StockTransfer:
        """Adopt the backend's current transfer and product rows after a stale write."""
        row = self._remote("fetch transfer", self._gateway.fetch_one, "stock_transfers", transfer.id)
        if row is None:
            self._commit(stock_transfers=_without(self._snapshot.stock_transfers, transfer.id))
            self._reject(
                NotFoundError(f"Transfer {transfer.id} not found"),
                "Not Found",
                "Transfer not found.",
            )
        fresh = StockTransfer.from_row(row)

        products = self._snapshot.products
        product_row = self._remote("fetch product", self._gateway.fetch_one, "products", fresh.product_id)
        if product_row is not None:
            products = _replace(products, Product.from_row(product_row))

        self._commit(
            stock_transfers=_replace(self._snapshot.stock_transfers, fresh),
            products=products,
        )
        return fresh

    @_operation
    def add_stock_transfer(self, data: dict) -> StockTransfer:
        values = self._validate("stock_transfers", data, partial=False)
        status = self._check_status(values.get("status") or TRANSFER_STATUS_PENDING)
        quantity = values["quantity"]

        product = self._check_stock(values["product_id"], quantity)

        values["status"] = status
        values["product_name"] = values.get("product_name") or product.name
        values.setdefault("transferred_by", self._actor())

        if status == TRANSFER_STATUS_COMPLETED:
            row, product_row = self._remote(
                "add stock transfer",
                self._gateway.insert_with_stock_adjustment,
                "stock_transfers", values, product.id, -quantity,
            )
            products = _replace(self._snapshot.products, Product.from_row(product_row))
        else:
            row = self._remote("add stock transfer", self._gateway.insert, "stock_transfers", values)
            products = self._snapshot.products

        transfer = StockTransfer.from_row(row)
        self._commit(
            stock_transfers=_prepend(self._snapshot.stock_transfers, transfer),
            products=products,
        )
        self.notifications.notify(
            "Transfer Created",
            f"Transfer of {quantity} {transfer.product_name} to {transfer.receiver_name} created.",
        )
        return transfer

    @_operation
    def update_transfer_status(self, transfer_id: str, status: str) -> StockTransfer:
        status = self._check_status(status)
        transfer = self._require(self._snapshot.stock_transfers, transfer_id, "Transfer")

        if transfer.is_completed:
            return self._completed_transfer(transfer, status)

        # Every write is conditional on the row still being open in the
        # backend, so a completion made by another session is never repeated.
        expect = {"status": OPEN_TRANSFER_STATUSES}
        try:
            if status == TRANSFER_STATUS_COMPLETED:
                product = self._check_stock(transfer.product_id, transfer.quantity)
                row, product_row = self._remote(
                    "update transfer",
                    self._gateway.update_with_stock_adjustment,
                    "stock_transfers", transfer_id, {"status": status}, product.id, -transfer.quantity,
                    expect=expect,
                )
                products = _replace(self._snapshot.products, Product.from_row(product_row))
            else:
                row = self._remote(
                    "update transfer", self._gateway.update, "stock_transfers", transfer_id, {"status": status},
                    expect=expect,
                )
                products = self._snapshot.products
        except StaleRecordError as exc:
            logger.info("Transfer %s changed remotely: %s", transfer_id, exc)
            return self._completed_transfer(self._resync_transfer(transfer), status)

        updated = StockTransfer.from_row(row)
        self._commit(
            stock_transfers=_replace(self._snapshot.stock_transfers, updated),
            products=products,
        )
        self.notifications.notify("Transfer Updated", f"Transfer status updated to {status}.")
        return updated

    # ------------------------------------------------------------ users

    def get_user(self, profile_id: str) -> UserProfile | None:
        return _find(self._snapshot.users, profile_id)

    def _check_role(self, values: dict) -> None:
        if "role" in values and values["role"] not in ROLES:
            self.notifications.error(f"Unknown role: {values['role']}", title="Invalid Input")
            raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    @_operation
    def add_user(self, data: dict) -> UserProfile:
        values = self._validate("profiles", data, partial=False)
        values["role"] = values.get("role") or ROLE_STAFF
        self._check_role(values)
        if values.get("permissions") is None:
            values["permissions"] = list(DEFAULT_ROLE_PERMISSIONS[values["role"]])

        row = self._remote("add user", self._gateway.insert, "profiles", values)
        profile = UserProfile.from_row(row)
        self._commit(users=_prepend(self._snapshot.users, profile))
        self.notifications.notify("User Added", f"User {profile.username} has been created.")
        return profile

    @_operation
    def update_user(self, profile_id: str, changes: dict) -> UserProfile:
        self._require(self._snapshot.users, profile_id, "User")
        values = self._validate("profiles", changes, partial=True)
        self._check_role(values)

        row = self._remote("update user", self._gateway.update, "profiles", profile_id, values)
        profile = UserProfile.from_row(row)
        if self._current_user is not None and self._current_user.id == profile.id:
            self._current_user = profile
        self._commit(users=_replace(self._snapshot.users, profile))
        self.notifications.notify("User Updated", "User information has been updated.")
        return profile

    @_operation
    def delete_user(self, profile_id: str) -> UserProfile:
        # Only the profile row goes; the identity account needs admin privilege to remove.
        profile = self._require(self._snapshot.users, profile_id, "User")
        self._remote("delete user", self._gateway.delete, "profiles", profile_id)
        self._commit(users=_without(self._snapshot.users, profile_id))
        self.notifications.notify("User Deleted", f"User {profile.username} has been removed.")
        return profile

    # ------------------------------------------------------------ suppliers

    def get_supplier(self, supplier_id: str) -> Supplier | None:
        return _find(self._snapshot.suppliers, supplier_id)

    @_operation
    def add_supplier(self, data: dict) -> Supplier:
        values = self._validate("suppliers", data, partial=False)
        row = self._remote("add supplier", self._gateway.insert, "suppliers", values)
        supplier = Supplier.from_row(row)
        self._commit(suppliers=_prepend(self._snapshot.suppliers, supplier))
        self.notifications.notify("Supplier Added", f"{supplier.name} has been added to suppliers.")
        return supplier

    @_operation
    def update_supplier(self, supplier_id: str, changes: dict) -> Supplier:
        self._require(self._snapshot.suppliers, supplier_id, "Supplier")
        values = self._validate("suppliers", changes, partial=True)
        row = self._remote("update supplier", self._gateway.update, "suppliers", supplier_id, values)
        supplier = Supplier.from_row(row)
        self._commit(suppliers=_replace(self._snapshot.suppliers, supplier))
        self.notifications.notify("Supplier Updated", "Supplier information has been updated.")
        return supplier

    @_operation
    def delete_supplier(self, supplier_id: str) -> Supplier:
        supplier = self._require(self._snapshot.suppliers, supplier_id, "Supplier")
        self._remote("delete supplier", self._gateway.delete, "suppliers", supplier_id)
        # Mirrors the backend's ON DELETE SET NULL on products.supplier_id
        products = tuple(
            p.evolve(supplier_id=None) if p.supplier_id == supplier_id else p
            for p in self._snapshot.products
        )
        self._commit(suppliers=_without(self._snapshot.suppliers, supplier_id), products=products)
        self.notifications.notify("Supplier Deleted", f"{supplier.name} has been removed.")
        return supplier
