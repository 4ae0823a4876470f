# Overview: Remote data gateway; the only code that talks to the backend tables.

"""
Remote Data Gateway

WHY: Callers above this layer never touch SQLAlchemy. Every call returns
plain row dicts (the wire shape of the backend) or raises GatewayError with
a human-readable message. No business rules live here: stock checks belong
to the store. The backend's own constraints (CHECK quantity >= 0) still
apply and surface as GatewayError.

ATOMICITY: insert_with_stock_adjustment / update_with_stock_adjustment write
a ledger row and move products.quantity in ONE transaction, so a receipt or
a completed transfer can never be recorded without its quantity change.

CONCURRENCY: update / update_with_stock_adjustment accept `expect`, a
compare-and-set on the row's current column values. Sessions each keep their
own mirror, so a write based on a stale mirror fails with StaleRecordError
instead of applying twice.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Product, Supplier, StockReceipt, StockTransfer, Profile
from ..time_utils import utcnow


logger = logging.getLogger(__name__)

COLLECTIONS = {
    "products": Product,
    "suppliers": Supplier,
    "stock_receipts": StockReceipt,
    "stock_transfers": StockTransfer,
    "profiles": Profile,
}


class GatewayError(Exception):
    """Raised when a backend operation fails."""

    def __init__(self, message: str, *, action: str | None = None, not_found: bool = False):
        super().__init__(message)
        self.message = message
        self.action = action
        self.not_found = not_found


class StaleRecordError(GatewayError):
    """A conditional write matched no row: the row moved on since it was read."""


def _error_message(exc: SQLAlchemyError) -> str:
    if isinstance(exc, IntegrityError):
        return f"Constraint violation: {exc.orig}"
    return str(getattr(exc, "orig", None) or exc)


class RemoteDataGateway:
    """Thin per-collection fetch/insert/update/delete over the SQLAlchemy session."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def _model(self, collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise KeyError(f"Unknown collection: {collection}") from None

    def _fail(self, exc: SQLAlchemyError, action: str):
        self.session.rollback()
        message = _error_message(exc)
        logger.warning("Backend call failed (%s): %s", action, message)
        raise GatewayError(message, action=action) from exc

    def _get_row(self, model, row_id: str, action: str):
        row = self.session.get(model, row_id)
        if row is None:
            raise GatewayError(
                f"No {model.__tablename__} row with id {row_id}",
                action=action,
                not_found=True,
            )
        return row

    # ------------------------------------------------------------------ reads

    def fetch_all(self, collection: str) -> list[dict]:
        model = self._model(collection)
        action = f"fetch {collection}"
        try:
            rows = (
                self.session.query(model)
                .order_by(model.created_at.desc())
                .all()
            )
            return [row.to_dict() for row in rows]
        except SQLAlchemyError as exc:
            self._fail(exc, action)

    def fetch_one(self, collection: str, row_id: str) -> dict | None:
        model = self._model(collection)
        try:
            row = self.session.get(model, row_id)
            return row.to_dict() if row else None
        except SQLAlchemyError as exc:
            self._fail(exc, f"fetch {collection}")

    def fetch_profile_by_user_id(self, user_id: str) -> dict | None:
        try:
            row = self.session.query(Profile).filter_by(user_id=user_id).first()
            return row.to_dict() if row else None
        except SQLAlchemyError as exc:
            self._fail(exc, "fetch profile")

    # ---------------------------------------------------------------- writes

    def insert(self, collection: str, values: dict) -> dict:
        model = self._model(collection)
        action = f"insert {collection}"
        try:
            row = model(**values)
            self.session.add(row)
            self.session.commit()
            return row.to_dict()
        except SQLAlchemyError as exc:
            self._fail(exc, action)

    def update(self, collection: str, row_id: str, values: dict, *, expect: dict | None = None) -> dict:
        """
        Update one row. `expect` maps column -> allowed current values; when
        given, the write only applies if the row still holds one of them.
        """
        model = self._model(collection)
        action = f"update {collection}"
        try:
            if expect:
                self._guarded_update(model, row_id, values, expect, action)
                self.session.commit()
                return self._reload(model, row_id).to_dict()
            row = self._get_row(model, row_id, action)
            for key, value in values.items():
                setattr(row, key, value)
            row.updated_at = utcnow()
            self.session.commit()
            return row.to_dict()
        except GatewayError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self._fail(exc, action)

    def delete(self, collection: str, row_id: str) -> None:
        model = self._model(collection)
        action = f"delete {collection}"
        try:
            row = self._get_row(model, row_id, action)
            self.session.delete(row)
            self.session.commit()
        except GatewayError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self._fail(exc, action)

    # ------------------------------------------------- ledger + stock writes

    def _guarded_update(self, model, row_id: str, values: dict, expect: dict | None, action: str) -> None:
        """UPDATE ... WHERE id = :id AND <col> IN (:allowed); zero rows matched is an error."""
        query = self.session.query(model).filter(model.id == row_id)
        for key, allowed in (expect or {}).items():
            query = query.filter(getattr(model, key).in_(tuple(allowed)))
        changes = {getattr(model, key): value for key, value in values.items()}
        changes[model.updated_at] = utcnow()
        if query.update(changes, synchronize_session=False):
            self.session.flush()
            return
        exists = self.session.query(model.id).filter(model.id == row_id).first()
        if exists is None:
            raise GatewayError(
                f"No {model.__tablename__} row with id {row_id}",
                action=action,
                not_found=True,
            )
        raise StaleRecordError(
            f"{model.__tablename__} row {row_id} was changed by another session",
            action=action,
        )

    def _reload(self, model, row_id: str):
        row = self.session.get(model, row_id)
        self.session.refresh(row)
        return row

    def _adjust_quantity(self, product_id: str, delta: int, action: str) -> Product:
        updated = (
            self.session.query(Product)
            .filter(Product.id == product_id)
            .update(
                {Product.quantity: Product.quantity + delta, Product.updated_at: utcnow()},
                synchronize_session=False,
            )
        )
        if not updated:
            raise GatewayError(f"No products row with id {product_id}", action=action, not_found=True)
        self.session.flush()
        product = self.session.get(Product, product_id)
        self.session.refresh(product)
        return product

    def insert_with_stock_adjustment(
        self,
        collection: str,
        values: dict,
        product_id: str,
        delta: int,
    ) -> tuple[dict, dict]:
        """Insert a ledger row and add `delta` to the product's quantity atomically."""
        model = self._model(collection)
        action = f"insert {collection}"
        try:
            row = model(**values)
            self.session.add(row)
            self.session.flush()
            product = self._adjust_quantity(product_id, delta, action)
            self.session.commit()
            return row.to_dict(), product.to_dict()
        except GatewayError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self._fail(exc, action)

    def update_with_stock_adjustment(
        self,
        collection: str,
        row_id: str,
        values: dict,
        product_id: str,
        delta: int,
        *,
        expect: dict | None = None,
    ) -> tuple[dict, dict]:
        """
        Update a ledger row and add `delta` to the product's quantity atomically.

        With `expect`, the row update is conditional on its current values and
        the quantity only moves if that update matched. StaleRecordError is
        raised, and nothing is written, when another session got there first.
        """
        model = self._model(collection)
        action = f"update {collection}"
        try:
            self._guarded_update(model, row_id, values, expect, action)
            product = self._adjust_quantity(product_id, delta, action)
            self.session.commit()
            return self._reload(model, row_id).to_dict(), product.to_dict()
        except GatewayError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self._fail(exc, action)
