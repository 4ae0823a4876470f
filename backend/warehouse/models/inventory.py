from __future__ import annotations

import uuid

from ..extensions import db
from warehouse.time_utils import to_utc_z, utcnow, today


def new_id() -> str:
    return str(uuid.uuid4())


class Product(db.Model):
    """
    Product master data with its on-hand quantity.

    QUANTITY: Stored directly on the product row. Receipts add to it and
    completed transfers subtract from it. The CHECK constraint is the
    backend's last line of defence; the store validates before writing.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint("stock_alert >= 0", name="ck_products_stock_alert_non_negative"),
        db.Index("ix_products_category", "category"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True, index=True)
    category = db.Column(db.String(128), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    stock_alert = db.Column(db.Integer, nullable=False, default=10)
    unit = db.Column(db.String(32), nullable=False, default="pieces")

    supplier_id = db.Column(db.String(36), db.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "category": self.category,
            "quantity": self.quantity,
            "stock_alert": self.stock_alert,
            "unit": self.unit,
            "supplier_id": self.supplier_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockReceipt(db.Model):
    """
    Append-only record of incoming stock.

    HISTORY: product_name and supplier_name are copied at write time so a
    later rename never alters past entries. product_id is a plain reference
    (no FK) so deleting a product leaves its history intact.
    """
    __tablename__ = "stock_receipts"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_receipts_quantity_positive"),
        db.Index("ix_stock_receipts_date", "date"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    supplier_name = db.Column(db.String(255), nullable=False)
    supplier_id = db.Column(db.String(36), db.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)
    product_id = db.Column(db.String(36), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=False, default=today)
    notes = db.Column(db.Text, nullable=True)
    received_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_name": self.supplier_name,
            "supplier_id": self.supplier_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "date": self.date.isoformat() if self.date else None,
            "notes": self.notes,
            "received_by": self.received_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockTransfer(db.Model):
    """
    Outgoing stock to a receiver.

    LIFECYCLE: pending -> in_transit -> completed, or cancelled.
    Product quantity is reduced only when the status becomes completed.
    """
    __tablename__ = "stock_transfers"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_transfers_quantity_positive"),
        db.CheckConstraint(
            "status IN ('pending', 'in_transit', 'completed', 'cancelled')",
            name="ck_stock_transfers_status",
        ),
        db.Index("ix_stock_transfers_date", "date"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    receiver_name = db.Column(db.String(255), nullable=False)
    product_id = db.Column(db.String(36), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=False, default=today)
    status = db.Column(db.String(16), nullable=False, default="pending")
    notes = db.Column(db.Text, nullable=True)
    transferred_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receiver_name": self.receiver_name,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "date": self.date.isoformat() if self.date else None,
            "status": self.status,
            "notes": self.notes,
            "transferred_by": self.transferred_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
