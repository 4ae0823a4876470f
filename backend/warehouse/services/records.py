# Overview: Immutable in-memory records mirrored from backend rows.

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from typing import Optional

from ..time_utils import parse_iso_date, parse_iso_datetime, to_utc_z


ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"
ROLES = (ROLE_ADMIN, ROLE_STAFF)

DEFAULT_ROLE_PERMISSIONS = {
    ROLE_ADMIN: ["all"],
    ROLE_STAFF: ["stock_receive", "stock_transfer"],
}

TRANSFER_STATUS_PENDING = "pending"
TRANSFER_STATUS_IN_TRANSIT = "in_transit"
TRANSFER_STATUS_COMPLETED = "completed"
TRANSFER_STATUS_CANCELLED = "cancelled"
TRANSFER_STATUSES = (
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_IN_TRANSIT,
    TRANSFER_STATUS_COMPLETED,
    TRANSFER_STATUS_CANCELLED,
)

# Statuses a transfer can still leave; completed is terminal.
OPEN_TRANSFER_STATUSES = (
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_IN_TRANSIT,
    TRANSFER_STATUS_CANCELLED,
)

_TIMESTAMPS = {"created_at", "updated_at", "last_login"}
_DATES = {"date"}


class _Record:
    """Row <-> record conversion shared by every mirrored collection."""

    @classmethod
    def from_row(cls, row: dict):
        kwargs = {}
        for f in fields(cls):
            if f.name not in row:
                continue
            value = row[f.name]
            if f.name in _TIMESTAMPS:
                value = parse_iso_datetime(value)
            elif f.name in _DATES:
                value = parse_iso_date(value)
            elif f.name == "permissions":
                value = tuple(value or ())
            kwargs[f.name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict:
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = to_utc_z(value)
            elif isinstance(value, date):
                value = value.isoformat()
            elif isinstance(value, tuple):
                value = list(value)
            out[f.name] = value
        return out

    def evolve(self, **changes):
        return replace(self, **changes)


@dataclass(frozen=True)
class Product(_Record):
    id: str
    name: str
    sku: Optional[str] = None
    category: Optional[str] = None
    quantity: int = 0
    stock_alert: int = 0
    unit: str = "pieces"
    supplier_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.stock_alert


@dataclass(frozen=True)
class Supplier(_Record):
    id: str
    name: str
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class StockReceipt(_Record):
    id: str
    supplier_name: str
    product_id: str
    product_name: str
    quantity: int
    date: Optional[date] = None
    supplier_id: Optional[str] = None
    notes: Optional[str] = None
    received_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class StockTransfer(_Record):
    id: str
    receiver_name: str
    product_id: str
    product_name: str
    quantity: int
    date: Optional[date] = None
    status: str = TRANSFER_STATUS_PENDING
    notes: Optional[str] = None
    transferred_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == TRANSFER_STATUS_COMPLETED


@dataclass(frozen=True)
class UserProfile(_Record):
    id: str
    user_id: str
    username: str
    email: str
    role: str = ROLE_STAFF
    permissions: tuple = ()
    must_set_password: bool = False
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Snapshot:
    """Everything the store mirrors, swapped as a whole on each change."""
    products: tuple = field(default_factory=tuple)
    suppliers: tuple = field(default_factory=tuple)
    stock_receipts: tuple = field(default_factory=tuple)
    stock_transfers: tuple = field(default_factory=tuple)
    users: tuple = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "products": [p.to_dict() for p in self.products],
            "suppliers": [s.to_dict() for s in self.suppliers],
            "stock_receipts": [r.to_dict() for r in self.stock_receipts],
            "stock_transfers": [t.to_dict() for t in self.stock_transfers],
            "users": [u.to_dict() for u in self.users],
        }
