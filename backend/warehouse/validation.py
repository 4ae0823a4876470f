from __future__ import annotations
import re
from datetime import date, datetime
from warehouse.time_utils import parse_iso_date, parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models import Product, Supplier, StockReceipt, StockTransfer, Profile


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what callers are allowed to set (security boundary)
    - required_on_create: fields required when creating a row
    """
    writable_fields: frozenset
    required_on_create: frozenset = frozenset()


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "sku", "category", "quantity", "stock_alert", "unit", "supplier_id"}),
    required_on_create=frozenset({"name"}),
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "contact_person", "email", "phone", "address"}),
    required_on_create=frozenset({"name"}),
)

RECEIPT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "supplier_name", "supplier_id", "product_id", "product_name",
        "quantity", "date", "notes", "received_by",
    }),
    required_on_create=frozenset({"supplier_name", "product_id", "quantity"}),
)

TRANSFER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "receiver_name", "product_id", "product_name", "quantity",
        "date", "status", "notes", "transferred_by",
    }),
    required_on_create=frozenset({"receiver_name", "product_id", "quantity"}),
)

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"user_id", "username", "email", "role", "permissions", "must_set_password"}),
    required_on_create=frozenset({"user_id", "username", "email"}),
)

POLICIES = {
    "products": (Product, PRODUCT_POLICY),
    "suppliers": (Supplier, SUPPLIER_POLICY),
    "stock_receipts": (StockReceipt, RECEIPT_POLICY),
    "stock_transfers": (StockTransfer, TRANSFER_POLICY),
    "profiles": (Profile, PROFILE_POLICY),
}


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not re.fullmatch(r"-?\d+", stripped):
                raise ValidationError(f"{col.key} must be an integer")
            return int(stripped)
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        try:
            dt = parse_iso_datetime(str(value))
        except ValueError:
            raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
        return dt

    # Ledger dates ("YYYY-MM-DD")
    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        try:
            return parse_iso_date(str(value))
        except ValueError:
            raise ValidationError(f"{col.key} must be an ISO-8601 date")

    if isinstance(coltype, JSON):
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{col.key} must be a list of strings")
        return list(value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming data against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def validate_collection(collection: str, payload: dict, *, partial: bool) -> dict:
    model, policy = POLICIES[collection]
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=partial)
    if collection == "products":
        enforce_rules_product(patch)
    elif collection in ("stock_receipts", "stock_transfers"):
        enforce_rules_movement(patch)
    return patch


def enforce_rules_product(patch: dict) -> None:
    for key in ("quantity", "stock_alert"):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")


def enforce_rules_movement(patch: dict) -> None:
    if "quantity" in patch and (patch["quantity"] is None or patch["quantity"] <= 0):
        raise ValidationError("quantity must be > 0")
