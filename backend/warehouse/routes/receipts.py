# Overview: Flask API routes for stock receipts; parses input and returns JSON responses.

# backend/warehouse/routes/receipts.py
"""
Stock receipt routes.

Receipts are append-only: there is no update or delete endpoint.
Posting a receipt increases the product's quantity in the same backend
transaction.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth, require_role
from ..services.records import ROLE_ADMIN, ROLE_STAFF
from .common import STORE_ERRORS, error_response, respond


receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/stock-receipts")


@receipts_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_receipts():
    receipts = g.store.get_stock_receipts()
    return respond({"items": [r.to_dict() for r in receipts], "count": len(receipts)})


@receipts_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_receipt():
    """
    Record incoming stock.

    Request body:
    {
        "product_id": str,
        "supplier_name": str,
        "quantity": int (> 0),
        "supplier_id": str (optional),
        "date": "YYYY-MM-DD" (optional, defaults to today),
        "notes": str (optional)
    }

    Returns:
        201: Receipt created (body includes the updated product)
        400: Invalid request
        404: Product not found
        502: Backend failure
    """
    payload = request.get_json(silent=True) or {}
    try:
        receipt = g.store.add_stock_receipt(payload)
    except STORE_ERRORS as e:
        return error_response(e)

    product = g.store.get_product(receipt.product_id)
    return respond({
        "receipt": receipt.to_dict(),
        "product": product.to_dict() if product else None,
    }, 201)
