# backend/warehouse/routes/transfers.py
"""
Stock transfer API routes.

Quantity leaves the product only when a transfer is completed, either at
creation or through a later status change. Completed is final.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth, require_role
from ..services.records import ROLE_ADMIN, ROLE_STAFF
from .common import STORE_ERRORS, error_response, respond


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/stock-transfers")


def _with_product(transfer):
    product = g.store.get_product(transfer.product_id)
    return {
        "transfer": transfer.to_dict(),
        "product": product.to_dict() if product else None,
    }


@transfers_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_transfers():
    """
    List transfers.

    Query params:
    - status: pending | in_transit | completed | cancelled (optional)
    """
    status = request.args.get("status")
    transfers = g.store.get_stock_transfers()
    if status:
        transfers = [t for t in transfers if t.status == status]
    return respond({"items": [t.to_dict() for t in transfers], "count": len(transfers)})


@transfers_bp.route("", methods=["POST"])
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_transfer():
    """
    Create a transfer.

    Request body:
    {
        "product_id": str,
        "receiver_name": str,
        "quantity": int (> 0),
        "status": str (optional, default "pending"),
        "date": "YYYY-MM-DD" (optional),
        "notes": str (optional)
    }

    Returns:
        201: Transfer created
        400: Invalid request
        404: Product not found
        409: Insufficient stock (nothing written)
    """
    payload = request.get_json(silent=True) or {}
    try:
        transfer = g.store.add_stock_transfer(payload)
    except STORE_ERRORS as e:
        return error_response(e)
    return respond(_with_product(transfer), 201)


@transfers_bp.route("/<transfer_id>/status", methods=["PATCH", "POST"])
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_transfer_status(transfer_id: str):
    """
    Change a transfer's status.

    Request body: {"status": "pending" | "in_transit" | "completed" | "cancelled"}

    Returns:
        200: Updated (re-completing a completed transfer is a no-op)
        400: Unknown status
        404: Transfer not found
        409: Insufficient stock, or transfer already completed
    """
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        return respond({"error": "Missing required field: status"}, 400)

    try:
        transfer = g.store.update_transfer_status(transfer_id, status)
    except STORE_ERRORS as e:
        return error_response(e)
    return respond(_with_product(transfer))
