# Overview: Flask API routes for suppliers; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..decorators import require_auth, require_role
from ..services.records import ROLE_ADMIN, ROLE_STAFF
from .common import STORE_ERRORS, error_response, respond


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_suppliers():
    suppliers = g.store.suppliers
    return respond({"items": [s.to_dict() for s in suppliers], "count": len(suppliers)})


@suppliers_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        supplier = g.store.add_supplier(payload)
    except STORE_ERRORS as e:
        return error_response(e)
    return respond(supplier.to_dict(), 201)


@suppliers_bp.patch("/<supplier_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_supplier_route(supplier_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        supplier = g.store.update_supplier(supplier_id, payload)
    except STORE_ERRORS as e:
        return error_response(e)
    return respond(supplier.to_dict())


@suppliers_bp.delete("/<supplier_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_supplier_route(supplier_id: str):
    try:
        supplier = g.store.delete_supplier(supplier_id)
    except STORE_ERRORS as e:
        return error_response(e)
    return respond({"deleted": supplier.id})
