# Overview: Flask API routes for products; parses input and returns JSON responses.

# backend/warehouse/routes/products.py
"""
Product routes.

SECURITY: All routes require authentication.
- Reads are open to admin and staff (stock forms need the product list)
- Writes are admin only
"""
from flask import Blueprint, request, g

from ..decorators import require_auth, require_role
from ..services.records import ROLE_ADMIN, ROLE_STAFF
from .common import STORE_ERRORS, error_response, respond


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_products():
    """
    List products from the session snapshot.

    Query params:
    - category: str (optional) - exact category match
    """
    category = request.args.get("category")
    products = g.store.products
    if category and category != "all":
        products = [p for p in products if p.category == category]
    return respond({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.get("/low-stock")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_low_stock():
    """Products whose quantity is at or below their stock alert."""
    products = g.store.get_low_stock_products()
    return respond({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.get("/<product_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def get_product(product_id: str):
    product = g.store.get_product(product_id)
    if product is None:
        return respond({"error": "Product not found"}, 404)
    return respond(product.to_dict())


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = g.store.add_product(payload)
    except STORE_ERRORS as e:
        return error_response(e)
    return respond(product.to_dict(), 201)


@products_bp.patch("/<product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_product_route(product_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        product = g.store.update_product(product_id, payload)
    except STORE_ERRORS as e:
        return error_response(e)
    return respond(product.to_dict())


@products_bp.delete("/<product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product_route(product_id: str):
    try:
        product = g.store.delete_product(product_id)
    except STORE_ERRORS as e:
        return error_response(e)
    return respond({"deleted": product.id})
