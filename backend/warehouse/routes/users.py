# Overview: Flask API routes for user administration; parses input and returns JSON responses.

# backend/warehouse/routes/users.py
"""
User management routes (admin only).

Users are invited: the identity is created with a temporary password and
the profile is flagged must_set_password. Deleting a user removes the
profile only; the identity account stays (removing it needs provider admin
rights) but can no longer log in because it has no profile.
"""
from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_role
from ..services.identity_service import IdentityError, PasswordValidationError
from ..services.records import ROLE_ADMIN, ROLE_STAFF
from .common import STORE_ERRORS, error_response, respond


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users():
    users = g.store.users
    return respond({"items": [u.to_dict() for u in users], "count": len(users)})


@users_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def invite_user_route():
    """
    Invite a user.

    Request body:
    {
        "email": str,
        "username": str,
        "role": "admin" | "staff" (optional, default "staff"),
        "permissions": [str] (optional, defaults from role)
    }

    Returns:
        201: {"user": profile, "temporary_password": str}
        400: Invalid request
        409: Email already registered
    """
    payload = request.get_json(silent=True) or {}
    email = payload.get("email")
    username = payload.get("username")
    if not email or not username:
        return respond({"error": "email and username are required"}, 400)

    try:
        profile, temporary_password = g.session_bridge.invite_user(
            email=email,
            username=username,
            role=payload.get("role") or ROLE_STAFF,
            permissions=payload.get("permissions"),
        )
    except IdentityError as e:
        return respond({"error": str(e)}, 409)
    except PasswordValidationError as e:
        current_app.logger.exception("Generated temporary password rejected")
        return respond({"error": str(e)}, 500)
    except STORE_ERRORS as e:
        return error_response(e)

    return respond({"user": profile.to_dict(), "temporary_password": temporary_password}, 201)


@users_bp.patch("/<profile_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(profile_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        profile = g.store.update_user(profile_id, payload)
    except STORE_ERRORS as e:
        return error_response(e)
    return respond(profile.to_dict())


@users_bp.delete("/<profile_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_user_route(profile_id: str):
    if g.current_user.id == profile_id:
        return respond({"error": "You cannot delete your own account"}, 400)
    try:
        profile = g.store.delete_user(profile_id)
    except STORE_ERRORS as e:
        return error_response(e)
    return respond({"deleted": profile.id})
