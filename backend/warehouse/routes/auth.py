# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/warehouse/routes/auth.py
"""
Authentication API routes

- Login resolves the identity to a profile; no profile means no login
- Users flagged must_set_password can only reach /me, /logout and
  /set-password until they choose a password
- Self-registration is disabled (admins invite users)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_role
from ..services.session_bridge import (
    AuthenticationError,
    PASSWORD_SETUP_PATH,
    PasswordSetupError,
    SessionBridge,
)
from .common import respond


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    return jsonify({
        "error": "Self-registration is disabled. Ask an administrator for an invite."
    }), 403


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Request body: {"email": str, "password": str}

    Returns user profile and token on success; the token goes in the
    Authorization header (Bearer) for protected routes. When the profile is
    flagged must_set_password the response carries the redirect to follow.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email") or data.get("username")
    password = data.get("password")

    if not all([email, password]):
        return jsonify({"error": "email and password required"}), 400

    bridge = SessionBridge()
    try:
        profile, token = bridge.login(
            email,
            password,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500

    body = {
        "user": profile.to_dict(),
        "token": token,
        "message": "Login successful",
    }
    if profile.must_set_password:
        body["redirect"] = PASSWORD_SETUP_PATH
    return jsonify(body), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_id = g.session_bridge.logout()
    if session_id is not None:
        current_app.extensions["warehouse_stores"].discard(session_id)
    g.store = None
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    body = {"user": user.to_dict()}
    if user.must_set_password:
        body["redirect"] = PASSWORD_SETUP_PATH
    return respond(body)


@auth_bp.post("/set-password")
@require_auth
@require_role(password_setup=True)
def set_password_route():
    """
    Password-setup flow. Request body: {"password": str, "confirm": str}
    """
    data = request.get_json(silent=True) or {}
    try:
        profile = g.session_bridge.set_password(data.get("password") or "", data.get("confirm") or "")
    except PasswordSetupError as e:
        return respond({"error": str(e)}, 400)
    return respond({"user": profile.to_dict(), "message": "Password updated"})


@auth_bp.post("/reset-password")
def request_reset_route():
    """
    Request a reset-by-email. Always 202 so account existence is not revealed.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    if not email:
        return jsonify({"error": "email required"}), 400

    token = SessionBridge().request_password_reset(email)
    if token is not None:
        # Delivery is the mail relay's job; keep the token out of the response.
        current_app.logger.info("Password reset token issued for %s", email)
    return jsonify({"message": "If that email is registered, a reset link has been sent."}), 202


@auth_bp.post("/reset-password/confirm")
def confirm_reset_route():
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    password = data.get("password")
    if not token or not password:
        return jsonify({"error": "token and password required"}), 400

    try:
        SessionBridge().confirm_password_reset(token, password)
    except PasswordSetupError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "Password updated"}), 200
