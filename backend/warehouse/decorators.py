# Overview: Request decorators for API routes: authentication and the role gate.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service
from .services.session_bridge import AccessOutcome, PASSWORD_SETUP_PATH, SessionBridge
from .services.store import RemoteOperationError


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _not_authenticated():
    return jsonify({"error": "Authentication required", "code": AccessOutcome.NOT_AUTHENTICATED.value}), 401


def require_auth(f):
    """
    Require a valid bearer session.

    Sets the following Flask g attributes:
    - g.session_bridge: SessionBridge with current_user resolved
    - g.current_user: the UserProfile
    - g.store: this session's WarehouseStore (loaded on first use)

    Returns 401 when the token is missing, invalid or expired, or when the
    identity has no profile.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return _not_authenticated()

        bridge = SessionBridge()
        profile = bridge.restore(token)
        if profile is None:
            # The session no longer resolves; drop its store with it.
            ended = session_service.find_session_id(token)
            if ended is not None:
                current_app.extensions["warehouse_stores"].discard(ended)
            return _not_authenticated()

        try:
            store = current_app.extensions["warehouse_stores"].get_or_create(bridge.session_id)
        except RemoteOperationError as e:
            return jsonify({"error": f"Could not load warehouse data: {e}"}), 502
        bridge.attach_store(store)

        g.session_bridge = bridge
        g.current_user = profile
        g.store = store

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles, password_setup: bool = False):
    """
    Role gate. Must be applied after @require_auth.

    - 401 when no user is resolved
    - 403 "Password setup required" (with redirect) when the user must set
      a password first, regardless of role
    - 403 "Access denied" when the user's role is not in `roles`
      (no roles given means any recognised role)
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            bridge = getattr(g, "session_bridge", None)
            if bridge is None:
                return _not_authenticated()

            outcome = bridge.check_access(roles or None, password_setup=password_setup)

            if outcome is AccessOutcome.NOT_AUTHENTICATED:
                return _not_authenticated()

            if outcome is AccessOutcome.PASSWORD_SETUP_REQUIRED:
                return jsonify({
                    "error": "Password setup required",
                    "code": outcome.value,
                    "redirect": PASSWORD_SETUP_PATH,
                }), 403

            if outcome is AccessOutcome.ACCESS_DENIED:
                return jsonify({
                    "error": "Access denied",
                    "code": outcome.value,
                    "required_roles": list(roles),
                    "role": bridge.current_user.role,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
