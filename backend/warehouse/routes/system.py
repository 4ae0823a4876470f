# backend/warehouse/routes/system.py
"""
System health, version and snapshot refresh endpoints.
"""

import sys
import time
from flask import Blueprint, current_app, g

from ..decorators import require_auth, require_role
from ..extensions import db
from ..models import Product, Profile, SessionToken
from ..services.store import RemoteOperationError
from warehouse.time_utils import utcnow
from .common import error_response, respond

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Backend connectivity: count the core tables."""
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        profile_count = db.session.query(Profile).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "profiles": profile_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_session_service_health() -> dict:
    start_time = time.time()
    try:
        now = utcnow()
        active_sessions = db.session.query(SessionToken).filter(
            SessionToken.is_revoked.is_(False),
            SessionToken.expires_at >= now,
        ).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "active_sessions": active_sessions,
                "loaded_stores": len(current_app.extensions["warehouse_stores"]),
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Session service health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Session service error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: All systems healthy
    - 503: One or more systems unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    session_health = check_session_service_health()

    all_checks = [database_health, session_health]
    unhealthy = any(check["status"] == "unhealthy" for check in all_checks)

    response = {
        "status": "unhealthy" if unhealthy else "healthy",
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "session_service": session_health,
        }
    }
    return response, 503 if unhealthy else 200


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }


@system_bp.post("/api/refresh")
@require_auth
@require_role()
def refresh():
    """Reload the whole session snapshot from the backend in one step."""
    try:
        snapshot = g.store.refresh_data()
    except RemoteOperationError as e:
        return error_response(e)
    return respond({"data": snapshot.to_dict()})
