# Overview: Flask API routes for dashboard and period reports.

from flask import Blueprint, request, g

from ..decorators import require_auth, require_role
from ..services import reporting_service
from ..services.records import ROLE_ADMIN
from .common import STORE_ERRORS, error_response, respond


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
@require_role(ROLE_ADMIN)
def dashboard():
    return respond(reporting_service.dashboard_summary(g.store.snapshot))


@reports_bp.get("/categories")
@require_auth
@require_role(ROLE_ADMIN)
def categories():
    return respond({"items": reporting_service.categories(g.store.snapshot)})


@reports_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def period_report():
    """
    JSON report over the session snapshot.

    Query params:
    - period: daily | weekly | monthly | yearly (default daily)
    - category: product category or "all" (default all)
    """
    period = request.args.get("period", "daily")
    category = request.args.get("category", reporting_service.ALL_CATEGORIES)
    try:
        report = reporting_service.build_report(g.store.snapshot, period, category)
    except STORE_ERRORS as e:
        return error_response(e)
    return respond(report)
