# Overview: Shared response helpers for the warehouse blueprints.

from flask import g, jsonify

from ..services.reporting_service import ReportError
from ..services.store import (
    InsufficientStockError,
    NotFoundError,
    RemoteOperationError,
    TransferStatusError,
)
from ..validation import ValidationError


def _drain_notifications() -> list[dict]:
    store = getattr(g, "store", None)
    if store is None:
        return []
    return [n.to_dict() for n in store.notifications.drain()]


def respond(body: dict, status: int = 200):
    """JSON body plus any toasts the store raised while handling the request."""
    body = dict(body)
    body["notifications"] = _drain_notifications()
    return jsonify(body), status


def error_response(exc: Exception):
    """Map store/validation failures to HTTP; anything else propagates."""
    if isinstance(exc, (ValidationError, ReportError)):
        status = 400
    elif isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, (InsufficientStockError, TransferStatusError)):
        status = 409
    elif isinstance(exc, RemoteOperationError):
        status = 502
    else:
        raise exc
    return respond({"error": str(exc)}, status)


STORE_ERRORS = (
    ValidationError,
    ReportError,
    NotFoundError,
    InsufficientStockError,
    TransferStatusError,
    RemoteOperationError,
)
