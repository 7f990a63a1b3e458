"""Centralized JSON error handlers.

Every failure leaving the service has the ``{error, detail}`` shape, whether
it was raised as an ``AppError``, a werkzeug ``HTTPException`` or an
unexpected exception.
"""
from __future__ import annotations

import uuid

from flask import Blueprint, current_app, g, jsonify, make_response
from werkzeug.exceptions import HTTPException

from nevra.utils.errors import AppError, GatewayError, build_error_payload

error_bp = Blueprint("errors", __name__)

DEFAULT_DETAIL = "Unexpected server error. Retry later; if it persists check the server logs."


def render_error(status_code: int, message: str, detail: str | None = None):
    payload = build_error_payload(message, detail=detail, request_id=getattr(g, "request_id", None))
    return make_response(jsonify(payload), status_code)


@error_bp.app_errorhandler(AppError)  # type: ignore[misc]
def handle_app_error(exc: AppError):
    if isinstance(exc, GatewayError):
        detail = exc.detail
    else:
        detail = exc.details.get("detail") if exc.details else None
    return render_error(exc.http_status, exc.message, detail)


@error_bp.app_errorhandler(HTTPException)  # type: ignore[misc]
def handle_http_exception(exc: HTTPException):
    return render_error(exc.code or 500, exc.name, exc.description)


@error_bp.app_errorhandler(Exception)  # type: ignore[misc]
def handle_uncaught_exception(exc: Exception):
    current_app.logger.exception("Unhandled exception: %s", exc)
    return render_error(500, str(exc) or "Internal server error", DEFAULT_DETAIL)


def register_error_handlers(app):
    """Register handlers & attach request id generation."""
    @app.before_request  # type: ignore[misc]
    def _assign_request_id():
        g.request_id = uuid.uuid4().hex

    @app.after_request  # type: ignore[misc]
    def _expose_request_id(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id
        return response

    app.register_blueprint(error_bp)
    return app
