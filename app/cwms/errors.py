"""
Application error types.

Services raise these; the handlers registered in ``register_error_handlers``
turn them (and anything unexpected) into the JSON error envelope.
"""
from __future__ import annotations

from typing import Any

from flask import Flask, g, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, *, details: list[Any] | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")
        self.resource = resource


class ValidationError(AppError):
    status_code = 400


def raise_if_errors(errors: list[str]) -> None:
    """Raise a ValidationError carrying every collected message."""
    if not errors:
        return
    message = errors[0] if len(errors) == 1 else "Validation failed"
    raise ValidationError(message, details=errors)


def _error_response(message: str, status: int, details: list[Any] | None = None):
    body: dict[str, Any] = {"success": False, "error": {"message": message}}
    if details:
        body["error"]["details"] = details
    body["requestId"] = getattr(g, "request_id", None)
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def _app_error(e: AppError):  # type: ignore[no-redef]
        if e.status_code >= 500:
            app.logger.exception("Application error (request_id=%s): %s", getattr(g, "request_id", None), e.message)
        else:
            app.logger.info("%s: %s", type(e).__name__, e.message)
        return _error_response(e.message, e.status_code, e.details)

    @app.errorhandler(IntegrityError)
    def _integrity_error(e: IntegrityError):  # type: ignore[no-redef]
        app.logger.warning("Integrity error (request_id=%s): %s", getattr(g, "request_id", None), e.orig)
        return _error_response("Duplicate or conflicting record", 400)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        status = e.code or 500
        if status == 403:
            missing = getattr(g, "missing_permission", None)
            if missing:
                app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        messages = {
            401: "Authentication required",
            403: "You do not have permission to perform this action",
            404: "Route not found",
            405: "Method not allowed",
            413: "Request body too large",
        }
        return _error_response(messages.get(status, e.description or e.name), status)

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):  # type: ignore[no-redef]
        # Ensure stack trace shows in the logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return _error_response("Internal server error", 500)
