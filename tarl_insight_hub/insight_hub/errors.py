# -*- coding: utf-8 -*-
"""
Error taxonomy shared by the store, the resolver and the HTTP layer.
Every error carries the HTTP status it maps to; handlers render them as
``{"error": {"code": ..., "message": ...}}``.
"""

from flask import jsonify, current_app
from flask_wtf.csrf import CSRFError
from werkzeug.exceptions import HTTPException

from insight_hub import db


class HubError(Exception):
    status_code = 500
    code = "internal_error"
    default_message = "Internal server error."

    def __init__(self, message=None, field=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.field = field

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.field:
            payload["field"] = self.field
        return {"error": payload}


class Unauthorized(HubError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class Forbidden(HubError):
    status_code = 403
    code = "forbidden"
    default_message = "Access denied. Admin role required."


class ValidationError(HubError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request payload."


class NotFound(HubError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class Conflict(HubError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists."


class InternalError(HubError):
    status_code = 500
    code = "internal_error"
    default_message = "Internal server error."


def _render(code: str, message: str, status: int, field=None):
    payload = {"code": code, "message": message}
    if field:
        payload["field"] = field
    return jsonify({"error": payload}), status


def register_error_handlers(app):
    @app.errorhandler(HubError)
    def handle_hub_error(exc: HubError):
        if exc.status_code >= 500:
            db.session.rollback()
            current_app.logger.error("%s: %s", exc.code, exc.message, exc_info=exc.__cause__ or exc)
        else:
            current_app.logger.warning("%s (%s): %s", exc.code, exc.status_code, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(exc: CSRFError):
        current_app.logger.warning("CSRF validation failed: %s", exc.description)
        return _render("csrf_error", exc.description, 400)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return _render(exc.name.lower().replace(" ", "_"), exc.description, exc.code)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        db.session.rollback()
        current_app.logger.exception("Unhandled error: %s", exc)
        return _render(InternalError.code, InternalError.default_message, 500)
