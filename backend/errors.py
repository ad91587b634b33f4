# backend/errors.py
"""
API error taxonomy and the JSON error handlers.

Every error leaves the API as ``{"error": <message>, "code": <CODE>, ...}``.
Validation-style errors also carry ``errors: [{field, message}, ...]`` with the
complete list of violations, and may attach extra keys (``payload``) such as
``missingDocuments``.
"""
from __future__ import annotations

import traceback
from typing import Any, Dict, List, Optional

from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException

from backend.extensions import db


class APIError(Exception):
    status_code = 500
    default_code = "SERVER_ERROR"
    default_message = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        errors: Optional[List[Dict[str, str]]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.errors = errors or []
        self.payload = payload or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.errors:
            body["errors"] = self.errors
        body.update(self.payload)
        return body


class BadRequestError(APIError):
    status_code = 400
    default_code = "BAD_REQUEST"
    default_message = "Bad request"


class ValidationError(BadRequestError):
    status_code = 422
    default_code = "VALIDATION_ERROR"
    default_message = "Validation error"


class UnauthorizedError(APIError):
    status_code = 401
    default_code = "AUTH_REQUIRED"
    default_message = "Unauthorized"


class ForbiddenError(APIError):
    status_code = 403
    default_code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFoundError(APIError):
    status_code = 404
    default_code = "NOT_FOUND"
    default_message = "Resource not found"


class PayloadTooLargeError(APIError):
    status_code = 413
    default_code = "FILE_TOO_LARGE"
    default_message = "File too large"


def error_response(message: str, code: str, status: int, **extra):
    body = {"error": message, "code": code}
    body.update(extra)
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(APIError)
    def _api_error(err: APIError):
        app.logger.warning("%s %s: %s", err.status_code, err.code, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        code = (err.name or "error").upper().replace(" ", "_")
        return error_response(err.description or err.name, code, err.code or 500)

    @app.errorhandler(Exception)
    def _unexpected(err: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error: %s", err)
        extra = {}
        if current_app.config.get("EXPOSE_ERROR_DETAILS"):
            extra["stack"] = traceback.format_exc()
        return error_response("Internal server error", "SERVER_ERROR", 500, **extra)
