"""
Error taxonomy and the JSON error responder.

Handlers raise the typed errors below; `register_error_handlers` turns them
(and anything unexpected) into `{"status": ..., "message": ...}` bodies.
"""

from __future__ import annotations

from flask import Flask, g, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"

    def to_dict(self) -> dict:
        return {"status": self.status, "message": self.message}


class ValidationError(AppError):
    status_code = 400


class AuthError(AppError):
    """401 by default; pass 403 for authenticated-but-forbidden."""

    status_code = 401


class NotFoundError(AppError):
    status_code = 404


class ServerError(AppError):
    status_code = 500


def _json_error(err: AppError):
    return jsonify(err.to_dict()), err.status_code


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def _app_error(e: AppError):  # type: ignore[no-redef]
        if e.status_code >= 500:
            app.logger.error("ServerError (request_id=%s): %s", getattr(g, "request_id", None), e.message)
        return _json_error(e)

    @app.errorhandler(IntegrityError)
    def _integrity_error(e: IntegrityError):  # type: ignore[no-redef]
        app.logger.warning("IntegrityError (request_id=%s): %s", getattr(g, "request_id", None), e.orig)
        return _json_error(ValidationError("Duplicate or invalid value for a unique field."))

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        code = e.code or 500
        if code == 413:
            return _json_error(ValidationError("File too large. Maximum size is 25MB.", 413))
        return _json_error(AppError(e.description or e.name, code))

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return _json_error(ServerError("Something went wrong."))
