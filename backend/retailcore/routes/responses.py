# Overview: JSON error responses shared by all blueprints.

from flask import current_app
from werkzeug.exceptions import HTTPException

from ..errors import RetailError


def error_response(error: RetailError):
    if error.status_code >= 500:
        current_app.logger.error("%s: %s", error.kind, error)
    return error.to_dict(), error.status_code


def handle_unexpected_error(error: Exception):
    if isinstance(error, HTTPException):
        return {"error": error.description, "kind": "http"}, error.code
    current_app.logger.exception("Unhandled error")
    return {"error": "Internal server error", "kind": "internal"}, 500
