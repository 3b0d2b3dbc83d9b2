"""
Standardized error response utilities for the Giya API.

Every endpoint reports failures in the same envelope:
{
    "error": {
        "message": "User-friendly error message",
        "code": "ERROR_CODE"
    }
}

Usage:
    from giya.utils.errors import error_response, ErrorCode

    return error_response("Punch card not found", ErrorCode.NOT_FOUND, 404)
"""
import logging
from enum import Enum
from flask import Flask, jsonify
from typing import Optional

from .exceptions import GiyaError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication & Authorization (401, 403)
    AUTH_REQUIRED = "AUTH_REQUIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    BUSINESS_NOT_APPROVED = "BUSINESS_NOT_APPROVED"
    FEATURE_DISABLED = "FEATURE_DISABLED"

    # Validation Errors (400)
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_FIELD = "MISSING_FIELD"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Not Found (404)
    NOT_FOUND = "NOT_FOUND"

    # Method (405)
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    # Conflict (409)
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    STATE_CONFLICT = "STATE_CONFLICT"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # Business Logic Errors (400)
    INSUFFICIENT_POINTS = "INSUFFICIENT_POINTS"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"

    # Throttling (429)
    RATE_LIMITED = "RATE_LIMITED"

    # External Service Errors (502)
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"

    # Server Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    log_error: bool = True,
    details: Optional[dict] = None,
    extra: Optional[dict] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        message: User-friendly error message
        code: Error code from ErrorCode enum (or a plain string)
        status_code: HTTP status code
        log_error: Whether to log the error
        details: Optional additional details (only logged, not returned to user)
        extra: Optional top-level fields returned next to "error"

    Returns:
        Tuple of (response, status_code) for Flask
    """
    code_value = code.value if isinstance(code, ErrorCode) else code
    if log_error and status_code >= 500:
        logger.error(f"API Error [{code_value}]: {message}", extra={"details": details})
    elif log_error and status_code >= 400:
        logger.warning(f"API Error [{code_value}]: {message}", extra={"details": details})

    response = {
        "error": {
            "message": message,
            "code": code_value
        }
    }
    if extra:
        response.update(extra)

    return jsonify(response), status_code


def bad_request(message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST) -> tuple:
    """400 Bad Request error."""
    return error_response(message, code, 400, log_error=False)


def unauthorized(message: str = "Authentication required", code: ErrorCode = ErrorCode.AUTH_REQUIRED) -> tuple:
    """401 Unauthorized error."""
    return error_response(message, code, 401, log_error=False)


def forbidden(message: str = "Permission denied", code: ErrorCode = ErrorCode.PERMISSION_DENIED, extra: Optional[dict] = None) -> tuple:
    """403 Forbidden error."""
    return error_response(message, code, 403, log_error=True, extra=extra)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    """404 Not Found error."""
    return error_response(message, code, 404, log_error=False)


def conflict(message: str, code: ErrorCode = ErrorCode.STATE_CONFLICT) -> tuple:
    """409 Conflict error."""
    return error_response(message, code, 409, log_error=False)


def internal_error(message: str = "An unexpected error occurred", details: Optional[dict] = None) -> tuple:
    """500 Internal Server Error."""
    return error_response(message, ErrorCode.INTERNAL_ERROR, 500, log_error=True, details=details)


def register_error_handlers(app: Flask) -> None:
    """Render domain exceptions and HTTP errors in the standard envelope."""
    from ..extensions import db

    @app.errorhandler(GiyaError)
    def handle_giya_error(error: GiyaError):
        if error.status_code >= 500:
            db.session.rollback()
        return error_response(
            error.message,
            error.code,
            error.status_code,
            log_error=error.status_code >= 403,
            extra=error.extra,
        )

    @app.errorhandler(400)
    def handle_bad_request(error):
        return bad_request(getattr(error, 'description', None) or 'Bad request')

    @app.errorhandler(404)
    def handle_not_found(error):
        return not_found('Resource not found')

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return error_response('Method not allowed', ErrorCode.METHOD_NOT_ALLOWED, 405, log_error=False)

    @app.errorhandler(429)
    def handle_rate_limited(error):
        logger.warning(f"Rate limit exceeded: {getattr(error, 'description', '')}")
        return error_response(
            'Too many requests. Please try again later.',
            ErrorCode.RATE_LIMITED,
            429,
            log_error=False,
        )

    @app.errorhandler(500)
    def handle_internal_error(error):
        db.session.rollback()
        original = getattr(error, 'original_exception', None) or error
        return internal_error(details={'exception': repr(original)})
