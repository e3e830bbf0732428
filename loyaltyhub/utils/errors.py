"""
Standardized error response utilities for the Loyalty Hub API.

Provides consistent error response format across all endpoints:
{
    "error": {
        "message": "User-friendly error message",
        "code": "ERROR_CODE"
    }
}

Usage:
    from loyaltyhub.utils.errors import error_response, ErrorCode

    return error_response("Program not found", ErrorCode.NOT_FOUND, 404)
"""
import logging
from enum import Enum
from flask import jsonify
from typing import Optional

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication & Authorization (401, 403)
    AUTH_REQUIRED = "AUTH_REQUIRED"
    FORBIDDEN = "FORBIDDEN"

    # Validation Errors (400)
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_PARAMETERS = "INVALID_PARAMETERS"

    # Not Found (404)
    NOT_FOUND = "NOT_FOUND"

    # Conflict (409)
    ALREADY_PENDING = "ALREADY_PENDING"
    ALREADY_ENROLLED = "ALREADY_ENROLLED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # Gone (410)
    EXPIRED = "EXPIRED"

    # Business Logic Errors (422)
    NOT_ENROLLED = "NOT_ENROLLED"
    INSUFFICIENT_POINTS = "INSUFFICIENT_POINTS"

    # Server Errors (500, 503)
    STORAGE_ERROR = "STORAGE_ERROR"
    OPERATION_FAILED = "OPERATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


STATUS_BY_CODE = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INVALID_PARAMETERS: 400,
    ErrorCode.AUTH_REQUIRED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.ALREADY_PENDING: 409,
    ErrorCode.ALREADY_ENROLLED: 409,
    ErrorCode.ALREADY_PROCESSED: 409,
    ErrorCode.INVALID_STATUS_TRANSITION: 409,
    ErrorCode.EXPIRED: 410,
    ErrorCode.NOT_ENROLLED: 422,
    ErrorCode.INSUFFICIENT_POINTS: 422,
    ErrorCode.STORAGE_ERROR: 503,
    ErrorCode.OPERATION_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    log_error: bool = True,
    details: Optional[dict] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        message: User-friendly error message
        code: Error code from ErrorCode enum
        status_code: HTTP status code
        log_error: Whether to log the error (default True for 500s)
        details: Optional additional details (only logged, not returned to user)

    Returns:
        Tuple of (response, status_code) for Flask
    """
    if log_error and status_code >= 500:
        logger.error(f"API Error [{code}]: {message}", extra={"details": details})
    elif log_error and status_code >= 400:
        logger.warning(f"API Error [{code}]: {message}", extra={"details": details})

    response = {
        "error": {
            "message": message,
            "code": code.value if isinstance(code, ErrorCode) else code
        }
    }

    return jsonify(response), status_code


def bad_request(message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST) -> tuple:
    """400 Bad Request error."""
    return error_response(message, code, 400, log_error=False)


def unauthorized(message: str = "Authentication required", code: ErrorCode = ErrorCode.AUTH_REQUIRED) -> tuple:
    """401 Unauthorized error."""
    return error_response(message, code, 401, log_error=False)


def forbidden(message: str = "Permission denied", code: ErrorCode = ErrorCode.FORBIDDEN) -> tuple:
    """403 Forbidden error."""
    return error_response(message, code, 403, log_error=False)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    """404 Not Found error."""
    return error_response(message, code, 404, log_error=False)


def internal_error(message: str = "An unexpected error occurred", details: Optional[dict] = None) -> tuple:
    """500 Internal Server Error."""
    return error_response(message, ErrorCode.INTERNAL_ERROR, 500, log_error=True, details=details)


def service_response(result: dict, success_status: int = 200) -> tuple:
    """
    Turn a service result dict into a Flask response.

    Successful results are returned as-is; failures are mapped to the
    standard error body with the HTTP status of their ``error_code``.
    """
    if result.get('success'):
        return jsonify(result), success_status

    raw_code = result.get('error_code') or ErrorCode.OPERATION_FAILED.value
    try:
        code = ErrorCode(raw_code)
    except ValueError:
        code = ErrorCode.OPERATION_FAILED
    status_code = STATUS_BY_CODE.get(code, 400)
    response, status_code = error_response(
        result.get('error', 'Request failed'), code, status_code,
        log_error=status_code >= 500
    )
    # Idempotent replays and partial failures carry extra fields (e.g. card_id)
    body = response.get_json()
    for key, value in result.items():
        if key not in ('success', 'error', 'error_code'):
            body[key] = value
    return jsonify(body), status_code
