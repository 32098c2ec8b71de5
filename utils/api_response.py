"""
Standardized API response helpers.

Provides consistent JSON response format across all API endpoints:

    Success:  {"success": true, "data": {...}, "message": "..."}
    Error:    {"success": false, "error": "message", "error_code": "..."}
    Warning:  {"success": true, "data": {...}, "warning": "..."}

Usage:
    from utils.api_response import api_success, api_error

    return api_success(data={'id': 1}, message='Created')
    return api_error('Missing data', status=400)
"""

from flask import jsonify
from typing import Any

# Distinguishes "no data argument" from an explicit data=None (JSON null)
_NO_DATA = object()


def api_success(
    data: Any = _NO_DATA,
    message: str | None = None,
    warning: str | None = None,
    status: int = 200,
    **extra_fields: Any
) -> tuple:
    """
    Build a standardized success JSON response.

    Args:
        data: Optional payload for the 'data' key. None is sent as null;
            omit the argument to leave the key out.
        message: Optional success message.
        warning: Optional warning message.
        status: HTTP status code (default 200).
        **extra_fields: Additional top-level fields to include in the response.

    Returns:
        Tuple of (Response, status_code)
    """
    response = {'success': True}

    if data is not _NO_DATA:
        response['data'] = data

    if message:
        response['message'] = message

    if warning:
        response['warning'] = warning

    if extra_fields:
        response.update(extra_fields)

    return jsonify(response), status


def api_error(error: str, status: int = 400, **extra_fields: Any) -> tuple:
    """
    Build a standardized error JSON response.

    Args:
        error: Error message.
        status: HTTP status code (default 400).
        **extra_fields: Additional top-level fields (e.g., error_code, refresh).

    Returns:
        Tuple of (Response, status_code)
    """
    response = {'success': False, 'error': error}

    if extra_fields:
        response.update(extra_fields)

    return jsonify(response), status


def reservation_error_response(error) -> tuple:
    """
    Translate a reservation engine failure into an error response.

    Every engine failure asks the caller to refresh its view of the
    catalog and its active reservation.

    Args:
        error: ReservationError instance

    Returns:
        Tuple of (Response, status_code)
    """
    return api_error(
        str(error),
        status=error.http_status,
        error_code=error.code,
        refresh=True
    )
