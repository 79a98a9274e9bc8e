"""
Response utilities for Lambda handlers.

Every webhook response is JSON and carries an ``ok`` flag; failures add an
``error`` message.
"""

import json
from typing import Dict, Optional


def json_response(
    status_code: int, body: dict, headers: Optional[dict] = None
) -> dict:
    """
    Create standardized JSON response.

    Args:
        status_code: HTTP status code
        body: Response body dictionary
        headers: Optional additional headers

    Returns:
        Lambda response dictionary
    """
    response_headers = {"Content-Type": "application/json"}
    if headers:
        response_headers.update(headers)

    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": json.dumps(body),
    }


def ok_response(status_code: int = 200, headers: Optional[Dict[str, str]] = None) -> dict:
    """Acknowledge a webhook delivery with ``{"ok": true}``."""
    return json_response(status_code, {"ok": True}, headers)


def error_response(
    status_code: int,
    message: str,
    headers: Optional[Dict[str, str]] = None,
) -> dict:
    """
    Create an error response.

    Args:
        status_code: HTTP status code
        message: Human-readable error message
        headers: Additional response headers

    Returns:
        Lambda response dict
    """
    return json_response(status_code, {"ok": False, "error": message}, headers)
