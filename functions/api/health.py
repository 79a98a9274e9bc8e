"""
Health Check Endpoint - GET /health

Returns API status and version information.
No authentication required.
"""

import time
from datetime import datetime, timezone

from shared.logging_utils import configure_structured_logging, set_request_id, log_api_request
from shared.request_utils import get_http_method
from shared.response_utils import json_response

VERSION = "1.0.0"

# Configure structured logging
logger = configure_structured_logging()


def handler(event, context):
    """
    Lambda handler for health check.

    Returns:
        200 with status information
    """
    start_time = time.time()

    set_request_id(event)

    response = json_response(
        200,
        {
            "status": "healthy",
            "version": VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        headers={"Cache-Control": "no-cache"},
    )

    latency_ms = (time.time() - start_time) * 1000
    log_api_request(logger, get_http_method(event) or "GET", "/health", 200, latency_ms)

    return response
