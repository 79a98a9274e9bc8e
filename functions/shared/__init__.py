# Shared utilities package
from .errors import WebhookError
from .response_utils import error_response, ok_response

__all__ = [
    "WebhookError",
    "error_response",
    "ok_response",
]
