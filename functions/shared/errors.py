"""
Webhook error taxonomy.

Every error maps to an HTTP status and renders as ``{"ok": false, "error": ...}``.
"""

from typing import Optional

from shared.response_utils import error_response


class WebhookError(Exception):
    """Base class for errors that terminate a webhook request."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def response_headers(self) -> dict:
        return {}

    def to_response(self) -> dict:
        """Convert to API Gateway response format."""
        return error_response(self.status_code, self.message, headers=self.response_headers())


class MethodNotAllowedError(WebhookError):
    """Raised for any request method other than POST."""

    status_code = 405

    def __init__(self, method: str = ""):
        self.method = method
        super().__init__("Method not allowed")

    def response_headers(self) -> dict:
        return {"Allow": "POST"}


class SignatureVerificationError(WebhookError):
    """Raised when the payload cannot be authenticated or decoded.

    Covers a missing header, a wrong secret, a tampered body, a stale
    timestamp and a body that is not a JSON event envelope.
    """

    status_code = 400

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Webhook signature failed: {reason}")


class BodyReadError(WebhookError):
    """Raised when the raw request body cannot be recovered."""

    status_code = 500


class StoreUpdateError(WebhookError):
    """Raised when the profile store rejects or fails the tier update.

    Surfaces as a 500 so Stripe re-delivers the event.
    """

    status_code = 500


class ConfigurationError(WebhookError):
    """Raised when required secrets or store settings are missing."""

    status_code = 500

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__("Webhook not configured")
