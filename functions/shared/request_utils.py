"""Request adapters between API Gateway events and the webhook handler."""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from shared.errors import BodyReadError

logger = logging.getLogger(__name__)


@dataclass
class WebhookRequest:
    """Transport-neutral view of an inbound webhook delivery.

    ``read_body`` returns the exact bytes Stripe signed. It is only invoked
    once the method gate has passed.
    """

    method: str
    headers: dict[str, str] = field(default_factory=dict)
    read_body: Callable[[], bytes] = lambda: b""

    def __post_init__(self):
        self.method = (self.method or "").upper()
        self.headers = {k.lower(): v for k, v in (self.headers or {}).items()}

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


def get_http_method(event: Mapping) -> str:
    """Return the request method for REST (v1) or HTTP API / Function URL (v2) events."""
    method = event.get("httpMethod")
    if not method:
        method = ((event.get("requestContext") or {}).get("http") or {}).get("method")
    return (method or "").upper()


def read_raw_body(event: Mapping) -> bytes:
    """Recover the exact request bytes from a Lambda proxy event.

    API Gateway hands text bodies through as ``str`` and binary ones as
    base64. Re-encoding the text as UTF-8 reproduces the bytes Stripe signed.
    """
    body = event.get("body")
    if body is None:
        return b""
    if isinstance(body, bytes):
        return body
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            raise BodyReadError(f"Could not decode request body: {e}")
    return body.encode("utf-8")


def from_lambda_event(event: Mapping) -> WebhookRequest:
    """Adapt an API Gateway proxy event to a WebhookRequest."""
    return WebhookRequest(
        method=get_http_method(event),
        headers=dict(event.get("headers") or {}),
        read_body=lambda: read_raw_body(event),
    )
