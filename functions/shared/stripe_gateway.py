"""
Stripe collaborator for the webhook handler.

Wraps the two Stripe operations the handler consumes: authenticating an
inbound event and re-fetching a Checkout Session with its line items
expanded. Credentials are passed per call instead of through the
process-global ``stripe.api_key``.
"""

import json
import logging
import time

import stripe

from shared.constants import (
    CHECKOUT_SESSION_EXPAND,
    DEFAULT_SIGNATURE_TOLERANCE,
    DEFAULT_STRIPE_API_VERSION,
)
from shared.errors import SignatureVerificationError
from shared.logging_utils import log_external_call

logger = logging.getLogger(__name__)


class StripeGateway:
    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        api_version: str = DEFAULT_STRIPE_API_VERSION,
        tolerance: int = DEFAULT_SIGNATURE_TOLERANCE,
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.api_version = api_version
        self.tolerance = tolerance

    @classmethod
    def from_config(cls, config) -> "StripeGateway":
        return cls(
            api_key=config.stripe_secret_key,
            webhook_secret=config.stripe_webhook_secret,
            api_version=config.stripe_api_version,
            tolerance=config.signature_tolerance,
        )

    def construct_event(self, payload: bytes, sig_header: str) -> dict:
        """Verify the Stripe-Signature header over the raw payload and decode it.

        Raises:
            SignatureVerificationError: on a missing or invalid signature,
                a timestamp outside the tolerance, or an undecodable body.
        """
        if not sig_header:
            raise SignatureVerificationError("No Stripe-Signature header value was provided.")

        # Stripe signs "<timestamp>.<body>" over the body as text
        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise SignatureVerificationError(f"Payload is not valid UTF-8: {e}")

        try:
            stripe.WebhookSignature.verify_header(
                payload, sig_header, self.webhook_secret, self.tolerance
            )
        except stripe.SignatureVerificationError as e:
            raise SignatureVerificationError(getattr(e, "user_message", None) or str(e))

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise SignatureVerificationError(f"Invalid payload: {e}")

        if not isinstance(event, dict) or "type" not in event:
            raise SignatureVerificationError("Invalid payload: not a Stripe event")
        return event

    def retrieve_checkout_session(self, session_id: str):
        """Fetch a Checkout Session with line items and their prices expanded.

        Stripe errors propagate; the caller decides how to degrade.
        """
        start = time.time()
        try:
            session = stripe.checkout.Session.retrieve(
                session_id,
                api_key=self.api_key,
                stripe_version=self.api_version,
                expand=CHECKOUT_SESSION_EXPAND,
            )
        except stripe.StripeError as e:
            log_external_call(
                logger, "stripe", "checkout.Session.retrieve", False,
                (time.time() - start) * 1000, error=str(e),
            )
            raise

        log_external_call(
            logger, "stripe", "checkout.Session.retrieve", True, (time.time() - start) * 1000
        )
        return session
