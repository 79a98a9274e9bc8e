"""
Stripe Webhook Endpoint - POST /webhooks/stripe

Applies the subscription tier bought in a completed Checkout Session to the
matching user profile. Uses Stripe signature verification instead of API
key auth.

Every event type other than checkout.session.completed is acknowledged and
ignored: Stripe retries anything that is not a 2xx.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from shared.config import WebhookConfig, load_config
from shared.constants import CHECKOUT_SESSION_COMPLETED, CONFIG_CACHE_TTL
from shared.errors import ConfigurationError, MethodNotAllowedError, WebhookError
from shared.logging_utils import configure_structured_logging, mask_email, set_request_id
from shared.metrics import emit_metric
from shared.profile_store import ProfileStore, build_profile_store
from shared.request_utils import WebhookRequest, from_lambda_event
from shared.response_utils import error_response, ok_response
from shared.stripe_gateway import StripeGateway
from shared.tier_extraction import TierSource, extract_email, extract_tier
from shared.types import LambdaResponse

logger = logging.getLogger(__name__)


class Outcome(Enum):
    """How an authenticated event was resolved. All of them answer 200."""

    TIER_APPLIED = "tier_applied"
    IGNORED_EVENT_TYPE = "ignored_event_type"
    MISSING_EMAIL = "missing_email"
    MISSING_TIER = "missing_tier"
    MISSING_EMAIL_AND_TIER = "missing_email_and_tier"


@dataclass(frozen=True)
class IngestResult:
    outcome: Outcome
    email: str = ""
    tier: str = ""
    tier_source: TierSource = TierSource.NONE
    profiles_updated: int = 0


class WebhookIngestHandler:
    """Verify a Stripe delivery and apply its tier to the user's profile."""

    def __init__(
        self,
        config: WebhookConfig,
        gateway: Optional[StripeGateway] = None,
        store: Optional[ProfileStore] = None,
    ):
        self.config = config
        self.gateway = gateway or StripeGateway.from_config(config)
        self._store = store

    @property
    def store(self) -> ProfileStore:
        # Built on first update so ignored events never touch the store
        if self._store is None:
            self._store = build_profile_store(self.config)
        return self._store

    def handle(self, request: WebhookRequest) -> LambdaResponse:
        """Process one delivery and return the Lambda proxy response."""
        try:
            if request.method != "POST":
                raise MethodNotAllowedError(request.method)

            missing = self.config.missing_settings()
            if missing:
                logger.error(f"Webhook not configured, missing: {', '.join(missing)}")
                raise ConfigurationError(missing)

            payload = request.read_body()
            event = self.gateway.construct_event(payload, request.header("stripe-signature"))
            self.process_event(event)

        except MethodNotAllowedError as e:
            logger.warning(f"Rejected {e.method or 'unknown'} request to webhook endpoint")
            return e.to_response()
        except WebhookError as e:
            log = logger.warning if e.status_code < 500 else logger.error
            log(f"Webhook request failed: {e.message}")
            return e.to_response()
        except Exception as e:
            logger.error(f"Unexpected error handling webhook: {e}", exc_info=True)
            return error_response(500, str(e) or "server error")

        return ok_response()

    def process_event(self, event: dict) -> IngestResult:
        """Act on an authenticated event envelope.

        Raises:
            StoreUpdateError: if the profile update fails
        """
        event_type = event.get("type")
        logger.info(f"Processing Stripe event: {event_type} (id={event.get('id')})")

        if event_type != CHECKOUT_SESSION_COMPLETED:
            logger.info(f"Unhandled event type: {event_type}")
            return self._finish(IngestResult(Outcome.IGNORED_EVENT_TYPE))

        session = (event.get("data") or {}).get("object") or {}
        email = extract_email(session)
        lookup = extract_tier(session, self.gateway)

        if not email or not lookup.found:
            if not email and not lookup.found:
                outcome = Outcome.MISSING_EMAIL_AND_TIER
            elif not email:
                outcome = Outcome.MISSING_EMAIL
            else:
                outcome = Outcome.MISSING_TIER
            logger.warning(
                f"Checkout session {session.get('id')} not actionable: {outcome.value}",
                extra={"tier_source": lookup.source.value},
            )
            return self._finish(IngestResult(outcome, email, lookup.tier, lookup.source))

        updated = self.store.update_tier(email, lookup.tier)
        logger.info(
            f"Applied tier {lookup.tier} to {updated} profile(s) for {mask_email(email)}",
            extra={"tier_source": lookup.source.value},
        )
        return self._finish(
            IngestResult(Outcome.TIER_APPLIED, email, lookup.tier, lookup.source, updated)
        )

    def _finish(self, result: IngestResult) -> IngestResult:
        emit_metric("WebhookOutcome", dimensions={"Outcome": result.outcome.value})
        return result


# Handler cached per warm container, rebuilt after a TTL so rotated secrets load
_handler_cache: Optional[WebhookIngestHandler] = None
_handler_cache_time = 0.0


def get_webhook_handler() -> WebhookIngestHandler:
    """Return the container's WebhookIngestHandler (cached with TTL)."""
    global _handler_cache, _handler_cache_time

    if _handler_cache is not None and (time.time() - _handler_cache_time) < CONFIG_CACHE_TTL:
        return _handler_cache

    webhook = WebhookIngestHandler(load_config())
    # Incomplete configs are rebuilt on the next invocation
    if webhook.config.missing_settings():
        _handler_cache = None
        return webhook

    _handler_cache = webhook
    _handler_cache_time = time.time()
    return _handler_cache


def handler(event, context):
    """
    Lambda handler for Stripe webhooks.

    Handles:
    - checkout.session.completed: Set the purchased tier on the user's profile
    """
    configure_structured_logging()
    set_request_id(event)

    request = from_lambda_event(event)
    if request.method != "POST":
        # Answer without loading secrets
        return MethodNotAllowedError(request.method).to_response()

    return get_webhook_handler().handle(request)
