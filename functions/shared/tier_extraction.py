"""
Email and tier extraction for completed Checkout Sessions.

Stripe leaves ``line_items`` out of webhook payloads unless they were
expanded, so the tier lookup walks a fixed fallback chain:

1. ``tier`` on the first embedded line item's price metadata
2. the same, on the session re-fetched with line items expanded
3. ``tier`` on the re-fetched session's metadata, then the original's
4. if the re-fetch fails, ``tier`` on the original session's metadata

Nothing found is not an error; the lookup reports ``TierSource.NONE``.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

import stripe

from shared.constants import TIER_METADATA_KEY

logger = logging.getLogger(__name__)


class TierSource(Enum):
    """Where a tier value was found."""

    EMBEDDED_LINE_ITEMS = "embedded_line_items"
    EXPANDED_LINE_ITEMS = "expanded_line_items"
    FETCHED_METADATA = "fetched_metadata"
    SESSION_METADATA = "session_metadata"
    FALLBACK_METADATA = "fallback_metadata"
    NONE = "none"


@dataclass(frozen=True)
class TierLookup:
    tier: str
    source: TierSource

    @property
    def found(self) -> bool:
        return bool(self.tier)


def _get(obj: Optional[Mapping], key: str) -> Any:
    if not obj:
        return None
    return obj.get(key)


def extract_email(session: Mapping) -> str:
    """Prefer customer_details.email, fall back to customer_email."""
    email = _get(_get(session, "customer_details"), "email") or _get(session, "customer_email")
    return email or ""


def _metadata_tier(obj: Optional[Mapping]) -> str:
    return _get(_get(obj, "metadata"), TIER_METADATA_KEY) or ""


def line_item_tier(session: Optional[Mapping]) -> str:
    """Read ``tier`` from the first line item's price metadata, if present."""
    items = _get(_get(session, "line_items"), "data") or []
    if not items:
        return ""
    return _metadata_tier(_get(items[0], "price"))


def extract_tier(session: Mapping, gateway) -> TierLookup:
    """Resolve the purchased tier for a Checkout Session.

    Args:
        session: The ``data.object`` of a checkout.session.completed event
        gateway: Object exposing ``retrieve_checkout_session(session_id)``

    Returns:
        TierLookup whose ``tier`` is "" when no path yielded a value
    """
    tier = line_item_tier(session)
    if tier:
        return TierLookup(tier, TierSource.EMBEDDED_LINE_ITEMS)

    session_id = _get(session, "id")
    if not session_id:
        tier = _metadata_tier(session)
        if tier:
            return TierLookup(tier, TierSource.SESSION_METADATA)
        return TierLookup("", TierSource.NONE)

    try:
        full = gateway.retrieve_checkout_session(session_id)
    except stripe.StripeError as e:
        logger.warning(f"Could not expand session {session_id}, using session metadata: {e}")
        tier = _metadata_tier(session)
        if tier:
            return TierLookup(tier, TierSource.FALLBACK_METADATA)
        return TierLookup("", TierSource.NONE)

    tier = line_item_tier(full)
    if tier:
        return TierLookup(tier, TierSource.EXPANDED_LINE_ITEMS)

    tier = _metadata_tier(full)
    if tier:
        return TierLookup(tier, TierSource.FETCHED_METADATA)

    tier = _metadata_tier(session)
    if tier:
        return TierLookup(tier, TierSource.SESSION_METADATA)

    return TierLookup("", TierSource.NONE)
