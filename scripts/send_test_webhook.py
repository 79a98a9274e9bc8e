#!/usr/bin/env python3
"""
Send a signed test webhook.

Builds a checkout.session.completed event (or reads one from a file), signs
it the way Stripe does with the endpoint's webhook secret, and POSTs it.

Usage:
    STRIPE_WEBHOOK_SECRET=whsec_... python scripts/send_test_webhook.py \\
        https://api.example.com/webhooks/stripe --email a@example.com --tier pro
"""

import argparse
import hashlib
import hmac
import json
import os
import sys
import time
import uuid

import httpx


def sign_payload(payload: str, secret: str, timestamp: int = None) -> str:
    """Return a Stripe-Signature header value for ``payload``."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def build_checkout_event(email: str, tier: str, embed_line_items: bool) -> dict:
    session = {
        "id": f"cs_test_{uuid.uuid4().hex[:24]}",
        "object": "checkout.session",
        "customer_details": {"email": email},
        "metadata": {},
    }
    if tier and embed_line_items:
        session["line_items"] = {
            "object": "list",
            "data": [{"price": {"id": "price_test", "metadata": {"tier": tier}}}],
        }
    elif tier:
        session["metadata"]["tier"] = tier

    return {
        "id": f"evt_test_{uuid.uuid4().hex[:24]}",
        "object": "event",
        "type": "checkout.session.completed",
        "created": int(time.time()),
        "livemode": False,
        "data": {"object": session},
    }


def main():
    parser = argparse.ArgumentParser(description="Send a signed Stripe test webhook")
    parser.add_argument("url", help="Webhook endpoint URL")
    parser.add_argument("--secret", default=os.environ.get("STRIPE_WEBHOOK_SECRET"), help="Webhook signing secret")
    parser.add_argument("--event-file", help="Send this JSON event instead of a generated one")
    parser.add_argument("--email", default="test@example.com")
    parser.add_argument("--tier", default="pro")
    parser.add_argument("--embed-line-items", action="store_true", help="Put the tier on an embedded line item price")
    args = parser.parse_args()

    if not args.secret:
        print("Error: pass --secret or set STRIPE_WEBHOOK_SECRET", file=sys.stderr)
        sys.exit(1)

    if args.event_file:
        with open(args.event_file) as f:
            payload = f.read()
        try:
            json.loads(payload)
        except json.JSONDecodeError:
            print("Error: event file must be valid JSON", file=sys.stderr)
            sys.exit(1)
    else:
        payload = json.dumps(build_checkout_event(args.email, args.tier, args.embed_line_items))

    response = httpx.post(
        args.url,
        content=payload.encode("utf-8"),
        headers={
            "Content-Type": "application/json",
            "Stripe-Signature": sign_payload(payload, args.secret),
        },
        timeout=30.0,
    )
    print(f"{response.status_code} {response.text}")
    sys.exit(0 if response.is_success else 1)


if __name__ == "__main__":
    main()
