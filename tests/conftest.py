"""
Shared pytest fixtures for TierSync tests.
"""

import hashlib
import hmac
import json
import os
import sys
import time

import boto3
import pytest
from moto import mock_aws

# Add functions directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "functions"))

WEBHOOK_SECRET = "whsec_test_secret"
STRIPE_KEY = "sk_test_123"


def pytest_configure(config):
    """Set AWS credentials before test collection.

    This runs before test collection starts, ensuring boto3 resource
    creation during imports doesn't fail with NoRegionError.
    """
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_REGION", "us-east-1")


@pytest.fixture(autouse=True)
def aws_credentials():
    """Set fake AWS credentials for all tests."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    os.environ["AWS_REGION"] = "us-east-1"


@pytest.fixture(autouse=True)
def mocked_aws(aws_credentials):
    """Keep every test off real AWS (metrics are emitted on each event)."""
    with mock_aws():
        yield


@pytest.fixture(autouse=True)
def reset_aws_clients():
    """Reset shared AWS client singletons between tests."""
    yield
    try:
        from shared.aws_clients import reset_clients
        reset_clients()
    except ImportError:
        pass


@pytest.fixture(autouse=True)
def reset_handler_cache():
    """Drop the cached webhook handler so env changes take effect."""
    yield
    try:
        import api.stripe_webhook as webhook_module
        webhook_module._handler_cache = None
        webhook_module._handler_cache_time = 0.0
    except ImportError:
        pass


@pytest.fixture
def webhook_env(monkeypatch):
    """Environment for the Lambda entrypoint, backed by DynamoDB."""
    for name in (
        "STRIPE_SECRET_ARN",
        "STRIPE_WEBHOOK_SECRET_ARN",
        "SUPABASE_SERVICE_ROLE_KEY_ARN",
        "STRIPE_WEBHOOK_TOLERANCE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STRIPE_SECRET_KEY", STRIPE_KEY)
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("PROFILE_STORE", "dynamodb")
    monkeypatch.setenv("PROFILES_TABLE", "profiles")
    monkeypatch.setenv("PROFILES_EMAIL_INDEX", "email-index")


def create_profiles_table(dynamodb, name="profiles"):
    """Create the profiles table with its email GSI."""
    dynamodb.create_table(
        TableName=name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "email", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "email-index",
                "KeySchema": [{"AttributeName": "email", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def mock_dynamodb():
    """Provide mocked DynamoDB with the profiles table."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        create_profiles_table(dynamodb)
        yield dynamodb


@pytest.fixture
def seeded_profiles_table(mock_dynamodb):
    """Profiles table with one free-tier user."""
    table = mock_dynamodb.Table("profiles")
    table.put_item(
        Item={
            "pk": "user_a",
            "email": "a@example.com",
            "tier": "free",
        }
    )
    return table


def sign_payload(payload, secret=WEBHOOK_SECRET, timestamp=None):
    """Build a Stripe-Signature header value for ``payload``."""
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(event_type="checkout.session.completed", session=None, event_id="evt_test_1"):
    """Build a Stripe event envelope around a session object."""
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": session if session is not None else {}},
    }


def make_session(
    session_id="cs_test_1",
    customer_details_email=None,
    customer_email=None,
    line_item_tier=None,
    metadata=None,
):
    """Build a Checkout Session payload the way Stripe delivers it."""
    session = {
        "id": session_id,
        "object": "checkout.session",
        "customer_details": {"email": customer_details_email} if customer_details_email else None,
        "customer_email": customer_email,
        "metadata": metadata or {},
    }
    if line_item_tier is not None:
        session["line_items"] = {
            "object": "list",
            "data": [{"id": "li_1", "price": {"id": "price_1", "metadata": {"tier": line_item_tier}}}],
        }
    return session


@pytest.fixture
def api_gateway_event():
    """Base API Gateway REST (payload v1) event for Lambda handler tests."""
    return {
        "httpMethod": "POST",
        "headers": {},
        "pathParameters": {},
        "queryStringParameters": {},
        "body": None,
        "isBase64Encoded": False,
        "requestContext": {
            "requestId": "req-123",
            "identity": {"sourceIp": "127.0.0.1"},
        },
    }


@pytest.fixture
def http_api_event():
    """Base HTTP API / Function URL (payload v2) event."""
    return {
        "version": "2.0",
        "routeKey": "POST /webhooks/stripe",
        "rawPath": "/webhooks/stripe",
        "headers": {},
        "body": None,
        "isBase64Encoded": False,
        "requestContext": {
            "requestId": "req-456",
            "http": {"method": "POST", "path": "/webhooks/stripe"},
        },
    }


@pytest.fixture
def signed_event(api_gateway_event):
    """Factory: put a signed Stripe event into the API Gateway event."""

    def _build(stripe_event, secret=WEBHOOK_SECRET, timestamp=None):
        body = json.dumps(stripe_event)
        api_gateway_event["body"] = body
        api_gateway_event["headers"] = {"Stripe-Signature": sign_payload(body, secret, timestamp)}
        return api_gateway_event

    return _build
