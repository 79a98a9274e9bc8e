"""
Webhook configuration.

Settings come from environment variables. Secrets may instead be stored in
AWS Secrets Manager and referenced by ARN; the SecretString can be the raw
value or a JSON object holding it.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from botocore.exceptions import ClientError

from shared.aws_clients import get_secretsmanager
from shared.constants import (
    DEFAULT_PROFILES_EMAIL_INDEX,
    DEFAULT_PROFILES_TABLE,
    DEFAULT_SIGNATURE_TOLERANCE,
    DEFAULT_STRIPE_API_VERSION,
    PROFILE_STORE_DYNAMODB,
    PROFILE_STORE_SUPABASE,
    PROFILE_STORES,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookConfig:
    """Everything the webhook handler needs, resolved once per container."""

    stripe_secret_key: str = field(default="", repr=False)
    stripe_webhook_secret: str = field(default="", repr=False)
    stripe_api_version: str = DEFAULT_STRIPE_API_VERSION
    signature_tolerance: int = DEFAULT_SIGNATURE_TOLERANCE
    profile_store: str = PROFILE_STORE_SUPABASE
    supabase_url: str = ""
    supabase_service_role_key: str = field(default="", repr=False)
    profiles_table: str = DEFAULT_PROFILES_TABLE
    profiles_email_index: str = DEFAULT_PROFILES_EMAIL_INDEX

    def missing_settings(self) -> list[str]:
        """Return the names of required settings that are empty."""
        required = {
            "stripe_secret_key": self.stripe_secret_key,
            "stripe_webhook_secret": self.stripe_webhook_secret,
            "profiles_table": self.profiles_table,
        }
        if self.profile_store == PROFILE_STORE_SUPABASE:
            required["supabase_url"] = self.supabase_url
            required["supabase_service_role_key"] = self.supabase_service_role_key
        elif self.profile_store == PROFILE_STORE_DYNAMODB:
            required["profiles_email_index"] = self.profiles_email_index

        missing = [name for name, value in required.items() if not value]
        if self.profile_store not in PROFILE_STORES:
            missing.append("profile_store")
        return missing


def _read_secret(secret_arn: str, json_key: str) -> Optional[str]:
    """Fetch a secret from Secrets Manager, unwrapping ``{json_key: value}``."""
    try:
        response = get_secretsmanager().get_secret_value(SecretId=secret_arn)
    except ClientError as e:
        logger.error(f"Failed to retrieve secret {secret_arn}: {e}")
        return None

    secret_value = response.get("SecretString", "")
    try:
        secret_json = json.loads(secret_value)
    except json.JSONDecodeError:
        return secret_value
    if isinstance(secret_json, dict):
        return secret_json.get(json_key) or secret_value
    return secret_value


def _setting(env_name: str, arn_env_name: str, json_key: str) -> str:
    arn = os.environ.get(arn_env_name)
    if arn:
        return _read_secret(arn, json_key) or ""
    return os.environ.get(env_name, "")


def _tolerance_setting() -> int:
    value = os.environ.get("STRIPE_WEBHOOK_TOLERANCE")
    if not value:
        return DEFAULT_SIGNATURE_TOLERANCE
    try:
        return int(value)
    except ValueError:
        logger.warning(
            f"Invalid STRIPE_WEBHOOK_TOLERANCE {value!r}, using {DEFAULT_SIGNATURE_TOLERANCE}"
        )
        return DEFAULT_SIGNATURE_TOLERANCE


def load_config() -> WebhookConfig:
    """Build a WebhookConfig from the process environment."""
    return WebhookConfig(
        stripe_secret_key=_setting("STRIPE_SECRET_KEY", "STRIPE_SECRET_ARN", "key"),
        stripe_webhook_secret=_setting("STRIPE_WEBHOOK_SECRET", "STRIPE_WEBHOOK_SECRET_ARN", "secret"),
        # Use `or` to handle empty string env vars (CDK fallback sets "" when not configured)
        stripe_api_version=os.environ.get("STRIPE_API_VERSION") or DEFAULT_STRIPE_API_VERSION,
        signature_tolerance=_tolerance_setting(),
        profile_store=(os.environ.get("PROFILE_STORE") or PROFILE_STORE_SUPABASE).lower(),
        supabase_url=os.environ.get("SUPABASE_URL", ""),
        supabase_service_role_key=_setting(
            "SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_SERVICE_ROLE_KEY_ARN", "key"
        ),
        profiles_table=os.environ.get("PROFILES_TABLE") or DEFAULT_PROFILES_TABLE,
        profiles_email_index=os.environ.get("PROFILES_EMAIL_INDEX") or DEFAULT_PROFILES_EMAIL_INDEX,
    )
