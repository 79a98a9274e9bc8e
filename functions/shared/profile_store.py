"""
Profile stores.

A profile store applies a tier to the existing profile(s) matching an email.
It never creates profiles: a customer who paid before signing up simply has
nothing to update, and that counts as success.
"""

import logging
import time
from datetime import datetime, timezone

import httpx
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from postgrest.exceptions import APIError as PostgrestAPIError

from shared.aws_clients import get_dynamodb
from shared.constants import PROFILE_STORE_DYNAMODB, PROFILE_STORE_SUPABASE
from shared.errors import ConfigurationError, StoreUpdateError
from shared.logging_utils import log_external_call, mask_email

logger = logging.getLogger(__name__)


class ProfileStore:
    """Interface consumed by the webhook handler."""

    name = "profiles"

    def update_tier(self, email: str, tier: str) -> int:
        """Set ``tier`` on every profile whose email equals ``email``.

        Returns:
            Number of profiles updated (0 when nobody matched)

        Raises:
            StoreUpdateError: if the store call fails
        """
        raise NotImplementedError


class SupabaseProfileStore(ProfileStore):
    """Profiles in a Supabase (PostgREST) table, updated with the service-role key."""

    name = "supabase"

    def __init__(self, url: str, service_role_key: str, table: str = "profiles", client=None):
        self.url = url
        self.service_role_key = service_role_key
        self.table = table
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from supabase import create_client
            self._client = create_client(self.url, self.service_role_key)
        return self._client

    def update_tier(self, email: str, tier: str) -> int:
        start = time.time()
        try:
            result = (
                self.client
                .table(self.table)
                .update({"tier": tier})
                .eq("email", email)
                .execute()
            )
        except (PostgrestAPIError, httpx.HTTPError) as e:
            log_external_call(
                logger, "supabase", f"{self.table}.update", False,
                (time.time() - start) * 1000, error=str(e),
            )
            raise StoreUpdateError(f"Profile update failed: {getattr(e, 'message', None) or e}")

        log_external_call(logger, "supabase", f"{self.table}.update", True, (time.time() - start) * 1000)
        updated = len(result.data or [])
        if not updated:
            logger.info(f"No profile found for {mask_email(email)}; nothing to update")
        return updated


class DynamoProfileStore(ProfileStore):
    """Profiles in a DynamoDB table keyed by ``pk`` with an email GSI."""

    name = "dynamodb"

    def __init__(self, table: str = "profiles", email_index: str = "email-index"):
        self.table_name = table
        self.email_index = email_index

    def update_tier(self, email: str, tier: str) -> int:
        table = get_dynamodb().Table(self.table_name)
        start = time.time()

        try:
            items = []
            query_kwargs = {
                "IndexName": self.email_index,
                "KeyConditionExpression": Key("email").eq(email),
                "ProjectionExpression": "pk",
            }
            while True:
                response = table.query(**query_kwargs)
                items.extend(response.get("Items", []))
                if "LastEvaluatedKey" not in response:
                    break
                query_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

            updated = 0
            now = datetime.now(timezone.utc).isoformat()
            for item in items:
                try:
                    table.update_item(
                        Key={"pk": item["pk"]},
                        UpdateExpression="SET tier = :tier, tier_updated_at = :now",
                        ConditionExpression="attribute_exists(pk)",
                        ExpressionAttributeValues={":tier": tier, ":now": now},
                    )
                    updated += 1
                except ClientError as e:
                    # Profile deleted between the query and the update
                    if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
                        raise
        except ClientError as e:
            log_external_call(
                logger, "dynamodb", f"{self.table_name}.update_item", False,
                (time.time() - start) * 1000, error=str(e),
            )
            raise StoreUpdateError(f"Profile update failed: {e.response['Error']['Code']}")

        log_external_call(
            logger, "dynamodb", f"{self.table_name}.update_item", True, (time.time() - start) * 1000
        )
        if not updated:
            logger.info(f"No profile found for {mask_email(email)}; nothing to update")
        return updated


def build_profile_store(config) -> ProfileStore:
    """Create the store selected by ``config.profile_store``."""
    if config.profile_store == PROFILE_STORE_SUPABASE:
        return SupabaseProfileStore(
            config.supabase_url, config.supabase_service_role_key, config.profiles_table
        )
    if config.profile_store == PROFILE_STORE_DYNAMODB:
        return DynamoProfileStore(config.profiles_table, config.profiles_email_index)
    raise ConfigurationError(["profile_store"])
