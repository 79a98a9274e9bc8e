"""
Shared constants for TierSync.
"""

# Stripe
CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
DEFAULT_STRIPE_API_VERSION = "2024-06-20"
DEFAULT_SIGNATURE_TOLERANCE = 300  # seconds, matches Stripe's library default

# Line items are omitted from webhook payloads unless explicitly expanded
CHECKOUT_SESSION_EXPAND = ["line_items.data.price"]

# Metadata key carrying the subscription tier (on prices and on sessions)
TIER_METADATA_KEY = "tier"

# Profile store backends
PROFILE_STORE_SUPABASE = "supabase"
PROFILE_STORE_DYNAMODB = "dynamodb"
PROFILE_STORES = [PROFILE_STORE_SUPABASE, PROFILE_STORE_DYNAMODB]

DEFAULT_PROFILES_TABLE = "profiles"
DEFAULT_PROFILES_EMAIL_INDEX = "email-index"

# Handler config is rebuilt after this many seconds so rotated secrets load
CONFIG_CACHE_TTL = 300
