# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed async Supabase wrapper (singleton client,
#   profile row queries)
# - utils.py: Shared helpers (UUID normalization, email checks, generated
#   avatars)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import (
    display_name_from_email,
    generated_avatar_url,
    is_valid_email,
    normalize_uuid,
)

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Utils
    "display_name_from_email",
    "generated_avatar_url",
    "is_valid_email",
    "normalize_uuid",
]
