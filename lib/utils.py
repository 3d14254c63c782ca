# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common helpers used across the application.
# =============================================================================

import re
from urllib.parse import quote
from uuid import UUID

# Same shape check the sign-up form uses: something@something.tld, no spaces
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

GENERATED_AVATAR_BASE_URL = "https://ui-avatars.com/api/"


# =============================================================================
# UUID Utilities
# =============================================================================

def normalize_uuid(value: str | UUID) -> str:
    """
    Normalize a UUID to string format.

    Handles both string and UUID objects, ensuring consistent string output.

    Args:
        value: UUID as string or UUID object

    Returns:
        String representation of the UUID

    Example:
        user_id = normalize_uuid(uuid_obj)  # "550e8400-..."
        user_id = normalize_uuid("550e8400-...")  # "550e8400-..."
    """
    return str(value) if isinstance(value, UUID) else value


# =============================================================================
# Identity Helpers
# =============================================================================

def is_valid_email(email: str) -> bool:
    """Check that an email has the basic local@domain.tld shape."""
    return bool(EMAIL_PATTERN.match(email or ""))


def display_name_from_email(email: str | None) -> str:
    """
    Fallback display name for users who never gave one.

    Example:
        display_name_from_email("mario.rossi@example.com")  # "mario.rossi"
    """
    if not email:
        return ""
    return email.split("@", 1)[0]


def generated_avatar_url(name: str) -> str:
    """
    Initials avatar served by ui-avatars.com for a display name.

    Example:
        generated_avatar_url("Mario Rossi")
        # "https://ui-avatars.com/api/?name=Mario%20Rossi&background=random"
    """
    return f"{GENERATED_AVATAR_BASE_URL}?name={quote(name, safe='')}&background=random"
