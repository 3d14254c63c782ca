# =============================================================================
# core/models/identity.py - Identity Schemas
# =============================================================================
# These models describe what Supabase Auth knows about the signed-in person:
# - Identity: the auth user behind the current session
# - AuthChangeEvent: the kinds of session-change notifications we receive
#
# The lifecycle service never edits an Identity; it only changes through
# sign-in, sign-up, sign-out and metadata updates on the session store.
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuthChangeEvent(str, Enum):
    """
    Session-change notifications emitted by Supabase Auth.

    Only SIGNED_IN and SIGNED_OUT drive navigation; every event triggers
    a reconciliation pass.
    """
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    MFA_CHALLENGE_VERIFIED = "MFA_CHALLENGE_VERIFIED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: "str | AuthChangeEvent") -> "AuthChangeEvent":
        """Map an SDK event name to a member, UNKNOWN for new names."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class Identity(BaseModel):
    """
    The auth user behind a session.

    Example:
        {
            "id": "550e8400-e29b-41d4-a716-446655440000",
            "email": "mario@example.com",
            "metadata": {"full_name": "Mario Rossi"},
            "created_at": "2024-01-15T10:30:00Z"
        }
    """

    model_config = ConfigDict(frozen=True)

    # Supabase auth user id, also the primary key of the profiles table
    id: str = Field(
        ...,
        min_length=1,
        description="Auth user id"
    )

    email: str | None = Field(
        default=None,
        description="Email used to sign in"
    )

    # user_metadata bag; sign-up stores full_name here
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form user metadata from the identity provider"
    )

    created_at: datetime | None = Field(
        default=None,
        description="When the auth user was created"
    )

    access_token: str | None = Field(
        default=None,
        repr=False,
        description="Session access token, if this identity came with a session"
    )

    @property
    def metadata_name(self) -> str | None:
        """Display name supplied at sign-up, if any."""
        return self.metadata.get("full_name") or self.metadata.get("name") or None

    @property
    def metadata_avatar_url(self) -> str | None:
        """Avatar URL supplied by the identity provider, if any."""
        return self.metadata.get("avatar_url") or None
