# =============================================================================
# core/models/profile.py - Profile Schemas
# =============================================================================
# These models define the shape of a row in the profiles table:
# - ProfileStats: the four community counters shown on the profile page
# - ProfileRecord: one row per auth user (name, avatar, bio, badges, stats)
# - ProfileUpdate: partial edit coming from the edit-profile form
#
# A profile row is created lazily the first time an identity resolves
# (or explicitly at sign-up) and is never deleted by this application.
# =============================================================================

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lib.utils import display_name_from_email, generated_avatar_url

from .identity import Identity


class ProfileStats(BaseModel):
    """
    Community counters for a profile.

    All counters start at zero for a new member.
    """

    followers: int = Field(default=0, ge=0)
    following: int = Field(default=0, ge=0)
    events: int = Field(default=0, ge=0)
    roads: int = Field(default=0, ge=0)


class ProfileRecord(BaseModel):
    """
    A row of the profiles table.

    Example:
        {
            "id": "550e8400-e29b-41d4-a716-446655440000",
            "full_name": "Mario Rossi",
            "avatar_url": "https://ui-avatars.com/api/?name=Mario%20Rossi&background=random",
            "bio": "",
            "location": "",
            "badges": ["Nuovo Membro"],
            "stats": {"followers": 0, "following": 0, "events": 0, "roads": 0}
        }
    """

    # Same id as the auth user; at most one row per user
    id: str = Field(
        ...,
        min_length=1,
        description="Auth user id (primary key)"
    )

    email: str | None = Field(
        default=None,
        description="Copy of the auth email, for display"
    )

    full_name: str = Field(
        default="",
        description="Display name"
    )

    avatar_url: str = Field(
        default="",
        description="Public URL of the avatar image"
    )

    bio: str = Field(default="")

    location: str = Field(default="")

    # Treated as a set: duplicates are dropped, order is not meaningful
    badges: list[str] = Field(
        default_factory=list,
        description="Badges earned by the member"
    )

    stats: ProfileStats = Field(default_factory=ProfileStats)

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("full_name", "avatar_url", "bio", "location", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        # Nullable text columns come back as None
        return "" if value is None else value

    @field_validator("badges", mode="before")
    @classmethod
    def _dedupe_badges(cls, value: Any) -> Any:
        if value is None:
            return []
        return list(dict.fromkeys(value))

    @field_validator("stats", mode="before")
    @classmethod
    def _null_stats(cls, value: Any) -> Any:
        return ProfileStats() if value is None else value

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ProfileRecord":
        """Build from a PostgREST row, ignoring columns we don't model."""
        return cls.model_validate({k: v for k, v in row.items() if k in cls.model_fields})

    def to_row(self) -> dict[str, Any]:
        """Column values for an insert; unset timestamps are left to the database."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def default_for(
        cls,
        identity: Identity,
        badge: str,
        full_name: str | None = None,
        avatar_url: str | None = None,
    ) -> "ProfileRecord":
        """
        Build the profile a new member starts with.

        Name comes from the explicit argument, then identity metadata, then
        the email's local part. Avatar comes from the explicit argument, then
        identity metadata, then a generated initials avatar.

        Args:
            identity: The auth user to provision for
            badge: The single badge every new member gets
            full_name: Name typed at sign-up, if known
            avatar_url: Avatar URL, if known

        Returns:
            ProfileRecord with zeroed stats
        """
        name = full_name or identity.metadata_name or display_name_from_email(identity.email)
        now = datetime.now(timezone.utc)
        return cls(
            id=identity.id,
            email=identity.email,
            full_name=name,
            avatar_url=avatar_url or identity.metadata_avatar_url or generated_avatar_url(name),
            badges=[badge],
            stats=ProfileStats(),
            created_at=now,
            updated_at=now,
        )


class ProfileUpdate(BaseModel):
    """
    Partial profile edit.

    Only fields that were explicitly set (and not None) are applied;
    everything else keeps its current value.

    Example:
        {"bio": "Car lover"}
    """

    model_config = ConfigDict(extra="forbid")

    full_name: str | None = Field(default=None, min_length=1)
    avatar_url: str | None = None
    bio: str | None = None
    location: str | None = None

    def changed_fields(self) -> dict[str, str]:
        """Fields the caller actually wants to change."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }
