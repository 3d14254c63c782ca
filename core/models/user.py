# =============================================================================
# core/models/user.py - Current User & Lifecycle Schemas
# =============================================================================
# These models are what dependent views observe:
# - CurrentUser: merged projection of Identity + ProfileRecord
# - ReadinessState: whether the initial session check has finished
# - AuthSnapshot: (readiness, user, loading) published on every change
# - NavigationTarget / Notice: side-channel signals for views
# - ProfileView: data shaped for the profile page
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lib.utils import display_name_from_email

from .identity import Identity
from .profile import ProfileRecord, ProfileStats


class ReadinessState(str, Enum):
    """
    Whether views can trust CurrentUser yet.

    Flow: resolving -> ready (once per process, never back)
    """
    RESOLVING = "resolving"
    READY = "ready"


class NavigationTarget(str, Enum):
    """Where views should go after an auth transition."""
    AUTHENTICATED_LANDING = "authenticated_landing"
    PUBLIC_LANDING = "public_landing"


class NoticeLevel(str, Enum):
    INFO = "info"
    ERROR = "error"


class Notice(BaseModel):
    """
    A user-facing message (toast) produced by an operation.

    Every failed operation produces exactly one error notice.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    message: str
    level: NoticeLevel = NoticeLevel.INFO


class CurrentUser(BaseModel):
    """
    The signed-in user as views see it.

    Name and avatar prefer the profile row, then identity metadata.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    email: str | None = None
    display_name: str = ""
    avatar_url: str = ""
    bio: str = ""
    location: str = ""
    badges: list[str] = Field(default_factory=list)
    stats: ProfileStats = Field(default_factory=ProfileStats)
    created_at: datetime | None = None

    @classmethod
    def from_identity(
        cls,
        identity: Identity,
        profile: ProfileRecord | None = None,
    ) -> "CurrentUser":
        """
        Project an identity and (optionally) its profile row.

        Without a profile row the user still gets a name and avatar from
        identity metadata, so a failed profile fetch never blanks the UI.
        """
        display_name = (
            (profile.full_name if profile else "")
            or identity.metadata_name
            or display_name_from_email(identity.email)
        )
        avatar_url = (profile.avatar_url if profile else "") or identity.metadata_avatar_url or ""

        return cls(
            id=identity.id,
            email=identity.email,
            display_name=display_name,
            avatar_url=avatar_url,
            bio=profile.bio if profile else "",
            location=profile.location if profile else "",
            badges=list(profile.badges) if profile else [],
            stats=profile.stats if profile else ProfileStats(),
            created_at=identity.created_at,
        )

    def with_profile_fields(self, fields: dict[str, Any]) -> "CurrentUser":
        """Copy with profile column values applied (full_name -> display_name)."""
        update = dict(fields)
        if "full_name" in update:
            update["display_name"] = update.pop("full_name")
        update = {key: value for key, value in update.items() if key in type(self).model_fields}
        return self.model_copy(update=update)


class AuthSnapshot(BaseModel):
    """What views render from: published after every state change."""

    model_config = ConfigDict(frozen=True)

    readiness: ReadinessState = ReadinessState.RESOLVING
    user: CurrentUser | None = None
    loading: bool = False

    @property
    def is_ready(self) -> bool:
        return self.readiness is ReadinessState.READY

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class ProfileView(BaseModel):
    """
    Profile page data.

    Example:
        {
            "name": "Mario Rossi",
            "username": "@mario",
            "avatar": "https://...",
            "join_date": "January 2024",
            "badges": ["Nuovo Membro"],
            "stats": {"followers": 0, "following": 0, "events": 0, "roads": 0}
        }
    """

    name: str
    username: str
    avatar: str
    join_date: str
    bio: str
    location: str
    badges: list[str]
    stats: ProfileStats

    @classmethod
    def from_user(cls, user: CurrentUser) -> "ProfileView":
        return cls(
            name=user.display_name,
            username=f"@{display_name_from_email(user.email)}" if user.email else "",
            avatar=user.avatar_url,
            join_date=user.created_at.strftime("%B %Y") if user.created_at else "",
            bio=user.bio,
            location=user.location,
            badges=list(user.badges),
            stats=user.stats,
        )
