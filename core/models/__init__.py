# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - identity.py: Identity (auth user) and AuthChangeEvent
# - profile.py: ProfileRecord (profiles table row), ProfileStats, ProfileUpdate
# - user.py: CurrentUser projection, readiness, snapshots, notices, views
#
# These models define the "contract" between the auth service and views.
# =============================================================================

# -----------------------------------------------------------------------------
# Identity Models - What Supabase Auth knows
# -----------------------------------------------------------------------------
from .identity import (
    AuthChangeEvent,
    Identity,
)

# -----------------------------------------------------------------------------
# Profile Models - One row per user in the profiles table
# -----------------------------------------------------------------------------
from .profile import (
    ProfileRecord,
    ProfileStats,
    ProfileUpdate,
)

# -----------------------------------------------------------------------------
# User Models - What views observe
# -----------------------------------------------------------------------------
from .user import (
    AuthSnapshot,
    CurrentUser,
    NavigationTarget,
    Notice,
    NoticeLevel,
    ProfileView,
    ReadinessState,
)

# -----------------------------------------------------------------------------
# __all__ - Explicit public API
# -----------------------------------------------------------------------------
__all__ = [
    # Identity
    "AuthChangeEvent",
    "Identity",
    # Profile
    "ProfileRecord",
    "ProfileStats",
    "ProfileUpdate",
    # User
    "AuthSnapshot",
    "CurrentUser",
    "NavigationTarget",
    "Notice",
    "NoticeLevel",
    "ProfileView",
    "ReadinessState",
]
