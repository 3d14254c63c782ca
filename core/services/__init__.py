# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .interfaces import ObjectStorage, ProfileRepository, SessionStore
from .auth_service import AuthService
from .avatar_service import AvatarService
from .profile_repository import SupabaseProfileRepository
from .session_store import SupabaseSessionStore
from .storage_service import SupabaseObjectStorage

__all__ = [
    "AuthService",
    "AvatarService",
    "ObjectStorage",
    "ProfileRepository",
    "SessionStore",
    "SupabaseObjectStorage",
    "SupabaseProfileRepository",
    "SupabaseSessionStore",
]
