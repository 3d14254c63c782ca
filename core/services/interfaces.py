# =============================================================================
# core/services/interfaces.py - Collaborator Contracts
# =============================================================================
# The auth service only talks to these protocols. Supabase implementations
# live next to this module; tests use in-memory fakes.
# =============================================================================

from typing import Any, Callable, Protocol

from core.models.identity import AuthChangeEvent, Identity
from core.models.profile import ProfileRecord

SessionChangeCallback = Callable[[AuthChangeEvent, Identity | None], None]


class SessionSubscription(Protocol):
    def unsubscribe(self) -> None: ...


class SessionStore(Protocol):
    """
    Holds the authoritative auth session.

    Auth failures are raised as the SDK raises them; the auth service
    translates them.
    """

    async def get_current_session(self) -> Identity | None: ...

    async def sign_in_with_password(self, email: str, password: str) -> Identity: ...

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
    ) -> Identity | None: ...

    async def sign_out(self) -> None: ...

    async def update_metadata(self, fields: dict[str, Any]) -> None: ...

    async def on_session_change(self, callback: SessionChangeCallback) -> SessionSubscription: ...


class ProfileRepository(Protocol):
    """
    One ProfileRecord per auth user id.

    get_profile raises ProfileNotFoundError when the row is missing;
    create_profile raises ProfileAlreadyExistsError on a duplicate id.
    """

    async def get_profile(self, user_id: str) -> ProfileRecord: ...

    async def create_profile(self, record: ProfileRecord) -> None: ...

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> None: ...


class ObjectStorage(Protocol):
    """Blob storage that hands back public URLs."""

    async def upload(self, path: str, content: bytes, content_type: str) -> str: ...

    async def remove(self, path: str) -> bool: ...
