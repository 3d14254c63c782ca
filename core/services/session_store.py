# =============================================================================
# core/services/session_store.py - Supabase Auth Session Store
# =============================================================================
# SessionStore implementation on top of Supabase Auth. Converts SDK users
# and sessions into Identity models and SDK event names into
# AuthChangeEvent. SDK auth errors are re-raised untouched; the auth
# service decides what they mean to the user.
# =============================================================================

import logging
from typing import Any

from app.exceptions import AuthError, AuthErrorKind
from core.models.identity import AuthChangeEvent, Identity
from core.services.interfaces import SessionChangeCallback, SessionSubscription
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


def identity_from_user(user: Any, session: Any = None) -> Identity:
    """
    Convert a Supabase auth user (and optional session) to an Identity.

    Args:
        user: supabase_auth User
        session: supabase_auth Session the user came with, if any
    """
    return Identity(
        id=str(user.id),
        email=user.email,
        metadata=dict(user.user_metadata or {}),
        created_at=user.created_at,
        access_token=getattr(session, "access_token", None),
    )


class SupabaseSessionStore:
    """
    Session store backed by the shared Supabase client.

    The client keeps the session in memory, so every instance of this class
    sees the same signed-in user.
    """

    async def get_current_session(self) -> Identity | None:
        client = await SupabaseClient.get_client()
        session = await client.auth.get_session()

        if session is None or session.user is None:
            return None
        return identity_from_user(session.user, session)

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        client = await SupabaseClient.get_client()
        response = await client.auth.sign_in_with_password({
            "email": email,
            "password": password,
        })

        if not response.user:
            raise AuthError(
                AuthErrorKind.UNKNOWN,
                "sign_in",
                message="Sign-in failed: no user was returned.",
            )

        logger.info(f"Signed in user {response.user.id}")
        return identity_from_user(response.user, response.session)

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
    ) -> Identity | None:
        client = await SupabaseClient.get_client()
        response = await client.auth.sign_up({
            "email": email,
            "password": password,
            "options": {"data": metadata},
        })

        if not response.user:
            return None

        logger.info(f"Registered user {response.user.id}")
        return identity_from_user(response.user, response.session)

    async def sign_out(self) -> None:
        client = await SupabaseClient.get_client()
        await client.auth.sign_out()

    async def update_metadata(self, fields: dict[str, Any]) -> None:
        client = await SupabaseClient.get_client()
        await client.auth.update_user({"data": fields})

    async def on_session_change(self, callback: SessionChangeCallback) -> SessionSubscription:
        """
        Forward Supabase auth state changes to `callback`.

        Returns:
            The SDK subscription; call unsubscribe() to detach
        """
        client = await SupabaseClient.get_client()

        def forward(event: str, session: Any) -> None:
            user = getattr(session, "user", None)
            identity = identity_from_user(user, session) if user else None
            callback(AuthChangeEvent.parse(event), identity)

        return client.auth.on_auth_state_change(forward)
