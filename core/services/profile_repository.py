# =============================================================================
# core/services/profile_repository.py - Supabase Profile Repository
# =============================================================================
# ProfileRepository implementation over the profiles table.
# Separates row/PostgREST details from the auth lifecycle logic.
# =============================================================================

import logging
from typing import Any

from app.exceptions import ProfileAlreadyExistsError, ProfileNotFoundError, TransientError
from core.models.profile import ProfileRecord
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)


class SupabaseProfileRepository:
    """
    Profile rows stored in Supabase.

    Raises:
        ProfileNotFoundError: no row for the user id
        ProfileAlreadyExistsError: insert hit an existing row
        TransientError: anything else went wrong remotely
    """

    async def get_profile(self, user_id: str) -> ProfileRecord:
        try:
            row = await SupabaseClient.fetch_profile(user_id)
        except SupabaseClientError as e:
            logger.error(f"Failed to fetch profile {user_id}: {e}")
            raise TransientError(
                message="Could not load the profile.",
                code=e.code,
                details=e.details,
            ) from e

        if not row:
            raise ProfileNotFoundError(user_id)
        return ProfileRecord.from_row(row)

    async def create_profile(self, record: ProfileRecord) -> None:
        try:
            await SupabaseClient.insert_profile(record.to_row())
        except SupabaseClientError as e:
            if e.code == "PROFILE_EXISTS":
                raise ProfileAlreadyExistsError(record.id) from e
            logger.error(f"Failed to create profile {record.id}: {e}")
            raise TransientError(
                message="Could not create the profile.",
                code=e.code,
                details=e.details,
            ) from e

        logger.info(f"Created profile for user {record.id}")

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> None:
        try:
            row = await SupabaseClient.update_profile(user_id, fields)
        except SupabaseClientError as e:
            logger.error(f"Failed to update profile {user_id}: {e}")
            raise TransientError(
                message="Could not update the profile.",
                code=e.code,
                details=e.details,
            ) from e

        # No row back means nothing matched (missing row or RLS)
        if row is None:
            raise ProfileNotFoundError(user_id)
