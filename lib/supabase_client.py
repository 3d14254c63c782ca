# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single async client
# connection (and therefore a single auth session) for the whole process,
# and provides specialized methods for the profiles table:
# - Fetching a profile row by user id
# - Inserting a freshly provisioned profile row
# - Updating selected profile columns
#
# Auth and Storage calls go straight through `get_client()`; see
# core/services/session_store.py and core/services/storage_service.py.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   row = await SupabaseClient.fetch_profile(user_id)
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from supabase import AsyncClient, acreate_client

from app.config import settings
from lib.utils import normalize_uuid

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code for "no rows" on .single()
NO_ROWS_CODE = "PGRST116"
# Postgres unique_violation
UNIQUE_VIOLATION_CODE = "23505"


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Provides actionable error messages: errors should tell HOW to fix,
    not just WHAT failed.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


def _has_code(error: Exception, code: str) -> bool:
    return getattr(error, "code", None) == code or code in str(error)


class SupabaseClient:
    """
    Typed wrapper for Supabase operations.

    Implements singleton pattern - one async client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Uses the anon key: requests run as the signed-in user, so Row Level
    Security decides which profile rows are visible and writable.

    Example:
        if SupabaseClient.is_configured():
            row = await SupabaseClient.fetch_profile("550e8400-...")
            name = row["full_name"] if row else None
    """

    _instance: AsyncClient | None = None
    _lock: asyncio.Lock | None = None

    @classmethod
    def is_configured(cls) -> bool:
        """True when SUPABASE_URL and SUPABASE_ANON_KEY are both set."""
        return settings.supabase_configured

    @classmethod
    async def get_client(cls) -> AsyncClient:
        """
        Get or create the singleton Supabase client.

        Returns:
            AsyncClient: Supabase client instance

        Raises:
            SupabaseClientError: If Supabase is not configured or client
                creation fails
        """
        if cls._instance is not None:
            return cls._instance

        if not cls.is_configured():
            raise SupabaseClientError(
                message="Supabase is not configured",
                code="CLIENT_NOT_CONFIGURED",
                suggestion="Set SUPABASE_URL and SUPABASE_ANON_KEY in your .env file"
            )

        if cls._lock is None:
            cls._lock = asyncio.Lock()

        async with cls._lock:
            if cls._instance is None:
                try:
                    cls._instance = await acreate_client(
                        settings.SUPABASE_URL,
                        settings.SUPABASE_ANON_KEY
                    )
                    logger.info("Supabase client initialized successfully")
                except Exception as e:
                    raise SupabaseClientError(
                        message=f"Failed to create Supabase client: {e}",
                        code="CLIENT_INIT_FAILED",
                        suggestion="Check SUPABASE_URL and SUPABASE_ANON_KEY in your .env file"
                    ) from e
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the cached client (used by tests and on settings reload)."""
        cls._instance = None
        cls._lock = None

    # -------------------------------------------------------------------------
    # Profile Rows
    # -------------------------------------------------------------------------

    @classmethod
    async def fetch_profile(cls, user_id: str | UUID) -> dict[str, Any] | None:
        """
        Fetch a profile row by user id.

        Args:
            user_id: The auth user's id (primary key of the profiles table)

        Returns:
            Profile dict with all columns, or None if the row doesn't exist

        Raises:
            SupabaseClientError: If query fails
        """
        client = await cls.get_client()
        user_id_str = normalize_uuid(user_id)

        try:
            response = await (
                client.table(settings.PROFILES_TABLE)
                .select("*")
                .eq("id", user_id_str)
                .single()
                .execute()
            )

            return response.data

        except Exception as e:
            if _has_code(e, NO_ROWS_CODE):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch profile: {e}",
                code="FETCH_PROFILE_FAILED",
                suggestion="Check that the profiles table exists and RLS allows reading your own row",
                details={"user_id": user_id_str}
            ) from e

    @classmethod
    async def insert_profile(cls, row: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a new profile row.

        Args:
            row: Column values; must include "id"

        Returns:
            Inserted row as returned by PostgREST

        Raises:
            SupabaseClientError: code "PROFILE_EXISTS" on a primary key
                conflict, "INSERT_PROFILE_FAILED" otherwise
        """
        client = await cls.get_client()

        try:
            response = await (
                client.table(settings.PROFILES_TABLE)
                .insert(row)
                .execute()
            )

            if response.data:
                logger.debug(f"Inserted profile row for {row.get('id')}")
                return response.data[0]
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA"
            )

        except SupabaseClientError:
            raise
        except Exception as e:
            if _has_code(e, UNIQUE_VIOLATION_CODE):
                raise SupabaseClientError(
                    message=f"Profile already exists: {row.get('id')}",
                    code="PROFILE_EXISTS",
                    details={"user_id": row.get("id")}
                ) from e
            raise SupabaseClientError(
                message=f"Failed to insert profile: {e}",
                code="INSERT_PROFILE_FAILED",
                details={"user_id": row.get("id")}
            ) from e

    @classmethod
    async def update_profile(
        cls,
        user_id: str | UUID,
        fields: dict[str, Any],
    ) -> dict[str, Any] | None:
        """
        Update selected columns of a profile row.

        Always stamps updated_at.

        Args:
            user_id: The auth user's id
            fields: Columns to set

        Returns:
            Updated row, or None if PostgREST returned nothing (row missing
            or hidden by RLS)

        Raises:
            SupabaseClientError: If update fails
        """
        client = await cls.get_client()
        user_id_str = normalize_uuid(user_id)

        data = {**fields, "updated_at": datetime.now(timezone.utc).isoformat()}

        try:
            response = await (
                client.table(settings.PROFILES_TABLE)
                .update(data)
                .eq("id", user_id_str)
                .execute()
            )

            if response.data:
                logger.debug(f"Updated profile {user_id_str}: {sorted(fields)}")
                return response.data[0]
            return None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update profile: {e}",
                code="UPDATE_PROFILE_FAILED",
                details={"user_id": user_id_str, "fields": sorted(fields)}
            ) from e
