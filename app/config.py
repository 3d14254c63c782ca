# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# Supabase credentials are optional: when they are missing the auth service
# starts in a degraded "unconfigured" mode instead of refusing to import.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses pydantic-settings to:
    - Automatically load from .env file
    - Validate types and constraints
    - Provide sensible defaults for development

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # Empty values mean "not configured"; see supabase_configured below

    SUPABASE_URL: str = Field(
        default="",
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        default="",
        description="Supabase anon/public API key (user sessions go through RLS)"
    )

    PROFILES_TABLE: str = Field(
        default="profiles",
        description="Table holding one profile row per auth user"
    )

    AVATAR_BUCKET: str = Field(
        default="avatars",
        description="Storage bucket for uploaded avatar images"
    )

    # -------------------------------------------------------------------------
    # Auth Lifecycle Settings
    # -------------------------------------------------------------------------

    READINESS_TIMEOUT_SECONDS: float = Field(
        default=3.0,
        gt=0.0,
        le=60.0,
        description="Max time views wait for the initial session check"
    )

    SIGN_IN_NAVIGATION_DELAY_SECONDS: float = Field(
        default=0.1,
        ge=0.0,
        le=5.0,
        description="Delay before the post sign-in navigation safety net fires"
    )

    MIN_PASSWORD_LENGTH: int = Field(
        default=6,
        ge=1,
        le=128,
        description="Minimum password length accepted at sign-up"
    )

    DEFAULT_BADGE: str = Field(
        default="Nuovo Membro",
        min_length=1,
        description="Badge given to every newly provisioned profile"
    )

    AUTHENTICATED_LANDING_PATH: str = Field(
        default="/garage",
        description="Where views go after a sign-in"
    )

    PUBLIC_LANDING_PATH: str = Field(
        default="/",
        description="Where views go after a sign-out"
    )

    # -------------------------------------------------------------------------
    # Avatar Upload Settings
    # -------------------------------------------------------------------------

    MAX_AVATAR_SIZE_MB: int = Field(
        default=2,
        ge=1,
        le=50,
        description="Maximum avatar image size in MB"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging)"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level when DEBUG is off"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        # Load from .env file in project root
        env_file=".env",
        env_file_encoding="utf-8",
        # Treat empty env vars as unset so defaults apply
        env_ignore_empty=True,
        # Case-sensitive environment variable names
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def supabase_configured(self) -> bool:
        """True when both the project URL and the anon key are present."""
        return bool(self.SUPABASE_URL.strip() and self.SUPABASE_ANON_KEY.strip())

    @property
    def max_avatar_size_bytes(self) -> int:
        """
        Convert MB to bytes for avatar size validation.
        """
        return self.MAX_AVATAR_SIZE_MB * 1024 * 1024

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access. This is the recommended pattern for
    pydantic-settings.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
