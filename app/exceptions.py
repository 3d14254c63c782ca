# =============================================================================
# app/exceptions.py - Custom Exceptions
# =============================================================================
# Centralized error taxonomy for the auth & profile lifecycle.
# Errors should tell HOW to fix, not just WHAT failed: every exception
# carries a user-facing message plus a machine-readable code.
#
# Taxonomy:
#   ConfigurationError  - Supabase not configured, never reaches the network
#   ValidationError     - input rejected client-side, never reaches the network
#   AuthError           - remote rejected credentials/registration (has a kind)
#   NotFoundError       - internal only, always repaired locally
#   TransientError      - any other remote failure
# =============================================================================

from enum import Enum
from typing import Any, Literal


class CarPassionHubException(Exception):
    """
    Base exception for CarPassionHub.

    All custom exceptions inherit from this class.
    Provides structured errors with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "CARPASSIONHUB_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.suggestion = suggestion
        self.details = details or {}

    @property
    def user_message(self) -> str:
        """Message safe to show in a notice."""
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Configuration / Validation
# =============================================================================

class ConfigurationError(CarPassionHubException):
    """Raised when Supabase is not configured for this process."""

    def __init__(self, message: str = "Supabase is not configured correctly."):
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            suggestion="Set SUPABASE_URL and SUPABASE_ANON_KEY in your .env file",
        )


class ValidationError(CarPassionHubException):
    """Raised when user input is rejected before any network call."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field": field} if field else None,
        )
        self.field = field


# =============================================================================
# Auth Exceptions
# =============================================================================

class AuthErrorKind(str, Enum):
    """
    Why the identity provider rejected a request.

    Used only to pick the user-facing message.
    """
    INVALID_CREDENTIALS = "invalid_credentials"
    WEAK_PASSWORD = "weak_password"
    INVALID_EMAIL = "invalid_email"
    ALREADY_REGISTERED = "already_registered"
    UNKNOWN = "unknown"


AUTH_ERROR_MESSAGES: dict[AuthErrorKind, str] = {
    AuthErrorKind.INVALID_CREDENTIALS: "Invalid credentials. Check your email and password.",
    AuthErrorKind.WEAK_PASSWORD: "The password is too weak. It must contain at least 6 characters.",
    AuthErrorKind.INVALID_EMAIL: "The email address is not valid.",
    AuthErrorKind.ALREADY_REGISTERED: "This email address is already registered.",
}

GENERIC_FAILURE_MESSAGES: dict[str, str] = {
    "sign_in": "An error occurred while signing in.",
    "sign_up": "An error occurred during registration.",
    "sign_out": "An error occurred while signing out.",
    "update_profile": "An error occurred while updating the profile.",
    "update_avatar": "An error occurred while updating the profile picture.",
}

# (error code, message fragment) signatures, checked in order
_AUTH_SIGNATURES: list[tuple[AuthErrorKind, tuple[str, ...], tuple[str, ...]]] = [
    (
        AuthErrorKind.INVALID_CREDENTIALS,
        ("invalid_credentials",),
        ("Invalid login credentials",),
    ),
    (
        AuthErrorKind.WEAK_PASSWORD,
        ("weak_password",),
        ("weak_password", "Password should be at least"),
    ),
    (
        AuthErrorKind.INVALID_EMAIL,
        ("email_address_invalid", "validation_failed"),
        ("email_address_invalid", "Unable to validate email address"),
    ),
    (
        AuthErrorKind.ALREADY_REGISTERED,
        ("user_already_exists", "email_exists"),
        ("User already registered",),
    ),
]

_SESSION_MISSING_SIGNATURES = ("session_not_found", "Auth session missing")


class AuthError(CarPassionHubException):
    """Raised when Supabase Auth rejects a sign-in or registration."""

    def __init__(
        self,
        kind: AuthErrorKind,
        operation: str,
        message: str | None = None,
        remote_message: str | None = None,
    ):
        super().__init__(
            message=message or AUTH_ERROR_MESSAGES.get(kind) or GENERIC_FAILURE_MESSAGES[operation],
            code=f"AUTH_{kind.value.upper()}",
            details={"operation": operation, "remote_message": remote_message} if remote_message else {"operation": operation},
        )
        self.kind = kind
        self.operation = operation


# =============================================================================
# Remote / Storage Exceptions
# =============================================================================

class NotFoundError(CarPassionHubException):
    """Base for records that do not exist remotely."""


class ProfileNotFoundError(NotFoundError):
    """Raised when a user has no row in the profiles table."""

    def __init__(self, user_id: str):
        super().__init__(
            message=f"Profile not found: {user_id}",
            code="PROFILE_NOT_FOUND",
            details={"user_id": user_id},
        )
        self.user_id = user_id


class TransientError(CarPassionHubException):
    """Raised for remote failures that are not the user's fault."""

    def __init__(
        self,
        message: str,
        code: str = "TRANSIENT_ERROR",
        suggestion: str | None = "Try again later",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, code=code, suggestion=suggestion, details=details)


class ProfileAlreadyExistsError(TransientError):
    """Raised when inserting a profile row for a user that already has one."""

    def __init__(self, user_id: str):
        super().__init__(
            message=f"Profile already exists: {user_id}",
            code="PROFILE_ALREADY_EXISTS",
            suggestion="Fetch the existing profile instead of creating it",
            details={"user_id": user_id},
        )
        self.user_id = user_id


class StorageUploadError(TransientError):
    """Raised when an upload to Supabase Storage fails."""

    def __init__(self, path: str, error: str):
        super().__init__(
            message=f"Failed to upload file to storage: {error}",
            code="STORAGE_UPLOAD_ERROR",
            details={"path": path, "error": error},
        )


# =============================================================================
# Translation helpers
# =============================================================================

def _remote_signature(exc: BaseException) -> tuple[str, str]:
    return str(getattr(exc, "code", "") or ""), str(getattr(exc, "message", "") or exc)


def classify_auth_error(exc: BaseException) -> AuthErrorKind:
    """
    Map a Supabase Auth failure to an AuthErrorKind.

    Matches on the SDK's error code first, then on the message text,
    since older GoTrue versions only put the reason in the message.
    """
    code, message = _remote_signature(exc)
    for kind, codes, fragments in _AUTH_SIGNATURES:
        if code in codes or any(fragment in message for fragment in fragments):
            return kind
    return AuthErrorKind.UNKNOWN


def translate_auth_failure(
    exc: BaseException,
    operation: Literal["sign_in", "sign_up"],
) -> CarPassionHubException:
    """
    Turn an exception raised by the session store into our taxonomy.

    Errors coming from the auth API itself (they carry a `status` or
    `code`) become AuthError; anything else (network, timeouts) becomes
    TransientError with the operation's generic message.
    """
    if isinstance(exc, CarPassionHubException):
        return exc

    kind = classify_auth_error(exc)
    _, remote_message = _remote_signature(exc)

    if kind is AuthErrorKind.UNKNOWN and not (
        hasattr(exc, "status") or hasattr(exc, "code")
    ):
        return TransientError(
            message=GENERIC_FAILURE_MESSAGES[operation],
            code="AUTH_TRANSIENT_ERROR",
            details={"operation": operation, "remote_message": remote_message},
        )

    return AuthError(kind, operation, remote_message=remote_message)


def is_session_missing(exc: BaseException) -> bool:
    """True when the auth API says there is no session to act on."""
    code, message = _remote_signature(exc)
    return any(sig == code or sig in message for sig in _SESSION_MISSING_SIGNATURES)
