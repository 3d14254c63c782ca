# =============================================================================
# tests/test_auth_operations.py - Auth Operation Tests
# =============================================================================
# Tests for the operations views call:
# - sign_in / sign_up / sign_out
# - update_profile / update_avatar
#
# Each operation is checked for its remote effects, CurrentUser, the
# navigation signals and the user-facing notices it produces.
# =============================================================================

import asyncio

import pytest

from app.exceptions import (
    AuthError,
    AuthErrorKind,
    ConfigurationError,
    TransientError,
    ValidationError,
)
from core.models import AuthChangeEvent, Identity, NavigationTarget, NoticeLevel, ProfileUpdate
from core.services.auth_service import AuthService

from tests.conftest import FakeAuthApiError, Recorder, settle


async def started(service: AuthService) -> AuthService:
    await service.start()
    await asyncio.wait_for(service.wait_until_ready(), timeout=1.0)
    return service


# =============================================================================
# Sign-in
# =============================================================================

class TestSignIn:
    """Test AuthService.sign_in."""

    @pytest.mark.asyncio
    async def test_unconfigured_fails_fast(self):
        service = AuthService(None, None)
        recorder = Recorder(service)

        with pytest.raises(ConfigurationError):
            await service.sign_in("a@b.com", "secret123")

        assert len(recorder.error_notices) == 1

    @pytest.mark.asyncio
    async def test_empty_credentials_never_reach_store(self, service, session_store):
        await started(service)

        with pytest.raises(ValidationError):
            await service.sign_in("", "secret123")

        assert "sign_in_with_password" not in session_store.calls

    @pytest.mark.asyncio
    async def test_success_populates_user_and_navigates_once(self, service, recorder, session_store, profiles):
        await started(service)
        session_store.add_user("a@b.com", "secret123", {"full_name": "Anna"}, user_id="u1")

        identity = await service.sign_in("a@b.com", "secret123")
        await settle(0.05)

        assert identity.id == "u1"
        assert service.user.id == "u1"
        assert service.user.display_name == "Anna"
        assert recorder.navigation == [NavigationTarget.AUTHENTICATED_LANDING]
        assert recorder.notices[-1].message == "Welcome to CarPassionHub!"
        assert profiles.inserts == 1

    @pytest.mark.asyncio
    async def test_loading_flag_is_set_then_cleared(self, service, recorder, session_store):
        await started(service)
        session_store.add_user("a@b.com", "secret123")

        await service.sign_in("a@b.com", "secret123")

        loading = [snapshot.loading for snapshot in recorder.snapshots]
        assert True in loading
        assert service.loading is False

    @pytest.mark.asyncio
    async def test_success_without_notification_still_reconciles(self, service, session_store):
        await started(service)
        session_store.add_user("a@b.com", "secret123", user_id="u1")
        session_store.notify_on_change = False

        await service.sign_in("a@b.com", "secret123")
        await settle()

        assert service.user.id == "u1"

    @pytest.mark.asyncio
    async def test_invalid_credentials_message(self, service, recorder, session_store):
        await started(service)
        session_store.add_user("a@b.com", "secret123")

        with pytest.raises(AuthError) as exc_info:
            await service.sign_in("a@b.com", "wrong-password")

        assert exc_info.value.kind is AuthErrorKind.INVALID_CREDENTIALS
        assert recorder.error_notices[-1].message == "Invalid credentials. Check your email and password."
        assert len(recorder.error_notices) == 1
        assert service.loading is False
        assert service.user is None

    @pytest.mark.asyncio
    async def test_network_failure_is_transient_with_generic_message(self, service, recorder, session_store):
        await started(service)
        session_store.sign_in_error = ConnectionError("connection reset")

        with pytest.raises(TransientError):
            await service.sign_in("a@b.com", "secret123")

        assert recorder.error_notices[-1].message == "An error occurred while signing in."

    @pytest.mark.asyncio
    async def test_failed_sign_in_does_not_navigate(self, service, recorder, session_store):
        await started(service)

        with pytest.raises(AuthError):
            await service.sign_in("nobody@b.com", "secret123")
        await settle()

        assert recorder.navigation == []

    @pytest.mark.asyncio
    async def test_cancelled_sign_in_keeps_notification_navigation(self, service, recorder, session_store, profiles):
        await started(service)

        async def hang(email, password):
            await asyncio.Event().wait()

        session_store.sign_in_with_password = hang

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(service.sign_in("a@b.com", "secret123"), timeout=0.05)
        assert service.loading is False

        session_store.emit(AuthChangeEvent.SIGNED_IN, Identity(id="u1", email="a@b.com"))
        await settle()

        assert service.user.id == "u1"
        assert recorder.navigation == [NavigationTarget.AUTHENTICATED_LANDING]


# =============================================================================
# Sign-up
# =============================================================================

class TestSignUp:
    """Test AuthService.sign_up."""

    @pytest.mark.asyncio
    async def test_short_password_never_reaches_store(self, service, recorder, session_store):
        await started(service)

        with pytest.raises(ValidationError) as exc_info:
            await service.sign_up("a@b.com", "12345", "Anna")

        assert exc_info.value.message == "password must be at least 6 characters."
        assert "sign_up" not in session_store.calls
        assert len(recorder.error_notices) == 1

    @pytest.mark.asyncio
    async def test_malformed_email_never_reaches_store(self, service, session_store):
        await started(service)

        with pytest.raises(ValidationError) as exc_info:
            await service.sign_up("not-an-email", "secret123", "Anna")

        assert exc_info.value.field == "email"
        assert "sign_up" not in session_store.calls

    @pytest.mark.asyncio
    async def test_mismatched_confirmation_never_reaches_store(self, service, session_store):
        await started(service)

        with pytest.raises(ValidationError) as exc_info:
            await service.sign_up("a@b.com", "secret123", "Anna", confirm_password="secret124")

        assert exc_info.value.message == "passwords do not match."
        assert "sign_up" not in session_store.calls

    @pytest.mark.asyncio
    async def test_success_creates_profile_signs_in_and_navigates(
        self, service, recorder, session_store, profiles
    ):
        await started(service)

        user = await service.sign_up("anna@example.com", "secret123", "Anna Bianchi")
        await settle()

        assert session_store.calls.index("sign_up") < session_store.calls.index("sign_in_with_password")
        record = profiles.rows[user.id]
        assert record.full_name == "Anna Bianchi"
        assert record.badges == ["Nuovo Membro"]
        assert record.stats.model_dump() == {"followers": 0, "following": 0, "events": 0, "roads": 0}
        assert record.avatar_url == "https://ui-avatars.com/api/?name=Anna%20Bianchi&background=random"

        assert service.user == user
        assert user.display_name == "Anna Bianchi"
        assert recorder.navigation == [NavigationTarget.AUTHENTICATED_LANDING]
        assert recorder.notices[-1].message == "Your account has been created successfully."

    @pytest.mark.asyncio
    async def test_registration_metadata_carries_name(self, service, session_store):
        await started(service)

        await service.sign_up("anna@example.com", "secret123", "Anna")

        _, identity = session_store.users["anna@example.com"]
        assert identity.metadata == {"full_name": "Anna"}

    @pytest.mark.asyncio
    async def test_auto_session_on_registration_creates_one_profile(self, service, session_store, profiles):
        await started(service)
        session_store.sign_in_on_sign_up = True

        user = await service.sign_up("anna@example.com", "secret123", "Anna")
        await settle()

        assert profiles.inserts == 1
        assert list(profiles.rows) == [user.id]
        assert service.user.id == user.id

    @pytest.mark.parametrize(
        "remote_error, kind, message",
        [
            (
                FakeAuthApiError("Password should be at least 6 characters", code="weak_password", status=422),
                AuthErrorKind.WEAK_PASSWORD,
                "The password is too weak. It must contain at least 6 characters.",
            ),
            (
                FakeAuthApiError("Email address is invalid", code="email_address_invalid"),
                AuthErrorKind.INVALID_EMAIL,
                "The email address is not valid.",
            ),
            (
                FakeAuthApiError("User already registered", status=422),
                AuthErrorKind.ALREADY_REGISTERED,
                "This email address is already registered.",
            ),
            (
                FakeAuthApiError("Signups not allowed for this instance", code="signup_disabled", status=422),
                AuthErrorKind.UNKNOWN,
                "An error occurred during registration.",
            ),
        ],
    )
    @pytest.mark.asyncio
    async def test_remote_rejections_are_translated(
        self, service, recorder, session_store, remote_error, kind, message
    ):
        await started(service)
        session_store.sign_up_error = remote_error

        with pytest.raises(AuthError) as exc_info:
            await service.sign_up("anna@example.com", "secret123", "Anna")

        assert exc_info.value.kind is kind
        assert exc_info.value.message == message
        assert [notice.message for notice in recorder.error_notices] == [message]
        assert service.loading is False

    @pytest.mark.asyncio
    async def test_already_registered_email(self, service, session_store):
        await started(service)
        session_store.add_user("anna@example.com", "secret123")

        with pytest.raises(AuthError) as exc_info:
            await service.sign_up("anna@example.com", "secret123", "Anna")

        assert exc_info.value.kind is AuthErrorKind.ALREADY_REGISTERED

    @pytest.mark.asyncio
    async def test_failed_automatic_sign_in_keeps_account(self, service, recorder, session_store, profiles):
        await started(service)
        session_store.sign_in_error = FakeAuthApiError("Email not confirmed", code="email_not_confirmed")

        result = await service.sign_up("anna@example.com", "secret123", "Anna")

        assert result is None
        assert service.user is None
        assert len(profiles.rows) == 1
        assert recorder.notices[-1].title == "Account created"
        assert recorder.error_notices == []
        assert recorder.navigation == []

    @pytest.mark.asyncio
    async def test_profile_insert_failure_does_not_block_sign_up(self, service, profiles):
        await started(service)
        profiles.create_error = TransientError("insert failed")

        user = await service.sign_up("anna@example.com", "secret123", "Anna")

        assert user.display_name == "Anna"
        assert user.badges == ["Nuovo Membro"]


# =============================================================================
# Sign-out
# =============================================================================

class TestSignOut:
    """Test AuthService.sign_out."""

    @pytest.mark.asyncio
    async def test_clears_user_and_navigates_once(self, service, recorder, session_store, mario):
        await started(service)
        assert service.user is not None

        await service.sign_out()
        await settle()

        assert service.user is None
        assert recorder.navigation == [NavigationTarget.PUBLIC_LANDING]
        assert recorder.notices[-1].title == "Signed out"

    @pytest.mark.asyncio
    async def test_already_signed_out_is_not_an_error(self, service, recorder, session_store, mario):
        await started(service)
        session_store.sign_out_error = FakeAuthApiError("Auth session missing!", code="session_not_found")

        await service.sign_out()

        assert service.user is None
        assert recorder.error_notices == []
        assert recorder.navigation == [NavigationTarget.PUBLIC_LANDING]

    @pytest.mark.asyncio
    async def test_other_failure_keeps_user_and_does_not_raise(self, service, recorder, session_store, mario):
        await started(service)
        session_store.sign_out_error = ConnectionError("network down")

        await service.sign_out()

        assert service.user.id == "u2"
        assert len(recorder.error_notices) == 1
        assert recorder.navigation == []

    @pytest.mark.asyncio
    async def test_unconfigured_is_noop(self):
        service = AuthService(None, None)
        recorder = Recorder(service)

        await service.sign_out()

        assert recorder.navigation == []
        assert recorder.notices == []


# =============================================================================
# Profile Update
# =============================================================================

class TestUpdateProfile:
    """Test AuthService.update_profile."""

    @pytest.mark.asyncio
    async def test_without_user_returns_false(self, service, profiles):
        await started(service)

        assert await service.update_profile(bio="Car lover") is False
        assert profiles.updates == []

    @pytest.mark.asyncio
    async def test_unset_fields_keep_current_values(self, service, session_store, profiles, mario):
        await started(service)

        ok = await service.update_profile(ProfileUpdate(bio="Car lover"))

        assert ok is True
        record = profiles.rows["u2"]
        assert record.full_name == "Mario"
        assert record.bio == "Car lover"
        assert record.location == "Modena"
        assert record.avatar_url == "https://example.com/mario.png"
        assert service.user.bio == "Car lover"
        assert service.user.display_name == "Mario"
        assert "update_metadata" not in session_store.calls

    @pytest.mark.asyncio
    async def test_new_name_is_copied_to_identity_metadata(self, service, session_store, profiles, mario):
        await started(service)

        assert await service.update_profile(full_name="Mario Rossi") is True

        assert session_store.session.metadata["full_name"] == "Mario Rossi"
        assert profiles.rows["u2"].full_name == "Mario Rossi"
        assert service.user.display_name == "Mario Rossi"

    @pytest.mark.asyncio
    async def test_metadata_failure_does_not_stop_profile_write(self, service, session_store, profiles, mario):
        await started(service)
        session_store.metadata_error = ConnectionError("auth down")

        assert await service.update_profile(full_name="Mario Rossi") is True
        assert profiles.rows["u2"].full_name == "Mario Rossi"

    @pytest.mark.asyncio
    async def test_write_failure_returns_false_and_keeps_user(self, service, recorder, profiles, mario):
        await started(service)
        profiles.update_error = TransientError("write failed")
        before = service.user

        assert await service.update_profile(bio="Car lover") is False

        assert service.user == before
        assert len(recorder.error_notices) == 1

    @pytest.mark.parametrize("fields", [{"full_name": ""}, {"nickname": "Super Mario"}])
    @pytest.mark.asyncio
    async def test_invalid_fields_return_false(self, service, recorder, profiles, mario, fields):
        await started(service)
        before = service.user

        assert await service.update_profile(**fields) is False

        assert profiles.updates == []
        assert service.user == before
        assert len(recorder.error_notices) == 1

    @pytest.mark.asyncio
    async def test_publishes_snapshot_after_update(self, service, recorder, mario):
        await started(service)

        await service.update_profile(location="Maranello")

        assert recorder.snapshots[-1].user.location == "Maranello"


# =============================================================================
# Avatar Update
# =============================================================================

class TestUpdateAvatar:
    """Test AuthService.update_avatar."""

    @pytest.mark.asyncio
    async def test_without_user_is_noop(self, service, profiles):
        await started(service)

        assert await service.update_avatar("https://example.com/new.png") is None
        assert profiles.updates == []

    @pytest.mark.asyncio
    async def test_writes_row_then_updates_user(self, service, profiles, mario):
        await started(service)

        user = await service.update_avatar("https://example.com/new.png")

        assert profiles.updates[-1] == ("u2", {"avatar_url": "https://example.com/new.png"})
        assert user.avatar_url == "https://example.com/new.png"
        assert service.user.avatar_url == "https://example.com/new.png"

    @pytest.mark.asyncio
    async def test_write_failure_raises_and_keeps_user(self, service, recorder, profiles, mario):
        await started(service)
        profiles.update_error = TransientError("write failed")

        with pytest.raises(TransientError):
            await service.update_avatar("https://example.com/new.png")

        assert service.user.avatar_url == "https://example.com/mario.png"
        assert recorder.error_notices[-1].level is NoticeLevel.ERROR
