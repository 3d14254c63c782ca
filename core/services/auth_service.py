# =============================================================================
# core/services/auth_service.py - Auth & Profile Lifecycle
# =============================================================================
# Owns the in-memory CurrentUser and keeps it consistent with Supabase Auth
# and the profiles table across sign-in, sign-up, sign-out, profile edits
# and session-change notifications.
#
# Lifecycle:
#   service = AuthService.from_settings()
#   await service.start()               # subscribe + first reconciliation
#   snapshot = await service.wait_until_ready()
#   ...
#   await service.close()               # release subscription and tasks
#
# Views observe three channels: `snapshots` (readiness/user/loading),
# `navigation` (where to go after an auth transition) and `notices`
# (user-facing messages). They never touch the stores directly.
# =============================================================================

import asyncio
import contextlib
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from app.config import Settings, settings
from app.exceptions import (
    GENERIC_FAILURE_MESSAGES,
    AuthError,
    AuthErrorKind,
    CarPassionHubException,
    ConfigurationError,
    ProfileAlreadyExistsError,
    ProfileNotFoundError,
    TransientError,
    ValidationError,
    is_session_missing,
    translate_auth_failure,
)
from core.events import ListenerChannel, Subscription
from core.models.identity import AuthChangeEvent, Identity
from core.models.profile import ProfileRecord, ProfileUpdate
from core.models.user import (
    AuthSnapshot,
    CurrentUser,
    NavigationTarget,
    Notice,
    NoticeLevel,
    ReadinessState,
)
from core.services.interfaces import ProfileRepository, SessionStore, SessionSubscription
from lib.utils import display_name_from_email, generated_avatar_url, is_valid_email

logger = logging.getLogger(__name__)


class AuthService:
    """
    Auth & profile lifecycle for one process (one signed-in person).

    State machine:
        resolving --(first reconciliation or timeout)--> ready

    Every session-change notification starts a reconciliation pass tagged
    with an increasing sequence number. Starting a pass cancels the one in
    flight, and a pass only applies its result if its number is still the
    latest, so an older pass can never overwrite a newer CurrentUser.

    The service is "unconfigured" when it has no session store or profile
    repository (Supabase credentials missing). It then becomes ready
    immediately with no user, and sign-in/sign-up raise ConfigurationError.
    """

    def __init__(
        self,
        session_store: SessionStore | None,
        profiles: ProfileRepository | None,
        *,
        config: Settings | None = None,
        readiness_timeout: float | None = None,
        navigation_delay: float | None = None,
    ):
        self._config = config or settings
        self._session_store = session_store
        self._profiles = profiles
        self._readiness_timeout = (
            readiness_timeout if readiness_timeout is not None
            else self._config.READINESS_TIMEOUT_SECONDS
        )
        self._navigation_delay = (
            navigation_delay if navigation_delay is not None
            else self._config.SIGN_IN_NAVIGATION_DELAY_SECONDS
        )

        self.snapshots: ListenerChannel[AuthSnapshot] = ListenerChannel("auth.snapshots")
        self.navigation: ListenerChannel[NavigationTarget] = ListenerChannel("auth.navigation")
        self.notices: ListenerChannel[Notice] = ListenerChannel("auth.notices")

        self._user: CurrentUser | None = None
        self._readiness = ReadinessState.RESOLVING
        self._loading = False
        self._ready_event = asyncio.Event()

        self._started = False
        self._closed = False
        self._session_subscription: SessionSubscription | None = None
        self._readiness_timer: asyncio.TimerHandle | None = None
        self._deferred_navigation: set[asyncio.TimerHandle] = set()

        self._pass_seq = 0
        self._pass_task: asyncio.Task | None = None
        self._pending_navigation: NavigationTarget | None = None
        # > 0 while an explicit sign-in/up/out owns navigation
        self._explicit_transitions = 0
        self._provision_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "AuthService":
        """
        Build a service wired to Supabase, or an unconfigured one when the
        Supabase credentials are missing.
        """
        from core.services.profile_repository import SupabaseProfileRepository
        from core.services.session_store import SupabaseSessionStore

        config = config or settings
        if not config.supabase_configured:
            logger.warning("Supabase is not configured; auth service will run without a backend")
            return cls(None, None, config=config)
        return cls(SupabaseSessionStore(), SupabaseProfileRepository(), config=config)

    # -------------------------------------------------------------------------
    # Observable state
    # -------------------------------------------------------------------------

    @property
    def is_configured(self) -> bool:
        return self._session_store is not None and self._profiles is not None

    @property
    def user(self) -> CurrentUser | None:
        return self._user

    @property
    def readiness(self) -> ReadinessState:
        return self._readiness

    @property
    def loading(self) -> bool:
        return self._loading

    def snapshot(self) -> AuthSnapshot:
        return AuthSnapshot(readiness=self._readiness, user=self._user, loading=self._loading)

    def subscribe(self, listener) -> Subscription:
        """Receive an AuthSnapshot after every state change."""
        return self.snapshots.subscribe(listener)

    def landing_path(self, target: NavigationTarget) -> str:
        """URL path a view should route to for a navigation signal."""
        if target is NavigationTarget.AUTHENTICATED_LANDING:
            return self._config.AUTHENTICATED_LANDING_PATH
        return self._config.PUBLIC_LANDING_PATH

    async def wait_until_ready(self) -> AuthSnapshot:
        """Block until the initial session check finished or timed out."""
        await self._ready_event.wait()
        return self.snapshot()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """
        Attach the session listener and run the first reconciliation pass.

        Never raises: an unconfigured or unreachable backend just makes the
        service ready with no user.
        """
        if self._started:
            return
        self._started = True
        loop = asyncio.get_running_loop()

        logger.info("Checking initial auth state")

        if not self.is_configured:
            logger.warning("Supabase not available, skipping auth check")
            self._mark_ready("backend not configured")
            return

        self._readiness_timer = loop.call_later(self._readiness_timeout, self._on_readiness_timeout)

        try:
            self._session_subscription = await self._session_store.on_session_change(
                self._handle_session_change
            )
        except Exception as e:
            logger.error(f"Could not attach auth state listener: {e}")
            self._mark_ready("session listener unavailable")
            return

        self._start_pass(from_store=True)

    async def close(self) -> None:
        """Release the session subscription, timers and in-flight passes."""
        self._closed = True

        if self._session_subscription is not None:
            self._session_subscription.unsubscribe()
            self._session_subscription = None

        if self._readiness_timer is not None:
            self._readiness_timer.cancel()
            self._readiness_timer = None

        for handle in self._deferred_navigation:
            handle.cancel()
        self._deferred_navigation.clear()

        task, self._pass_task = self._pass_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        # Release anyone still waiting on the initial check
        self._mark_ready("service closed")

    async def __aenter__(self) -> "AuthService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Readiness
    # -------------------------------------------------------------------------

    def _mark_ready(self, reason: str) -> None:
        if self._readiness is ReadinessState.READY:
            return

        self._readiness = ReadinessState.READY
        if self._readiness_timer is not None:
            self._readiness_timer.cancel()
            self._readiness_timer = None
        self._ready_event.set()

        logger.info(f"Auth state ready ({reason}): user={self._user.id if self._user else None}")
        self._publish()

    def _on_readiness_timeout(self) -> None:
        self._readiness_timer = None
        if self._readiness is ReadinessState.READY:
            return
        # The reconciliation task keeps running and may still set the user
        logger.warning(f"Auth check timed out after {self._readiness_timeout}s, forcing ready")
        self._mark_ready("timeout")

    def _publish(self) -> None:
        self.snapshots.publish(self.snapshot())

    def _set_loading(self, value: bool) -> None:
        if self._loading != value:
            self._loading = value
            self._publish()

    def _apply_user(self, user: CurrentUser | None, reason: str) -> None:
        self._user = user
        if self._readiness is ReadinessState.READY:
            self._publish()
        else:
            self._mark_ready(reason)

        target, self._pending_navigation = self._pending_navigation, None
        if target is NavigationTarget.AUTHENTICATED_LANDING and user is not None:
            self._navigate(target)
        elif target is NavigationTarget.PUBLIC_LANDING and user is None:
            self._navigate(target)

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    def _handle_session_change(self, event: AuthChangeEvent, identity: Identity | None) -> None:
        """Session store callback; runs on the event loop, must not block."""
        if self._closed:
            return

        logger.info(f"Auth state changed: {event.value} user={identity.id if identity else None}")

        if self._explicit_transitions == 0:
            if event is AuthChangeEvent.SIGNED_IN:
                self._pending_navigation = NavigationTarget.AUTHENTICATED_LANDING
            elif event is AuthChangeEvent.SIGNED_OUT:
                self._pending_navigation = NavigationTarget.PUBLIC_LANDING

        self._start_pass(identity=identity, from_store=False)

    def _start_pass(self, identity: Identity | None = None, *, from_store: bool) -> int:
        self._pass_seq += 1
        seq = self._pass_seq

        if self._pass_task is not None and not self._pass_task.done():
            logger.debug(f"Reconciliation pass #{seq} supersedes an in-flight pass")
            self._pass_task.cancel()

        self._pass_task = asyncio.get_running_loop().create_task(
            self._reconcile(seq, identity, from_store),
            name=f"auth-reconcile-{seq}",
        )
        return seq

    def _supersede_passes(self) -> None:
        """Invalidate any in-flight pass before writing CurrentUser directly."""
        self._pass_seq += 1
        if self._pass_task is not None and not self._pass_task.done():
            self._pass_task.cancel()
        self._pass_task = None

    async def _reconcile(self, seq: int, identity: Identity | None, from_store: bool) -> None:
        """
        Fetch identity (if needed) and profile, then apply CurrentUser.

        Errors never escape: a failed session fetch degrades to no user,
        a failed profile fetch degrades to identity-only data.
        """
        try:
            if from_store:
                identity = await self._session_store.get_current_session()
                logger.info(f"Initial session check: {'user found' if identity else 'no user'}")
            user = await self._resolve_user(identity) if identity else None
        except Exception as e:
            logger.error(f"Error checking auth state: {e}")
            user = None

        if seq != self._pass_seq:
            logger.debug(f"Discarding stale reconciliation pass #{seq} (latest #{self._pass_seq})")
            return

        self._apply_user(user, f"reconciliation #{seq}")

    async def _resolve_user(self, identity: Identity) -> CurrentUser:
        try:
            profile = await self._ensure_profile(identity)
        except Exception as e:
            logger.error(f"Error fetching profile for {identity.id}: {e}")
            profile = None
        return CurrentUser.from_identity(identity, profile)

    async def _ensure_profile(
        self,
        identity: Identity,
        full_name: str | None = None,
        avatar_url: str | None = None,
    ) -> ProfileRecord:
        """
        Return the user's profile row, creating the default one if missing.

        Serialized with every other profile creation in this process; a
        duplicate insert from elsewhere is resolved by re-reading the row.
        If the default row cannot be stored, the unsaved defaults are
        returned so the user is never blocked on it.
        """
        async with self._provision_lock:
            try:
                return await self._profiles.get_profile(identity.id)
            except ProfileNotFoundError:
                logger.info(f"No profile for {identity.id}, creating default profile")

            record = ProfileRecord.default_for(
                identity,
                self._config.DEFAULT_BADGE,
                full_name=full_name,
                avatar_url=avatar_url,
            )
            try:
                await self._profiles.create_profile(record)
            except ProfileAlreadyExistsError:
                logger.info(f"Profile for {identity.id} was created concurrently, re-reading it")
                return await self._profiles.get_profile(identity.id)
            except Exception as e:
                logger.error(f"Could not store default profile for {identity.id}, using defaults: {e}")
            return record

    # -------------------------------------------------------------------------
    # Notices & navigation
    # -------------------------------------------------------------------------

    def _notify(self, title: str, message: str, level: NoticeLevel = NoticeLevel.INFO) -> None:
        self.notices.publish(Notice(title=title, message=message, level=level))

    def _notify_error(self, title: str, error: CarPassionHubException) -> None:
        self._notify(title, error.user_message, NoticeLevel.ERROR)

    def _navigate(self, target: NavigationTarget) -> None:
        logger.debug(f"Navigating to {target.value}")
        self.navigation.publish(target)

    def _schedule_sign_in_navigation(self) -> None:
        """
        Navigate to the authenticated landing area after a short delay.

        Holds the explicit-transition guard until it fires, so a late
        SIGNED_IN notification does not navigate a second time.
        """
        loop = asyncio.get_running_loop()

        def fire() -> None:
            self._deferred_navigation.discard(handle)
            self._explicit_transitions -= 1
            if not self._closed:
                self._navigate(NavigationTarget.AUTHENTICATED_LANDING)

        handle = loop.call_later(self._navigation_delay, fire)
        self._deferred_navigation.add(handle)

    def _require_configured(self) -> None:
        if self.is_configured:
            return
        error = ConfigurationError()
        logger.error("Supabase is not configured; refusing auth operation")
        self._notify_error("Error", error)
        raise error

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> Identity:
        """
        Sign in with email and password.

        CurrentUser is filled by the reconciliation pass the sign-in
        triggers, not synchronously. Navigation to the authenticated
        landing area follows after a short delay.

        Raises:
            ConfigurationError: Supabase not configured (no network call)
            ValidationError: empty email or password (no network call)
            AuthError: credentials rejected
            TransientError: any other failure
        """
        self._require_configured()

        if not email or not password:
            error = ValidationError("email and password are required.", field="email" if not email else "password")
            self._notify_error("Sign-in error", error)
            raise error

        seq_before = self._pass_seq
        self._explicit_transitions += 1
        self._set_loading(True)
        signed_in = False
        try:
            logger.info(f"Sign-in attempt for {email}")
            identity = await self._session_store.sign_in_with_password(email, password)
            signed_in = True
        except Exception as e:
            logger.error(f"Sign-in failed: {e}")
            error = translate_auth_failure(e, "sign_in")
            self._notify_error("Sign-in error", error)
            if error is e:
                raise
            raise error from e
        finally:
            # Failed or cancelled; on success the deferred navigation releases it
            if not signed_in:
                self._explicit_transitions -= 1
            self._set_loading(False)

        logger.info(f"Sign-in succeeded for user {identity.id}")

        # The store normally notifies during sign-in; enqueue a pass if it didn't
        if self._pass_seq == seq_before:
            self._start_pass(identity=identity, from_store=False)

        self._notify("Signed in", "Welcome to CarPassionHub!")
        self._schedule_sign_in_navigation()
        return identity

    def _validate_sign_up(self, email: str, password: str, confirm_password: str | None) -> None:
        min_length = self._config.MIN_PASSWORD_LENGTH

        if len(password or "") < min_length:
            raise ValidationError(f"password must be at least {min_length} characters.", field="password")
        if not is_valid_email(email):
            raise ValidationError("email address is not valid.", field="email")
        if confirm_password is not None and confirm_password != password:
            raise ValidationError("passwords do not match.", field="confirm_password")

    async def sign_up(
        self,
        email: str,
        password: str,
        full_name: str,
        confirm_password: str | None = None,
    ) -> CurrentUser | None:
        """
        Register, create the profile row, then sign in.

        Steps:
        1. Validate input locally (no network call on failure)
        2. Register the identity with full_name metadata
        3. Create the default profile row (badge, zero stats, generated avatar)
        4. Sign in with the same credentials
        5. Re-read the profile and set CurrentUser directly, then navigate

        If step 4 fails the account still exists: the user gets an
        "account created, please sign in" notice and None is returned.

        Raises:
            ConfigurationError: Supabase not configured
            ValidationError: short password, malformed email, mismatched
                confirmation
            AuthError: registration rejected (weak password, invalid email,
                already registered, unknown)
            TransientError: any other registration failure
        """
        self._require_configured()

        try:
            self._validate_sign_up(email, password, confirm_password)
        except ValidationError as error:
            logger.info(f"Sign-up rejected locally: {error.message}")
            self._notify_error("Registration error", error)
            raise

        name = (full_name or "").strip() or display_name_from_email(email)
        avatar_url = generated_avatar_url(name)

        self._explicit_transitions += 1
        self._set_loading(True)
        try:
            logger.info(f"Sign-up attempt for {email}")
            try:
                identity = await self._session_store.sign_up(email, password, {"full_name": name})
                if identity is None:
                    raise AuthError(
                        AuthErrorKind.UNKNOWN,
                        "sign_up",
                        message="Registration failed: no user was returned.",
                    )
            except Exception as e:
                logger.error(f"Sign-up failed: {e}")
                error = translate_auth_failure(e, "sign_up")
                self._notify_error("Registration error", error)
                if error is e:
                    raise
                raise error from e

            logger.info(f"Registered {identity.id}, creating profile")
            record = ProfileRecord.default_for(
                identity,
                self._config.DEFAULT_BADGE,
                full_name=name,
                avatar_url=avatar_url,
            )
            await self._create_profile_at_sign_up(record)

            try:
                signed_in = await self._session_store.sign_in_with_password(email, password)
            except Exception as e:
                logger.error(f"Automatic sign-in after registration failed: {e}")
                self._notify("Account created", "Your account has been created. Please sign in.")
                return None

            try:
                profile = await self._ensure_profile(signed_in, full_name=name, avatar_url=avatar_url)
            except Exception as e:
                logger.error(f"Could not re-read profile after sign-up: {e}")
                profile = record

            user = CurrentUser.from_identity(signed_in, profile)
            self._supersede_passes()
            self._apply_user(user, "sign-up")
        finally:
            self._explicit_transitions -= 1
            self._set_loading(False)

        self._notify("Registration complete", "Your account has been created successfully.")
        self._navigate(NavigationTarget.AUTHENTICATED_LANDING)
        return user

    async def _create_profile_at_sign_up(self, record: ProfileRecord) -> None:
        async with self._provision_lock:
            try:
                await self._profiles.create_profile(record)
                logger.info(f"Profile created for {record.id}")
            except ProfileAlreadyExistsError:
                logger.info(f"Profile for {record.id} already exists")
            except Exception as e:
                # The lazy path in reconciliation repairs this later
                logger.error(f"Error creating profile for {record.id}: {e}")

    async def sign_out(self) -> None:
        """
        Sign out and clear CurrentUser.

        A no-op when Supabase is not configured. "Already signed out" from
        the backend counts as success. Other failures produce an error
        notice and leave the session untouched; they are not raised.
        """
        if not self.is_configured:
            logger.info("Supabase not configured, nothing to sign out")
            return

        self._explicit_transitions += 1
        try:
            logger.info("Sign-out attempt")
            await self._session_store.sign_out()
        except Exception as e:
            if not is_session_missing(e):
                logger.error(f"Error during sign-out: {e}")
                self._notify("Error", GENERIC_FAILURE_MESSAGES["sign_out"], NoticeLevel.ERROR)
                return
            logger.info("Session already gone, treating sign-out as done")
        finally:
            self._explicit_transitions -= 1

        self._supersede_passes()
        self._pending_navigation = None
        self._apply_user(None, "sign-out")

        self._notify("Signed out", "You have signed out successfully.")
        self._navigate(NavigationTarget.PUBLIC_LANDING)

    async def update_profile(self, update: ProfileUpdate | None = None, **fields: Any) -> bool:
        """
        Edit the signed-in user's profile.

        Fields left out keep the current CurrentUser values. A new display
        name is also copied to the identity metadata (best effort).
        CurrentUser changes only after the profile row was written.

        Args:
            update: ProfileUpdate, or pass the same fields as keywords

        Returns:
            True on success. False when the fields are invalid, when nobody
            is signed in, or when the write failed (a notice explains it)
        """
        if update is None:
            try:
                update = ProfileUpdate(**fields)
            except PydanticValidationError as e:
                logger.warning(f"Rejected profile update fields: {e}")
                self._notify("Error", GENERIC_FAILURE_MESSAGES["update_profile"], NoticeLevel.ERROR)
                return False
        user = self._user

        if user is None or not self.is_configured:
            logger.warning("Profile update requested with no signed-in user")
            return False

        changes = update.changed_fields()
        logger.info(f"Updating profile for user {user.id}: {sorted(changes)}")

        if "full_name" in changes:
            try:
                await self._session_store.update_metadata({"full_name": changes["full_name"]})
            except Exception as e:
                logger.error(f"Error updating auth metadata for {user.id}: {e}")

        merged = {
            "full_name": changes.get("full_name", user.display_name),
            "avatar_url": changes.get("avatar_url", user.avatar_url),
            "bio": changes.get("bio", user.bio),
            "location": changes.get("location", user.location),
        }

        try:
            await self._profiles.update_profile(user.id, merged)
        except Exception as e:
            logger.error(f"Error updating profile for {user.id}: {e}")
            self._notify("Error", GENERIC_FAILURE_MESSAGES["update_profile"], NoticeLevel.ERROR)
            return False

        self._apply_profile_fields(user.id, merged)
        self._notify("Profile updated", "Your profile has been updated successfully.")
        return True

    async def update_avatar(self, avatar_url: str) -> CurrentUser | None:
        """
        Point the signed-in user's avatar at a new URL.

        Returns:
            The updated CurrentUser, or None when nobody is signed in

        Raises:
            TransientError (or the repository's error): the profile row
                could not be written; CurrentUser is unchanged
        """
        user = self._user

        if user is None or not self.is_configured:
            logger.warning("Avatar update requested with no signed-in user")
            return None

        try:
            await self._profiles.update_profile(user.id, {"avatar_url": avatar_url})
        except Exception as e:
            logger.error(f"Error updating avatar for {user.id}: {e}")
            error = e if isinstance(e, CarPassionHubException) else TransientError(
                message=GENERIC_FAILURE_MESSAGES["update_avatar"],
                details={"user_id": user.id},
            )
            self._notify("Error", GENERIC_FAILURE_MESSAGES["update_avatar"], NoticeLevel.ERROR)
            if error is e:
                raise
            raise error from e

        self._apply_profile_fields(user.id, {"avatar_url": avatar_url})
        return self._user

    def _apply_profile_fields(self, user_id: str, fields: dict[str, Any]) -> None:
        current = self._user
        if current is None or current.id != user_id:
            logger.warning(f"Signed-in user changed during profile write for {user_id}; not applying locally")
            return
        # A pass started before the write could carry the old row
        self._supersede_passes()
        self._apply_user(current.with_profile_fields(fields), "profile update")
