# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - In-memory fakes for the session store, profile repository and storage
# - An AuthService wired to the fakes with short timers
# =============================================================================

import asyncio
import os
from datetime import datetime, timezone

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest
import pytest_asyncio

from app.exceptions import ProfileAlreadyExistsError, ProfileNotFoundError
from core.events import Subscription
from core.models import AuthChangeEvent, Identity, ProfileRecord, ProfileStats
from core.services.auth_service import AuthService

JOINED_AT = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


async def settle(seconds: float = 0.02) -> None:
    """Let scheduled tasks and callbacks run."""
    await asyncio.sleep(seconds)


# =============================================================================
# Fakes
# =============================================================================

class FakeAuthApiError(Exception):
    """Looks like the SDK's AuthApiError: message, code and status."""

    def __init__(self, message: str, code: str | None = None, status: int = 400):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class FakeSessionStore:
    """In-memory Supabase Auth: registered users, one session, listeners."""

    def __init__(self):
        self.session: Identity | None = None
        self.users: dict[str, tuple[str, Identity]] = {}
        self.callbacks: list = []
        self.calls: list[str] = []

        self.sign_in_error: Exception | None = None
        self.sign_up_error: Exception | None = None
        self.sign_out_error: Exception | None = None
        self.metadata_error: Exception | None = None
        self.subscribe_error: Exception | None = None

        # get_current_session waits on this when set
        self.session_gate: asyncio.Event | None = None
        self.notify_on_change = True
        self.sign_in_on_sign_up = False
        self._next_id = 1

    def add_user(
        self,
        email: str,
        password: str,
        metadata: dict | None = None,
        user_id: str | None = None,
    ) -> Identity:
        if user_id is None:
            user_id = f"user-{self._next_id}"
            self._next_id += 1
        identity = Identity(id=user_id, email=email, metadata=metadata or {}, created_at=JOINED_AT)
        self.users[email] = (password, identity)
        return identity

    def emit(self, event: AuthChangeEvent, identity: Identity | None) -> None:
        if self.notify_on_change:
            for callback in list(self.callbacks):
                callback(event, identity)

    async def get_current_session(self) -> Identity | None:
        self.calls.append("get_current_session")
        if self.session_gate is not None:
            await self.session_gate.wait()
        return self.session

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        self.calls.append("sign_in_with_password")
        if self.sign_in_error is not None:
            raise self.sign_in_error

        entry = self.users.get(email)
        if entry is None or entry[0] != password:
            raise FakeAuthApiError("Invalid login credentials", code="invalid_credentials")

        self.session = entry[1]
        self.emit(AuthChangeEvent.SIGNED_IN, self.session)
        return self.session

    async def sign_up(self, email: str, password: str, metadata: dict) -> Identity | None:
        self.calls.append("sign_up")
        if self.sign_up_error is not None:
            raise self.sign_up_error
        if email in self.users:
            raise FakeAuthApiError("User already registered", code="user_already_exists", status=422)

        identity = self.add_user(email, password, metadata)
        if self.sign_in_on_sign_up:
            self.session = identity
            self.emit(AuthChangeEvent.SIGNED_IN, identity)
        return identity

    async def sign_out(self) -> None:
        self.calls.append("sign_out")
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.session = None
        self.emit(AuthChangeEvent.SIGNED_OUT, None)

    async def update_metadata(self, fields: dict) -> None:
        self.calls.append("update_metadata")
        if self.metadata_error is not None:
            raise self.metadata_error
        if self.session is not None:
            self.session = self.session.model_copy(
                update={"metadata": {**self.session.metadata, **fields}}
            )

    async def on_session_change(self, callback) -> Subscription:
        self.calls.append("on_session_change")
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.callbacks.append(callback)
        return Subscription(lambda: self.callbacks.remove(callback))


class FakeProfileRepository:
    """In-memory profiles table with per-user gates to control timing."""

    def __init__(self):
        self.rows: dict[str, ProfileRecord] = {}
        self.calls: list[tuple[str, str]] = []
        self.inserts = 0
        self.updates: list[tuple[str, dict]] = []

        self.get_error: Exception | None = None
        self.create_error: Exception | None = None
        self.update_error: Exception | None = None

        # get_profile(user_id) waits on gates[user_id] when present
        self.gates: dict[str, asyncio.Event] = {}

    def add(self, user_id: str, **fields) -> ProfileRecord:
        record = ProfileRecord(id=user_id, **fields)
        self.rows[user_id] = record
        return record

    async def get_profile(self, user_id: str) -> ProfileRecord:
        self.calls.append(("get_profile", user_id))
        gate = self.gates.get(user_id)
        if gate is not None:
            await gate.wait()
        if self.get_error is not None:
            raise self.get_error
        if user_id not in self.rows:
            raise ProfileNotFoundError(user_id)
        return self.rows[user_id]

    async def create_profile(self, record: ProfileRecord) -> None:
        self.calls.append(("create_profile", record.id))
        if self.create_error is not None:
            raise self.create_error
        if record.id in self.rows:
            raise ProfileAlreadyExistsError(record.id)
        self.rows[record.id] = record
        self.inserts += 1

    async def update_profile(self, user_id: str, fields: dict) -> None:
        self.calls.append(("update_profile", user_id))
        if self.update_error is not None:
            raise self.update_error
        if user_id not in self.rows:
            raise ProfileNotFoundError(user_id)
        self.rows[user_id] = self.rows[user_id].model_copy(update=fields)
        self.updates.append((user_id, dict(fields)))


class FakeObjectStorage:
    """In-memory bucket with predictable public URLs."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.removed: list[str] = []
        self.upload_error: Exception | None = None

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        if self.upload_error is not None:
            raise self.upload_error
        self.objects[path] = content
        return f"https://test-project.supabase.co/storage/v1/object/public/avatars/{path}"

    async def remove(self, path: str) -> bool:
        self.removed.append(path)
        return self.objects.pop(path, None) is not None


class Recorder:
    """Collects everything an AuthService publishes to views."""

    def __init__(self, service: AuthService):
        self.snapshots = []
        self.navigation = []
        self.notices = []
        service.snapshots.subscribe(self.snapshots.append)
        service.navigation.subscribe(self.navigation.append)
        service.notices.subscribe(self.notices.append)

    @property
    def error_notices(self):
        return [notice for notice in self.notices if notice.level.value == "error"]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def session_store():
    return FakeSessionStore()


@pytest.fixture
def profiles():
    return FakeProfileRepository()


@pytest.fixture
def storage():
    return FakeObjectStorage()


@pytest_asyncio.fixture
async def service(session_store, profiles):
    """AuthService on fakes; not started."""
    auth = AuthService(
        session_store,
        profiles,
        readiness_timeout=0.2,
        navigation_delay=0.01,
    )
    yield auth
    await auth.close()


@pytest.fixture
def recorder(service):
    return Recorder(service)


@pytest.fixture
def mario(session_store, profiles):
    """Signed-in user u2 'Mario' with an existing profile row."""
    identity = session_store.add_user("mario@example.com", "secret123", {"full_name": "Mario"}, user_id="u2")
    session_store.session = identity
    profiles.add(
        "u2",
        email="mario@example.com",
        full_name="Mario",
        avatar_url="https://example.com/mario.png",
        bio="",
        location="Modena",
        badges=["Nuovo Membro"],
        stats=ProfileStats(followers=3),
    )
    return identity
