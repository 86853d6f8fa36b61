"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT secret is always set for test runs.
# This must happen before any import of codifyr.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("SUPABASE_JWT_SECRET", _TEST_JWT_SECRET)
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402

from codifyr.config import CodifyrConfig  # noqa: E402
from codifyr.database.models import Base  # noqa: E402
from codifyr.identity.provider import (  # noqa: E402
    AuthChangeEvent,
    ListenerRegistry,
    ProviderResult,
    Session,
)

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


def run(coro):
    """Run a coroutine on a fresh event loop (no pytest-asyncio needed)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Codifyr tables.

    Uses StaticPool so worker threads (``run_db``) share the same
    in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def config() -> CodifyrConfig:
    return CodifyrConfig(
        community_name="Codifyr Test",
        site_url="https://codifyr.test",
        provider_url="https://ref.supabase.test",
        login_path="/auth",
        home_path="/dashboard",
        verification_path="/verification-upload",
        api_port=8000,
    )


def make_session(user_id: str = "user-1", email: str = "alice@example.com") -> Session:
    return Session(user_id=user_id, email=email, access_token="at", refresh_token="rt")


# ---------------------------------------------------------------------------
# Fake identity provider
# ---------------------------------------------------------------------------
class FakeProvider:
    """In-memory IdentityProvider that records calls.

    Set ``results[method]`` to a :class:`ProviderResult` to script a
    response; the default is success.  ``session_gate`` (an
    ``asyncio.Event``) holds ``get_session()`` in flight until set.
    """

    def __init__(self, session: Session | None = None) -> None:
        self.session = session
        self.calls: list[tuple[str, tuple]] = []
        self.results: dict[str, ProviderResult] = {}
        self.session_gate: asyncio.Event | None = None
        self.listeners = ListenerRegistry()

    def _result(self, name: str, *args) -> ProviderResult:
        self.calls.append((name, args))
        return self.results.get(name, ProviderResult.success({}))

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def emit(self, session: Session | None, event: AuthChangeEvent | None = None) -> None:
        if event is None:
            event = AuthChangeEvent.SIGNED_IN if session else AuthChangeEvent.SIGNED_OUT
        self.session = session
        self.listeners.emit(event, session)

    async def get_session(self):
        self.calls.append(("get_session", ()))
        if self.session_gate is not None:
            await self.session_gate.wait()
        return self.session

    def on_session_change(self, callback):
        return self.listeners.add(callback)

    async def sign_up(self, email, password, metadata, redirect_to):
        return self._result("sign_up", email, password, metadata, redirect_to)

    async def sign_in_with_password(self, email, password):
        return self._result("sign_in_with_password", email, password)

    async def reset_password_for_email(self, email, redirect_to):
        return self._result("reset_password_for_email", email, redirect_to)

    async def resend_signup_confirmation(self, email):
        return self._result("resend_signup_confirmation", email)

    async def sign_out(self):
        return self._result("sign_out")


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


def make_access_token(sub: str = "user-1", **claims) -> str:
    """Create a provider-style access token signed with the test secret."""
    import jwt

    from codifyr.api.deps import JWT_ALGORITHM, JWT_AUDIENCE, JWT_SECRET

    payload = {"sub": sub, "aud": JWT_AUDIENCE, "role": "authenticated", **claims}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)
