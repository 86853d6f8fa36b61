"""
tests/test_session_machine.py — Session State Machine
======================================================

Drives :class:`SessionStateMachine` with the in-memory ``FakeProvider``:
startup resolution, notification precedence, redirects, profile loading
and teardown.
"""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeProvider, make_session, run

from codifyr.constants import Route
from codifyr.identity.provider import AuthChangeEvent, Session
from codifyr.services.auth_service import AuthActions
from codifyr.services.session_machine import SessionState, SessionStateMachine


async def _settle():
    """Let scheduled callbacks and tasks run."""
    for _ in range(3):
        await asyncio.sleep(0)


class _Profile:
    def __init__(self, user_id: str) -> None:
        self.user_id = user_id


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------
class TestStartup:
    def test_initial_state_unknown(self, provider):
        machine = SessionStateMachine(provider)
        assert machine.state == SessionState.UNKNOWN
        assert machine.snapshot().session is None

    def test_startup_with_session(self):
        provider = FakeProvider(session=make_session())
        routes: list[Route] = []

        async def scenario():
            machine = SessionStateMachine(provider, navigate=routes.append)
            snap = await machine.start()
            machine.teardown()
            return snap

        snap = run(scenario())
        assert snap.state == SessionState.AUTHENTICATED
        assert snap.user_id == "user-1"
        assert snap.is_authenticated
        assert routes == [Route.APPLICATION_HOME]

    def test_startup_without_session(self, provider):
        routes: list[Route] = []

        async def scenario():
            machine = SessionStateMachine(provider, navigate=routes.append)
            snap = await machine.start()
            machine.teardown()
            return snap

        snap = run(scenario())
        assert snap.state == SessionState.ANONYMOUS
        assert snap.user_id is None
        assert routes == [Route.LOGIN]

    def test_subscribes_before_querying(self, provider):
        seen: list[int] = []

        async def get_session():
            seen.append(len(provider.listeners))
            return None

        provider.get_session = get_session

        async def scenario():
            machine = SessionStateMachine(provider)
            await machine.start()
            machine.teardown()

        run(scenario())
        assert seen == [1]

    def test_inactive_session_is_anonymous(self):
        inactive = Session(user_id="user-1", email="a@b.com", is_active=False)
        provider = FakeProvider(session=inactive)

        async def scenario():
            machine = SessionStateMachine(provider)
            snap = await machine.start()
            machine.teardown()
            return snap

        assert run(scenario()).state == SessionState.ANONYMOUS

    def test_failing_lookup_resolves_anonymous(self, provider):
        routes: list[Route] = []

        async def get_session():
            raise ValueError("Expecting value: line 1 column 1 (char 0)")

        provider.get_session = get_session

        async def scenario():
            machine = SessionStateMachine(provider, navigate=routes.append)
            snap = await machine.start()
            listening = len(provider.listeners)
            machine.teardown()
            return snap, listening

        snap, listening = run(scenario())
        assert snap.state == SessionState.ANONYMOUS
        assert routes == [Route.LOGIN]
        assert listening == 1

    def test_start_after_teardown_raises(self, provider):
        machine = SessionStateMachine(provider)
        machine.teardown()

        async def scenario():
            await machine.start()

        with pytest.raises(RuntimeError, match="torn down"):
            run(scenario())


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class TestNotifications:
    def test_notification_wins_over_in_flight_startup(self, provider):
        routes: list[Route] = []

        async def scenario():
            provider.session_gate = asyncio.Event()
            machine = SessionStateMachine(provider, navigate=routes.append)
            startup = asyncio.ensure_future(machine.start())
            await _settle()

            # Startup lookup is parked on the gate; a sign-in arrives.
            provider.emit(make_session())
            assert machine.state == SessionState.AUTHENTICATED

            # The stale lookup then resolves with "no session".
            provider.session = None
            provider.session_gate.set()
            snap = await startup
            machine.teardown()
            return snap

        snap = run(scenario())
        assert snap.state == SessionState.AUTHENTICATED
        assert snap.user_id == "user-1"
        assert routes == [Route.APPLICATION_HOME]

    def test_sign_in_then_sign_out(self, provider):
        routes: list[Route] = []

        async def scenario():
            machine = SessionStateMachine(provider, navigate=routes.append)
            await machine.start()
            provider.emit(make_session())
            provider.emit(None)
            snap = machine.snapshot()
            machine.teardown()
            return snap

        snap = run(scenario())
        assert snap.state == SessionState.ANONYMOUS
        assert snap.session is None
        assert routes == [Route.LOGIN, Route.APPLICATION_HOME, Route.LOGIN]

    def test_signup_without_session_stays_anonymous(self, provider, config):
        routes: list[Route] = []

        async def scenario():
            machine = SessionStateMachine(provider, navigate=routes.append)
            actions = AuthActions(provider, config)
            await machine.start()
            outcome = await actions.sign_up("Alice", "alice@example.com", "secret1")
            # Email confirmation pending: the provider reports no session.
            provider.emit(None, AuthChangeEvent.USER_UPDATED)
            snap = machine.snapshot()
            machine.teardown()
            return outcome, actions, snap

        outcome, actions, snap = run(scenario())
        assert outcome.ok
        assert provider.call_names() == ["get_session", "sign_up"]
        assert actions.pending_email == "alice@example.com"
        assert snap.state == SessionState.ANONYMOUS
        assert Route.APPLICATION_HOME not in routes
        assert routes == [Route.LOGIN]

    def test_token_refresh_does_not_redirect(self):
        provider = FakeProvider(session=make_session())
        routes: list[Route] = []

        async def scenario():
            machine = SessionStateMachine(provider, navigate=routes.append)
            await machine.start()
            provider.emit(make_session(), AuthChangeEvent.TOKEN_REFRESHED)
            machine.teardown()

        run(scenario())
        assert routes == [Route.APPLICATION_HOME]

    def test_failing_navigate_is_contained(self, provider):
        def navigate(route):
            raise RuntimeError("router gone")

        async def scenario():
            machine = SessionStateMachine(provider, navigate=navigate)
            await machine.start()
            provider.emit(make_session())
            snap = machine.snapshot()
            machine.teardown()
            return snap

        assert run(scenario()).state == SessionState.AUTHENTICATED


# ---------------------------------------------------------------------------
# Teardown
# ---------------------------------------------------------------------------
class TestTeardown:
    def test_releases_listener_exactly_once(self, provider):
        async def scenario():
            machine = SessionStateMachine(provider)
            await machine.start()
            assert len(provider.listeners) == 1
            machine.teardown()
            machine.teardown()
            return machine

        machine = run(scenario())
        assert machine.closed
        assert len(provider.listeners) == 0

    def test_notification_after_teardown_ignored(self, provider):
        routes: list[Route] = []

        async def scenario():
            machine = SessionStateMachine(provider, navigate=routes.append)
            await machine.start()
            machine.teardown()
            provider.emit(make_session())
            return machine.snapshot()

        snap = run(scenario())
        assert snap.state == SessionState.ANONYMOUS
        assert routes == [Route.LOGIN]

    def test_late_startup_result_ignored(self):
        provider = FakeProvider(session=make_session())

        async def scenario():
            provider.session_gate = asyncio.Event()
            machine = SessionStateMachine(provider)
            startup = asyncio.ensure_future(machine.start())
            await _settle()
            machine.teardown()
            provider.session_gate.set()
            return await startup

        assert run(scenario()).state == SessionState.UNKNOWN

    def test_async_context_manager(self):
        provider = FakeProvider(session=make_session())

        async def scenario():
            async with SessionStateMachine(provider) as machine:
                assert machine.state == SessionState.AUTHENTICATED
                assert len(provider.listeners) == 1
            return machine

        machine = run(scenario())
        assert machine.closed
        assert len(provider.listeners) == 0


# ---------------------------------------------------------------------------
# Profile loading
# ---------------------------------------------------------------------------
class TestProfileLoading:
    def test_profile_loaded_for_authenticated_user(self):
        provider = FakeProvider(session=make_session())
        requested: list[str] = []

        async def load_profile(user_id):
            requested.append(user_id)
            return _Profile(user_id)

        async def scenario():
            machine = SessionStateMachine(provider, load_profile=load_profile)
            await machine.start()
            profile = await machine.wait_for_profile()
            machine.teardown()
            return profile

        profile = run(scenario())
        assert requested == ["user-1"]
        assert profile.user_id == "user-1"

    def test_missing_profile_is_not_an_error(self):
        provider = FakeProvider(session=make_session())

        async def load_profile(user_id):
            return None

        async def scenario():
            machine = SessionStateMachine(provider, load_profile=load_profile)
            await machine.start()
            profile = await machine.wait_for_profile()
            snap = machine.snapshot()
            machine.teardown()
            return profile, snap

        profile, snap = run(scenario())
        assert profile is None
        assert snap.state == SessionState.AUTHENTICATED

    def test_failing_loader_is_contained(self):
        provider = FakeProvider(session=make_session())

        async def load_profile(user_id):
            raise ConnectionError("db down")

        async def scenario():
            machine = SessionStateMachine(provider, load_profile=load_profile)
            await machine.start()
            profile = await machine.wait_for_profile()
            machine.teardown()
            return profile

        assert run(scenario()) is None

    def test_profile_for_previous_user_discarded(self):
        provider = FakeProvider(session=make_session("user-1"))
        gate = asyncio.Event()

        async def load_profile(user_id):
            if user_id == "user-1":
                await gate.wait()
            return _Profile(user_id)

        async def scenario():
            machine = SessionStateMachine(provider, load_profile=load_profile)
            await machine.start()
            first = machine._profile_task
            provider.emit(make_session("user-2", "bob@example.com"))
            await machine.wait_for_profile()
            gate.set()
            await asyncio.gather(first, return_exceptions=True)
            snap = machine.snapshot()
            machine.teardown()
            return snap, first

        snap, first = run(scenario())
        assert first.cancelled()
        assert snap.user_id == "user-2"
        assert snap.profile.user_id == "user-2"

    def test_superseded_fetches_are_all_cancelled(self):
        provider = FakeProvider(session=make_session("user-1"))
        gate = asyncio.Event()

        async def load_profile(user_id):
            await gate.wait()
            return _Profile(user_id)

        async def scenario():
            machine = SessionStateMachine(provider, load_profile=load_profile)
            await machine.start()
            first = machine._profile_task
            provider.emit(make_session("user-1"), AuthChangeEvent.TOKEN_REFRESHED)
            second = machine._profile_task
            machine.teardown()
            await asyncio.gather(first, second, return_exceptions=True)
            return first, second

        first, second = run(scenario())
        assert first is not second
        assert first.cancelled()
        assert second.cancelled()

    def test_reload_profile_fetches_again(self):
        provider = FakeProvider(session=make_session())
        requested: list[str] = []

        async def load_profile(user_id):
            requested.append(user_id)
            return _Profile(user_id)

        async def scenario():
            machine = SessionStateMachine(provider, load_profile=load_profile)
            await machine.start()
            await machine.wait_for_profile()
            machine.reload_profile()
            await machine.wait_for_profile()
            machine.teardown()

        run(scenario())
        assert requested == ["user-1", "user-1"]

    def test_sign_out_clears_profile(self):
        provider = FakeProvider(session=make_session())

        async def load_profile(user_id):
            return _Profile(user_id)

        async def scenario():
            machine = SessionStateMachine(provider, load_profile=load_profile)
            await machine.start()
            await machine.wait_for_profile()
            provider.emit(None)
            snap = machine.snapshot()
            machine.teardown()
            return snap

        assert run(scenario()).profile is None
