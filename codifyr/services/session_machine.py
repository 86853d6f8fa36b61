"""
codifyr.services.session_machine — Authentication Session State Machine
========================================================================

Owns the current session.  Nothing else writes it; everything else reads
it through :meth:`SessionStateMachine.snapshot`.

States::

    UNKNOWN ──get_session()/notification──► AUTHENTICATED | ANONYMOUS
    AUTHENTICATED ◄──────notification──────► ANONYMOUS

Provider notifications are authoritative: each one moves the machine to
AUTHENTICATED or ANONYMOUS regardless of the current state, and one that
arrives while the startup ``get_session()`` call is still in flight wins
over that call's result.

Side effects on transitions:

* entering ANONYMOUS (from any other state) → navigate to ``login``
* entering AUTHENTICATED from UNKNOWN/ANONYMOUS → navigate to
  ``application-home``
* every authenticated notification → fetch the profile for ``user_id``

After :meth:`teardown` the machine is inert: further notifications, late
``get_session()`` results and late profile loads are ignored.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from codifyr.constants import Route
from codifyr.identity.provider import AuthChangeEvent, Session, Subscription

if TYPE_CHECKING:
    from codifyr.database.models import Profile
    from codifyr.engine.events import Navigate
    from codifyr.identity.provider import IdentityProvider

logger = logging.getLogger(__name__)

ProfileLoader = Callable[[str], Awaitable["Profile | None"]]


class SessionState(enum.StrEnum):
    UNKNOWN = "Unknown"
    AUTHENTICATED = "Authenticated"
    ANONYMOUS = "Anonymous"


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Read-only view of the machine at one instant."""

    state: SessionState
    session: Session | None = None
    profile: Profile | None = None

    @property
    def user_id(self) -> str | None:
        return self.session.user_id if self.session else None

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED


class SessionStateMachine:
    """Single owner of the authenticated session.

    Parameters
    ----------
    provider : Identity provider to query and subscribe to.
    navigate : Called with a :class:`Route` on redirecting transitions.
    load_profile : Optional coroutine function ``user_id -> Profile | None``.

    Usage::

        async with SessionStateMachine(provider, navigate=router.go) as machine:
            ...
            machine.snapshot().state
    """

    def __init__(
        self,
        provider: IdentityProvider,
        *,
        navigate: Navigate | None = None,
        load_profile: ProfileLoader | None = None,
    ) -> None:
        self._provider = provider
        self._navigate = navigate
        self._load_profile = load_profile

        self._state = SessionState.UNKNOWN
        self._session: Session | None = None
        self._profile: Profile | None = None

        self._subscription: Subscription | None = None
        self._closed = False
        # Bumped on every notification; a startup lookup that started
        # before the latest notification is stale.
        self._generation = 0
        self._profile_task: asyncio.Task | None = None

    # -------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(self._state, self._session, self._profile)

    @property
    def closed(self) -> bool:
        return self._closed

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    async def start(self) -> SessionSnapshot:
        """Subscribe to notifications, then resolve the startup session."""
        if self._closed:
            raise RuntimeError("SessionStateMachine was torn down; create a new one")
        if self._subscription is None:
            self._subscription = self._provider.on_session_change(self._on_session_change)

        generation = self._generation
        try:
            session = await self._provider.get_session()
        except Exception:
            logger.exception("Startup session lookup failed; treating as signed out")
            session = None

        if self._closed:
            logger.debug("Startup session resolved after teardown; ignored")
        elif generation != self._generation:
            logger.debug("Startup session superseded by a provider notification")
        else:
            self._apply(session)
        return self.snapshot()

    def teardown(self) -> None:
        """Release the subscription (exactly once) and go inert."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._profile_task is not None and not self._profile_task.done():
            self._profile_task.cancel()
        logger.debug("Session machine torn down in state %s", self._state)

    async def __aenter__(self) -> SessionStateMachine:
        try:
            await self.start()
        except BaseException:
            self.teardown()
            raise
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.teardown()

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def _on_session_change(self, event: AuthChangeEvent, session: Session | None) -> None:
        if self._closed:
            return
        self._generation += 1
        logger.debug("Provider notification %s (session=%s)", event, session is not None)
        self._apply(session)

    def _apply(self, session: Session | None) -> None:
        previous = self._state
        if session is not None and session.is_active:
            self._state = SessionState.AUTHENTICATED
            self._session = session
            if previous != SessionState.AUTHENTICATED:
                logger.info("Session authenticated for %s", session.email)
                self._emit(Route.APPLICATION_HOME)
            self._schedule_profile_fetch(session.user_id)
        else:
            self._state = SessionState.ANONYMOUS
            self._session = None
            self._profile = None
            if previous != SessionState.ANONYMOUS:
                logger.info("Session is anonymous (was %s)", previous)
                self._emit(Route.LOGIN)

    def _emit(self, route: Route) -> None:
        if self._navigate is None:
            return
        try:
            self._navigate(route)
        except Exception:
            logger.exception("Navigation callback failed for %s", route)

    # -------------------------------------------------------------------
    # Profile fetch
    # -------------------------------------------------------------------
    def _schedule_profile_fetch(self, user_id: str) -> None:
        if self._profile is not None and self._profile.user_id != user_id:
            self._profile = None
        if self._load_profile is None:
            return
        previous = self._profile_task
        if previous is not None and not previous.done():
            previous.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; profile fetch for %s skipped", user_id)
            return
        self._profile_task = loop.create_task(self._fetch_profile(user_id))

    async def _fetch_profile(self, user_id: str) -> None:
        try:
            profile = await self._load_profile(user_id)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Profile fetch failed for user %s", user_id)
            return

        if self._closed or self._session is None or self._session.user_id != user_id:
            logger.debug("Discarding profile for %s; session changed", user_id)
            return
        if profile is None:
            logger.info("No profile provisioned yet for user %s", user_id)
        self._profile = profile

    def reload_profile(self) -> None:
        """Re-fetch the signed-in member's profile (e.g. after an XP award)."""
        if self._closed or self._session is None:
            return
        self._schedule_profile_fetch(self._session.user_id)

    async def wait_for_profile(self) -> Profile | None:
        """Await the latest profile fetch, if any, and return the profile."""
        while True:
            task = self._profile_task
            if task is None or task.done():
                return self._profile
            # A newer notification may replace the task while we wait
            await asyncio.wait({task})
