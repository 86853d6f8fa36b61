"""
codifyr.client — In-Process Wiring
===================================

:class:`CodifyrClient` mounts the core for one presentation context:
it starts the session machine (subscribe + session lookup) on entry and
tears it down on exit, on every exit path.

Usage::

    async with CodifyrClient(provider, engine, cfg, notify=ui.toast,
                             navigate=ui.go) as app:
        await app.auth.sign_in(email, password)
        view = app.progress()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from codifyr.database.engine import run_db
from codifyr.engine.progression import (
    Badge,
    LevelUp,
    Progress,
    badge_for_level,
    compute_progress,
)
from codifyr.services.auth_service import AuthActions
from codifyr.services.profile_service import ProfileStore, award_xp, level_up_notice
from codifyr.services.session_machine import SessionSnapshot, SessionStateMachine
from codifyr.services.verification_service import VerificationSubmission

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from codifyr.config import CodifyrConfig
    from codifyr.engine.events import Navigate, Notify
    from codifyr.identity.provider import IdentityProvider

logger = logging.getLogger(__name__)


class CodifyrClient:
    def __init__(
        self,
        provider: IdentityProvider,
        engine: Engine,
        config: CodifyrConfig,
        *,
        notify: Notify | None = None,
        navigate: Navigate | None = None,
    ) -> None:
        self._config = config
        self._notify = notify
        self.store = ProfileStore(engine)
        self.machine = SessionStateMachine(
            provider, navigate=navigate, load_profile=self.store.read_profile
        )
        self.auth = AuthActions(provider, config, notify=notify)
        self.verification = VerificationSubmission(
            self.machine, self.store, notify=notify, navigate=navigate
        )

    async def __aenter__(self) -> CodifyrClient:
        await self.machine.__aenter__()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.machine.__aexit__(*exc_info)

    def snapshot(self) -> SessionSnapshot:
        return self.machine.snapshot()

    def progress(self) -> tuple[Progress, Badge] | None:
        """Progress bar and badge for the signed-in member's loaded profile."""
        profile = self.machine.snapshot().profile
        if profile is None:
            return None
        return (
            compute_progress(profile.xp_score, profile.level),
            badge_for_level(profile.level),
        )

    async def award_xp(self, amount: int) -> LevelUp | None:
        """Award XP to the signed-in member and refresh their profile.

        A level-up is announced through ``notify`` unless the config turns
        ``announce_level_ups`` off.
        """
        user_id = self.machine.snapshot().user_id
        if user_id is None:
            raise RuntimeError("No signed-in member to award XP to")

        level_up = await run_db(award_xp, self.store.engine, user_id, amount)
        self.machine.reload_profile()
        if level_up is not None and self._config.announce_level_ups and self._notify:
            try:
                self._notify(level_up_notice(level_up))
            except Exception:
                logger.exception("Notification callback failed for level-up of %s", user_id)
        return level_up
