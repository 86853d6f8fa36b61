"""
codifyr.services.profile_service — Profile Reads & XP Awards
=============================================================

Synchronous data-store functions (call them through ``run_db`` from async
code) plus :class:`ProfileStore`, the async facade the session machine and
verification submission use.

Leveling rule: a profile's level is derived from its XP score whenever XP
is awarded here, and never lowered::

    level = max(current_level, xp_score // 100 + 1)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from codifyr.database.engine import get_session, run_db
from codifyr.database.models import Profile, VerificationRequest, VerificationStatus
from codifyr.engine.events import Notice
from codifyr.engine.progression import LevelUp, badge_for_level, level_for_xp
from codifyr.services.verification_service import submit_verification

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def read_profile(engine: Engine, user_id: str) -> Profile | None:
    """Single-row lookup by ``user_id``.  ``None`` means not provisioned yet."""
    with get_session(engine) as session:
        profile = session.scalar(select(Profile).where(Profile.user_id == user_id))
        if profile is not None:
            session.expunge(profile)
        return profile


def can_collaborate(profile: Profile | None) -> bool:
    """Collaboration features unlock only for approved members."""
    return profile is not None and profile.is_verified


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def ensure_profile(engine: Engine, user_id: str, full_name: str) -> Profile:
    """Fetch or insert the profile row for *user_id*."""
    with get_session(engine) as session:
        profile = session.scalar(select(Profile).where(Profile.user_id == user_id))
        if profile is None:
            profile = Profile(
                user_id=user_id,
                full_name=full_name,
                xp_score=0,
                level=1,
                verification_status=VerificationStatus.PENDING,
                tech_stack=[],
            )
            session.add(profile)
            session.flush()
            logger.info("Provisioned profile for user %s", user_id)
        session.expunge(profile)
        return profile


def award_xp(engine: Engine, user_id: str, amount: int) -> LevelUp | None:
    """Add *amount* XP to a profile and raise its level if earned.

    Returns a :class:`LevelUp` when the level went up, else ``None``.

    Raises
    ------
    ValueError
        If *amount* is negative (XP only accumulates).
    LookupError
        If no profile exists for *user_id*.
    """
    if amount < 0:
        raise ValueError(f"XP awards must be non-negative, got {amount}")

    with get_session(engine) as session:
        profile = session.scalar(select(Profile).where(Profile.user_id == user_id))
        if profile is None:
            raise LookupError(f"No profile for user {user_id}")

        old_level = profile.level
        profile.xp_score += amount
        profile.level = max(old_level, level_for_xp(profile.xp_score))

        if profile.level > old_level:
            logger.info(
                "User %s leveled up %d → %d (xp=%d)",
                user_id, old_level, profile.level, profile.xp_score,
            )
            return LevelUp(
                old_level=old_level,
                new_level=profile.level,
                badge=badge_for_level(profile.level),
            )
        return None


def level_up_notice(level_up: LevelUp) -> Notice:
    """Celebration notice for a level-up ("Level N Unlocked!")."""
    return Notice.success(level_up.headline, level_up.badge.title)


def set_tech_stack(engine: Engine, user_id: str, technologies: list[str]) -> list[str]:
    """Replace the tech stack, keeping first-seen order and dropping duplicates.

    Duplicates are compared case-insensitively; blank entries are dropped.
    """
    seen: set[str] = set()
    stack: list[str] = []
    for tech in technologies:
        name = tech.strip()
        if name and name.lower() not in seen:
            seen.add(name.lower())
            stack.append(name)

    with get_session(engine) as session:
        profile = session.scalar(select(Profile).where(Profile.user_id == user_id))
        if profile is None:
            raise LookupError(f"No profile for user {user_id}")
        profile.tech_stack = stack
    return stack


# ---------------------------------------------------------------------------
# Async facade
# ---------------------------------------------------------------------------
class ProfileStore:
    """Async data-store contract over a SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    async def read_profile(self, user_id: str) -> Profile | None:
        return await run_db(read_profile, self.engine, user_id)

    async def insert_verification_request(
        self,
        user_id: str,
        file_reference: str,
        description: str | None,
    ) -> VerificationRequest:
        return await run_db(
            submit_verification, self.engine, user_id, file_reference, description
        )
