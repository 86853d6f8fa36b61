"""
codifyr.api.routes.profile — Member profile + derived progression
==================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from codifyr.api.deps import CurrentUser, EngineDep
from codifyr.constants import BADGE_TIERS
from codifyr.database.engine import run_db
from codifyr.engine.progression import badge_for_level, compute_progress
from codifyr.services.profile_service import can_collaborate, read_profile

router = APIRouter(tags=["profile"])


@router.get("/profile/me")
async def my_profile(user: CurrentUser, engine: EngineDep):
    """Return the caller's profile with progress bar and badge."""
    profile = await run_db(read_profile, engine, user["sub"])
    if profile is None:
        raise HTTPException(404, "Profile not provisioned yet")

    return {
        "user_id": profile.user_id,
        "full_name": profile.full_name,
        "bio": profile.bio,
        "avatar_url": profile.avatar_url,
        "tech_stack": list(profile.tech_stack or []),
        "xp_score": profile.xp_score,
        "level": profile.level,
        "verification_status": profile.verification_status.value,
        "can_collaborate": can_collaborate(profile),
        "progress": compute_progress(profile.xp_score, profile.level).to_dict(),
        "badge": badge_for_level(profile.level).to_dict(),
    }


@router.get("/badges")
def list_badges():
    """Return the ordered badge-tier table."""
    tiers = []
    lower = 1
    for upper, tier, title in BADGE_TIERS:
        tiers.append({
            "tier": tier.value,
            "title": title,
            "min_level": lower,
            "max_level": upper,
        })
        if upper is not None:
            lower = upper + 1
    return tiers
