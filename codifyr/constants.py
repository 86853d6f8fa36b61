"""
codifyr.constants — Shared Constants
=====================================

Single source of truth for navigation route names, the badge-tier table,
and the XP-per-level step.  Import from here instead of duplicating in
services, routes, and tests.
"""

from __future__ import annotations

import enum


# ---------------------------------------------------------------------------
# Named navigation targets (presentation maps them to real paths)
# ---------------------------------------------------------------------------
class Route(enum.StrEnum):
    LOGIN = "login"
    APPLICATION_HOME = "application-home"
    VERIFICATION_STEP = "verification-step"


# ---------------------------------------------------------------------------
# Progression
# ---------------------------------------------------------------------------
XP_PER_LEVEL = 100
MIN_LEVEL = 1


class BadgeTier(enum.StrEnum):
    BEGINNER = "Beginner"
    RISING_CODER = "RisingCoder"
    EXPERT_DEVELOPER = "ExpertDeveloper"
    MASTER_CODER = "MasterCoder"


# (inclusive upper level bound, tier, display title), ordered.  The last
# entry has no upper bound so every level resolves to exactly one tier.
BADGE_TIERS: list[tuple[int | None, BadgeTier, str]] = [
    (5, BadgeTier.BEGINNER, "Beginner Badge"),
    (10, BadgeTier.RISING_CODER, "Rising Coder"),
    (20, BadgeTier.EXPERT_DEVELOPER, "Expert Developer"),
    (None, BadgeTier.MASTER_CODER, "Master Coder"),
]


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------
PENDING_UPLOAD = "pending_upload"  # file reference until real storage exists
DEFAULT_VERIFICATION_DESCRIPTION = "Verification certificate"
