"""
codifyr.engine.progression — Level Progress & Badge Tiers
==========================================================

Pure calculation of the progress bar and badge shown for a
``(xp_score, level)`` pair.  No database I/O.

The displayed bar fills ``xp_score % 100`` out of ``level * 100``.
Levels are derived from XP by :func:`level_for_xp` when XP is awarded
(see :mod:`codifyr.services.profile_service`); this module never raises
or lowers a stored level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from codifyr.constants import BADGE_TIERS, MIN_LEVEL, XP_PER_LEVEL, BadgeTier

logger = logging.getLogger(__name__)

__all__ = [
    "Badge",
    "LevelUp",
    "Progress",
    "badge_for_level",
    "compute_progress",
    "level_for_xp",
]


@dataclass(frozen=True, slots=True)
class Progress:
    """Derived progress view for one profile."""

    xp_for_next_level: int
    xp_into_level: int
    percent: float

    def to_dict(self) -> dict:
        return {
            "xp_for_next_level": self.xp_for_next_level,
            "xp_into_level": self.xp_into_level,
            "percent": self.percent,
        }


@dataclass(frozen=True, slots=True)
class Badge:
    tier: BadgeTier
    title: str

    def to_dict(self) -> dict[str, str]:
        return {"tier": self.tier.value, "title": self.title}


@dataclass(frozen=True, slots=True)
class LevelUp:
    """Result of an XP award that crossed at least one level boundary."""

    old_level: int
    new_level: int
    badge: Badge

    @property
    def headline(self) -> str:
        return f"Level {self.new_level} Unlocked!"


# ---------------------------------------------------------------------------
# Progress bar
# ---------------------------------------------------------------------------
def compute_progress(xp_score: int, level: int) -> Progress:
    """Return the progress view for *xp_score* at *level*.

    ``level <= 0`` is invalid input and is treated as the minimum level.
    Negative XP is treated as zero.
    """
    if level < MIN_LEVEL:
        logger.debug("compute_progress got level=%d; clamping to %d", level, MIN_LEVEL)
        level = MIN_LEVEL
    xp_score = max(0, xp_score)

    xp_for_next_level = level * XP_PER_LEVEL
    xp_into_level = xp_score % XP_PER_LEVEL
    percent = (xp_into_level / xp_for_next_level) * 100
    return Progress(
        xp_for_next_level=xp_for_next_level,
        xp_into_level=xp_into_level,
        percent=percent,
    )


# ---------------------------------------------------------------------------
# Badge lookup
# ---------------------------------------------------------------------------
def badge_for_level(level: int) -> Badge:
    """Map *level* onto its badge tier.  Total over all integers."""
    for upper, tier, title in BADGE_TIERS:
        if upper is None or level <= upper:
            return Badge(tier=tier, title=title)
    raise AssertionError("BADGE_TIERS must end with an unbounded tier")


# ---------------------------------------------------------------------------
# Leveling formula
# ---------------------------------------------------------------------------
def level_for_xp(xp_score: int) -> int:
    """Level implied by a total XP score (one level per 100 XP)."""
    return max(0, xp_score) // XP_PER_LEVEL + MIN_LEVEL
