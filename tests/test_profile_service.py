"""
tests/test_profile_service.py — Profile Reads & XP Awards
==========================================================
"""

from __future__ import annotations

import pytest
from conftest import run

from codifyr.constants import BadgeTier
from codifyr.database.engine import get_session
from codifyr.database.models import Profile, VerificationStatus
from codifyr.engine.events import Severity
from codifyr.services.profile_service import (
    ProfileStore,
    award_xp,
    can_collaborate,
    ensure_profile,
    level_up_notice,
    read_profile,
    set_tech_stack,
)


class TestReadProfile:
    def test_absent_profile_is_none(self, db_engine):
        assert read_profile(db_engine, "ghost") is None

    def test_ensure_then_read(self, db_engine):
        created = ensure_profile(db_engine, "user-1", "Alice")
        profile = read_profile(db_engine, "user-1")
        assert profile.id == created.id
        assert profile.full_name == "Alice"
        assert profile.xp_score == 0
        assert profile.level == 1
        assert profile.verification_status == VerificationStatus.PENDING
        assert profile.tech_stack == []

    def test_ensure_is_idempotent(self, db_engine):
        first = ensure_profile(db_engine, "user-1", "Alice")
        second = ensure_profile(db_engine, "user-1", "Someone Else")
        assert first.id == second.id
        assert second.full_name == "Alice"

    def test_store_reads_through_worker_thread(self, db_engine):
        ensure_profile(db_engine, "user-1", "Alice")
        profile = run(ProfileStore(db_engine).read_profile("user-1"))
        assert profile.user_id == "user-1"


class TestCanCollaborate:
    def test_requires_approval(self, db_engine):
        ensure_profile(db_engine, "user-1", "Alice")
        assert not can_collaborate(read_profile(db_engine, "user-1"))

        with get_session(db_engine) as session:
            row = session.query(Profile).filter_by(user_id="user-1").one()
            row.verification_status = VerificationStatus.APPROVED

        assert can_collaborate(read_profile(db_engine, "user-1"))

    def test_no_profile(self):
        assert not can_collaborate(None)


class TestAwardXp:
    def test_small_award_keeps_level(self, db_engine):
        ensure_profile(db_engine, "user-1", "Alice")
        assert award_xp(db_engine, "user-1", 40) is None
        profile = read_profile(db_engine, "user-1")
        assert profile.xp_score == 40
        assert profile.level == 1

    def test_crossing_boundary_levels_up(self, db_engine):
        ensure_profile(db_engine, "user-1", "Alice")
        award_xp(db_engine, "user-1", 60)
        up = award_xp(db_engine, "user-1", 50)
        assert up is not None
        assert (up.old_level, up.new_level) == (1, 2)
        assert up.badge.tier == BadgeTier.BEGINNER
        assert read_profile(db_engine, "user-1").level == 2

    def test_large_award_skips_levels(self, db_engine):
        ensure_profile(db_engine, "user-1", "Alice")
        up = award_xp(db_engine, "user-1", 1000)
        assert up.new_level == 11
        assert up.badge.tier == BadgeTier.EXPERT_DEVELOPER

    def test_level_never_lowered(self, db_engine):
        ensure_profile(db_engine, "user-1", "Alice")
        with get_session(db_engine) as session:
            row = session.query(Profile).filter_by(user_id="user-1").one()
            row.level = 7

        assert award_xp(db_engine, "user-1", 10) is None
        assert read_profile(db_engine, "user-1").level == 7

    def test_negative_amount_rejected(self, db_engine):
        ensure_profile(db_engine, "user-1", "Alice")
        with pytest.raises(ValueError):
            award_xp(db_engine, "user-1", -5)

    def test_missing_profile(self, db_engine):
        with pytest.raises(LookupError):
            award_xp(db_engine, "ghost", 10)

    def test_level_up_notice(self, db_engine):
        ensure_profile(db_engine, "user-1", "Alice")
        notice = level_up_notice(award_xp(db_engine, "user-1", 500))
        assert notice.title == "Level 6 Unlocked!"
        assert notice.description == "Rising Coder"
        assert notice.severity == Severity.SUCCESS


class TestSetTechStack:
    def test_dedupes_case_insensitively(self, db_engine):
        ensure_profile(db_engine, "user-1", "Alice")
        stack = set_tech_stack(db_engine, "user-1", ["Python", " python ", "", "Rust", "RUST"])
        assert stack == ["Python", "Rust"]
        assert read_profile(db_engine, "user-1").tech_stack == ["Python", "Rust"]

    def test_missing_profile(self, db_engine):
        with pytest.raises(LookupError):
            set_tech_stack(db_engine, "ghost", ["Go"])
