"""
codifyr.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- profiles             — One row per member (progression + verification state)
- verification_uploads — Proof-of-identity submissions awaiting review

Both tables are provisioned by the identity/data provider in production;
the models mirror its schema so the core can read and insert rows.
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Codifyr ORM models."""


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class VerificationStatus(enum.StrEnum):
    """Review state shared by profiles and verification requests."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


_status_enum = Enum(
    VerificationStatus,
    name="verification_status",
    values_callable=lambda e: [m.value for m in e],
)


# ---------------------------------------------------------------------------
# Profiles — one row per member
# ---------------------------------------------------------------------------
class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    bio: Mapped[str | None] = mapped_column(Text, default=None)
    xp_score: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    verification_status: Mapped[VerificationStatus] = mapped_column(
        _status_enum, default=VerificationStatus.PENDING
    )
    tech_stack: Mapped[list[str]] = mapped_column(JSONB, default=list)
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_profiles_xp_desc", "xp_score"),
    )
    __mapper_args__ = {"eager_defaults": True}

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.APPROVED

    def __repr__(self) -> str:
        return f"<Profile user={self.user_id} name={self.full_name!r} lvl={self.level}>"


# ---------------------------------------------------------------------------
# VerificationRequest — proof submissions (append-only within this core)
# ---------------------------------------------------------------------------
class VerificationRequest(Base):
    """A member's proof-of-identity submission.

    Status transitions are made by the external review process.  Several
    rows per user may exist; the most recent one is the active request.
    """
    __tablename__ = "verification_uploads"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    file_url: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[VerificationStatus] = mapped_column(
        _status_enum, default=VerificationStatus.PENDING
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_verification_uploads_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<VerificationRequest id={self.id} user={self.user_id} status={self.status}>"
