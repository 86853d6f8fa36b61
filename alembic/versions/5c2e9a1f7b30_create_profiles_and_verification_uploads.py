"""Create profiles and verification_uploads tables

Revision ID: 5c2e9a1f7b30
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c2e9a1f7b30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

verification_status = postgresql.ENUM(
    "pending", "approved", "rejected", name="verification_status", create_type=False
)


def upgrade() -> None:
    """Create the member profile and proof submission tables."""
    verification_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False, unique=True),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("xp_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "verification_status",
            verification_status,
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "tech_stack",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("xp_score >= 0", name="ck_profiles_xp_non_negative"),
        sa.CheckConstraint("level >= 1", name="ck_profiles_level_positive"),
    )
    op.create_index("ix_profiles_xp_desc", "profiles", ["xp_score"])

    op.create_table(
        "verification_uploads",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("file_url", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status",
            verification_status,
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_verification_uploads_user_created",
        "verification_uploads",
        ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_verification_uploads_user_created", table_name="verification_uploads")
    op.drop_table("verification_uploads")
    op.drop_index("ix_profiles_xp_desc", table_name="profiles")
    op.drop_table("profiles")
    verification_status.drop(op.get_bind(), checkfirst=True)
