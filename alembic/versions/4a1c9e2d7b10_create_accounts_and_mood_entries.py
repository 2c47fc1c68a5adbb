"""create accounts and mood entries

Revision ID: 4a1c9e2d7b10
Revises:
Create Date: 2026-10-19 09:12:44.118207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4a1c9e2d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:

    op.create_table(
        "User",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(length=50), nullable=False),
        sa.Column("last_name", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column(
            "role",
            sa.Enum("member", "therapist", "admin", name="user_role"),
            nullable=False,
        ),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("bio", sa.String(length=500), nullable=True),
        sa.Column("avatar", sa.String(), nullable=True),
        sa.Column("location", sa.JSON(), nullable=True),
        sa.Column("interests", sa.JSON(), nullable=False),
        sa.Column("email_notifications", sa.Boolean(), nullable=False),
        sa.Column("push_notifications", sa.Boolean(), nullable=False),
        sa.Column("newsletter", sa.Boolean(), nullable=False),
        sa.Column(
            "privacy_level",
            sa.Enum("public", "private", "anonymous", name="privacy_level"),
            nullable=False,
        ),
        sa.Column("is_email_verified", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_online", sa.Boolean(), nullable=False),
        sa.Column("last_seen", sa.DateTime(), nullable=True),
        sa.Column("reset_password_token", sa.String(), nullable=True),
        sa.Column("reset_password_expire", sa.DateTime(), nullable=True),
        sa.Column("email_verification_token", sa.String(), nullable=True),
        sa.Column("email_verification_expire", sa.DateTime(), nullable=True),
        sa.Column("login_attempts", sa.Integer(), nullable=False),
        sa.Column("lock_until", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_User_id", "User", ["id"])
    op.create_index("ix_User_email", "User", ["email"], unique=True)
    op.create_index("ix_User_role", "User", ["role"])
    op.create_index("ix_User_is_active", "User", ["is_active"])
    op.create_index("ix_User_reset_password_token", "User", ["reset_password_token"])
    op.create_index("ix_User_email_verification_token", "User", ["email_verification_token"])

    op.create_table(
        "MoodEntry",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("User.id"), nullable=False),
        sa.Column("mood", sa.Integer(), nullable=False),
        sa.Column("mood_text", sa.String(), nullable=False),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("activities", sa.JSON(), nullable=False),
        sa.Column("sleep_hours", sa.Float(), nullable=True),
        sa.Column("sleep_quality", sa.Integer(), nullable=True),
        sa.Column("exercise_minutes", sa.Integer(), nullable=True),
        sa.Column("weather", sa.String(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "entry_date", name="uq_mood_entry_user_day"),
    )
    op.create_index("ix_MoodEntry_id", "MoodEntry", ["id"])
    op.create_index("ix_MoodEntry_user_id", "MoodEntry", ["user_id"])
    op.create_index("ix_MoodEntry_created_at", "MoodEntry", ["created_at"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("MoodEntry")
    op.drop_table("User")

    # PostgreSQL keeps named enum types after their table is gone
    bind = op.get_bind()
    sa.Enum(name="privacy_level").drop(bind, checkfirst=True)
    sa.Enum(name="user_role").drop(bind, checkfirst=True)
