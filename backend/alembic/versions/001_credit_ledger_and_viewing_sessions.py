"""Create users, videos, viewing sessions and the credit ledger.

Revision ID: 001_credit_ledger_and_viewing_sessions
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001_credit_ledger_and_viewing_sessions"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("credits_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lifetime_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("credits_balance >= 0", name="ck_users_credits_balance_non_negative"),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)

    op.create_table(
        "videos",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("creator_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="ready"),
        sa.Column("moderation_state", sa.String(), nullable=False, server_default="approved"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("duration_s", sa.Integer(), nullable=True),
        sa.Column("total_views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("boost_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_videos_id", "videos", ["id"], unique=False)
    op.create_index("ix_videos_creator_id", "videos", ["creator_id"], unique=False)

    op.create_table(
        "viewing_sessions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("video_id", sa.String(), sa.ForeignKey("videos.id"), nullable=False),
        sa.Column("state", sa.String(), nullable=False, server_default="started"),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("watched_seconds", sa.Integer(), nullable=True),
        sa.Column("credit_awarded", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_viewing_sessions_user_id", "viewing_sessions", ["user_id"], unique=False)
    op.create_index("ix_viewing_sessions_video_id", "viewing_sessions", ["video_id"], unique=False)
    op.create_index(
        "uq_viewing_sessions_open",
        "viewing_sessions",
        ["user_id", "video_id"],
        unique=True,
        postgresql_where=sa.text("state = 'started'"),
        sqlite_where=sa.text("state = 'started'"),
    )

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("event_key", sa.String(), nullable=True),
        sa.Column("video_id", sa.String(), sa.ForeignKey("videos.id"), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_credit_transactions_id", "credit_transactions", ["id"], unique=False)
    op.create_index("ix_credit_transactions_user_id", "credit_transactions", ["user_id"], unique=False)
    op.create_index("ix_credit_transactions_event_key", "credit_transactions", ["event_key"], unique=True)
    op.create_index("ix_credit_transactions_video_id", "credit_transactions", ["video_id"], unique=False)
    op.create_index("ix_credit_transactions_created_at", "credit_transactions", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_table("credit_transactions")
    op.drop_index("uq_viewing_sessions_open", table_name="viewing_sessions")
    op.drop_table("viewing_sessions")
    op.drop_table("videos")
    op.drop_table("users")
