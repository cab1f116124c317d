"""Learning engine schema

Revision ID: 001_learning_engine
Revises:
Create Date: 2026-10-18

Creates the following tables:
- learner_profiles: XP, streak, hearts and learner settings
- item_progress: Per-item ease/streak/due-date scheduling state
- category_progress: Per-(language, category) mastery and unlocked level
- active_sessions: Generated sessions awaiting completion (questions JSON)
- session_history: One row per completed session
- attempt_history: One row per evaluated attempt
- daily_xp: XP per learner, language and UTC day
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001_learning_engine"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ===========================================
    # Learner
    # ===========================================

    op.create_table(
        "learner_profiles",
        sa.Column("learner_id", sa.String(100), nullable=False),
        sa.Column("total_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("hearts", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("learner_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("last_completed_date", sa.Date(), nullable=True),
        sa.Column("learner_name", sa.String(100), nullable=True),
        sa.Column("native_language", sa.String(50), nullable=True),
        sa.Column("target_language", sa.String(50), nullable=True),
        sa.Column("daily_goal", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("daily_minutes", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("weekly_goal_sessions", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("self_rated_level", sa.String(10), nullable=False, server_default="a1"),
        sa.Column("learner_bio", sa.Text(), nullable=False, server_default=""),
        sa.Column("focus_area", sa.String(200), nullable=False, server_default=""),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("learner_id"),
    )

    # ===========================================
    # Progress
    # ===========================================

    op.create_table(
        "item_progress",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("learner_id", sa.String(100), nullable=False),
        sa.Column("language", sa.String(50), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("item_id", sa.String(100), nullable=False),
        sa.Column("objective", sa.String(100), nullable=False),
        sa.Column("ease", sa.Float(), nullable=False, server_default="1.8"),
        sa.Column("streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("correct", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error_type", sa.String(50), nullable=False, server_default=""),
        sa.Column("last_seen_date", sa.Date(), nullable=True),
        sa.Column("next_due_date", sa.Date(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "learner_id", "language", "category", "item_id", name="uq_item_progress"
        ),
    )
    op.create_index(
        "ix_item_progress_due",
        "item_progress",
        ["learner_id", "language", "category", "next_due_date"],
    )

    op.create_table(
        "category_progress",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("learner_id", sa.String(100), nullable=False),
        sa.Column("language", sa.String(50), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("mastery", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_answers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("correct_answers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level_unlocked", sa.String(10), nullable=False, server_default="a1"),
        sa.Column("last_practiced_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("learner_id", "language", "category", name="uq_category_progress"),
    )

    # ===========================================
    # Sessions
    # ===========================================

    op.create_table(
        "active_sessions",
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("learner_id", sa.String(100), nullable=False),
        sa.Column("language", sa.String(50), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("difficulty_level", sa.String(10), nullable=False),
        sa.Column("difficulty_multiplier", sa.Float(), nullable=False, server_default="1.0"),
        sa.Column("questions", sa.JSON(), nullable=False),
        sa.Column("schema_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("expires_on", sa.Date(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("session_id"),
    )
    op.create_index("ix_active_sessions_learner_id", "active_sessions", ["learner_id"])
    op.create_index("ix_active_sessions_expires_on", "active_sessions", ["expires_on"])

    # ===========================================
    # History
    # ===========================================

    op.create_table(
        "session_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("learner_id", sa.String(100), nullable=False),
        sa.Column("language", sa.String(50), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mistakes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("accuracy", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("xp_gained", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("hints_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("revealed_answers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("difficulty_level", sa.String(10), nullable=False, server_default="a1"),
        sa.Column("completed_on", sa.Date(), nullable=False),
        sa.Column(
            "completed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id"),
    )
    op.create_index(
        "ix_session_history_learner",
        "session_history",
        ["learner_id", "language", "category"],
    )

    op.create_table(
        "attempt_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("learner_id", sa.String(100), nullable=False),
        sa.Column("language", sa.String(50), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("item_id", sa.String(100), nullable=False),
        sa.Column("question_type", sa.String(50), nullable=False),
        sa.Column("objective", sa.String(100), nullable=False),
        sa.Column("correct", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("error_type", sa.String(50), nullable=False, server_default="none"),
        sa.Column("created_on", sa.Date(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_attempt_history_session_id", "attempt_history", ["session_id"])
    op.create_index(
        "ix_attempt_history_learner_day", "attempt_history", ["learner_id", "created_on"]
    )

    op.create_table(
        "daily_xp",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("learner_id", sa.String(100), nullable=False),
        sa.Column("language", sa.String(50), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("learner_id", "language", "day", name="uq_daily_xp"),
    )


def downgrade() -> None:
    op.drop_table("daily_xp")
    op.drop_index("ix_attempt_history_learner_day", table_name="attempt_history")
    op.drop_index("ix_attempt_history_session_id", table_name="attempt_history")
    op.drop_table("attempt_history")
    op.drop_index("ix_session_history_learner", table_name="session_history")
    op.drop_table("session_history")
    op.drop_index("ix_active_sessions_expires_on", table_name="active_sessions")
    op.drop_index("ix_active_sessions_learner_id", table_name="active_sessions")
    op.drop_table("active_sessions")
    op.drop_table("category_progress")
    op.drop_index("ix_item_progress_due", table_name="item_progress")
    op.drop_table("item_progress")
    op.drop_table("learner_profiles")
