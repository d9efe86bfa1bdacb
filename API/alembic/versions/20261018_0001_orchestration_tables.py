"""learning sessions, feedback records and student profiles

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:30:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "student_profiles",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("grade_level", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "learning_sessions",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("topic", sa.String(length=255), nullable=True),
        sa.Column("current_state", sa.String(length=32), nullable=False, server_default="initializing"),
        sa.Column("orchestrator_state", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_learning_sessions_student_id", "learning_sessions", ["student_id"], unique=False)
    op.create_index("idx_learning_sessions_current_state", "learning_sessions", ["current_state"], unique=False)

    op.create_table(
        "feedback_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=True),
        sa.Column("feedback_type", sa.String(length=32), nullable=False, server_default="comprehensive"),
        sa.Column("content", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_feedback_records_student_session",
        "feedback_records",
        ["student_id", "session_id"],
        unique=False,
    )
    op.create_index("idx_feedback_records_created_at", "feedback_records", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_feedback_records_created_at", table_name="feedback_records")
    op.drop_index("idx_feedback_records_student_session", table_name="feedback_records")
    op.drop_table("feedback_records")
    op.drop_index("idx_learning_sessions_current_state", table_name="learning_sessions")
    op.drop_index("idx_learning_sessions_student_id", table_name="learning_sessions")
    op.drop_table("learning_sessions")
    op.drop_table("student_profiles")
