import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from tutor_orchestrator.models.base import Base

# JSONB on Postgres, plain JSON elsewhere.
JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    grade_level: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class LearningSession(Base):
    __tablename__ = "learning_sessions"
    __table_args__ = (
        Index("idx_learning_sessions_student_id", "student_id"),
        Index("idx_learning_sessions_current_state", "current_state"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    topic: Mapped[str | None] = mapped_column(String(255), nullable=True)
    current_state: Mapped[str] = mapped_column(String(32), nullable=False, default="initializing")
    orchestrator_state: Mapped[dict | None] = mapped_column(JsonColumn, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class FeedbackRecord(Base):
    __tablename__ = "feedback_records"
    __table_args__ = (
        Index("idx_feedback_records_student_session", "student_id", "session_id"),
        Index("idx_feedback_records_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    session_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    feedback_type: Mapped[str] = mapped_column(String(32), nullable=False, default="comprehensive")
    content: Mapped[dict] = mapped_column(JsonColumn, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
