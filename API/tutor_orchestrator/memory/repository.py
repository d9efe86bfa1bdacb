from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutor_orchestrator.core.errors import DurableStoreError
from tutor_orchestrator.core.settings import settings
from tutor_orchestrator.models.entities import FeedbackRecord, LearningSession, StudentProfile
from tutor_orchestrator.orchestrator.states import DURABLE_STATUS_COMPLETED, durable_status
from tutor_orchestrator.runtime.session_context import SessionState


@dataclass
class LearningSessionRecord:
    session_id: str
    student_id: str
    topic: str | None = None
    current_state: str = "initializing"
    orchestrator_state: dict | None = None
    completed_at: datetime | None = None


class DurableStore(ABC):
    """Source of truth for learning sessions; the state cache is only an accelerator in front of it."""

    backend_name: str

    @abstractmethod
    async def load_session(self, session_id: str) -> LearningSessionRecord | None:
        raise NotImplementedError

    @abstractmethod
    async def save_orchestration(self, state: SessionState) -> None:
        raise NotImplementedError

    @abstractmethod
    async def mark_status(self, session_id: str, status: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def mark_completed(self, session_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def latest_feedback(self, student_id: str, session_id: str) -> dict | None:
        raise NotImplementedError

    @abstractmethod
    async def grade_level(self, student_id: str) -> str | None:
        raise NotImplementedError


class SqlDurableStore(DurableStore):
    backend_name = "postgres"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def load_session(self, session_id: str) -> LearningSessionRecord | None:
        try:
            async with self.session_factory() as db:
                row = await db.get(LearningSession, session_id)
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"load_session failed: {exc}") from exc
        if row is None:
            return None
        return LearningSessionRecord(
            session_id=row.id,
            student_id=row.student_id,
            topic=row.topic,
            current_state=row.current_state,
            orchestrator_state=row.orchestrator_state,
            completed_at=row.completed_at,
        )

    async def save_orchestration(self, state: SessionState) -> None:
        try:
            async with self.session_factory() as db:
                row = await db.get(LearningSession, state.session_id)
                if row is None:
                    row = LearningSession(id=state.session_id, student_id=state.student_id, topic=state.topic)
                    db.add(row)
                row.current_state = durable_status(state.current_state)
                row.orchestrator_state = state.to_dict()
                await db.commit()
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"save_orchestration failed: {exc}") from exc

    async def mark_status(self, session_id: str, status: str) -> None:
        try:
            async with self.session_factory() as db:
                row = await db.get(LearningSession, session_id)
                if row is None:
                    return
                row.current_state = status
                await db.commit()
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"mark_status failed: {exc}") from exc

    async def mark_completed(self, session_id: str) -> None:
        try:
            async with self.session_factory() as db:
                row = await db.get(LearningSession, session_id)
                if row is None:
                    return
                row.current_state = DURABLE_STATUS_COMPLETED
                if row.completed_at is None:
                    row.completed_at = datetime.now(timezone.utc)
                await db.commit()
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"mark_completed failed: {exc}") from exc

    async def latest_feedback(self, student_id: str, session_id: str) -> dict | None:
        try:
            async with self.session_factory() as db:
                content = (
                    await db.execute(
                        select(FeedbackRecord.content)
                        .where(FeedbackRecord.student_id == student_id, FeedbackRecord.session_id == session_id)
                        .order_by(desc(FeedbackRecord.created_at))
                        .limit(1)
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"latest_feedback failed: {exc}") from exc
        return content if isinstance(content, dict) else None

    async def grade_level(self, student_id: str) -> str | None:
        try:
            async with self.session_factory() as db:
                profile = await db.get(StudentProfile, student_id)
        except SQLAlchemyError as exc:
            raise DurableStoreError(f"grade_level failed: {exc}") from exc
        if profile is None or profile.grade_level is None:
            return None
        return str(profile.grade_level)


@dataclass
class _FeedbackEntry:
    student_id: str
    session_id: str
    content: dict
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryDurableStore(DurableStore):
    """Process-local durable store for single-worker runs and tests."""

    backend_name = "memory"

    def __init__(self):
        self.sessions: dict[str, LearningSessionRecord] = {}
        self.feedback: list[_FeedbackEntry] = []
        self.grade_levels: dict[str, str] = {}
        self._lock = asyncio.Lock()

    def add_session(self, session_id: str, student_id: str, topic: str | None = None) -> LearningSessionRecord:
        record = LearningSessionRecord(session_id=session_id, student_id=student_id, topic=topic)
        self.sessions[session_id] = record
        return record

    def add_feedback(self, student_id: str, session_id: str, content: dict, created_at: datetime | None = None) -> None:
        entry = _FeedbackEntry(student_id=student_id, session_id=session_id, content=content)
        if created_at is not None:
            entry.created_at = created_at
        self.feedback.append(entry)

    async def load_session(self, session_id: str) -> LearningSessionRecord | None:
        return self.sessions.get(session_id)

    async def save_orchestration(self, state: SessionState) -> None:
        async with self._lock:
            record = self.sessions.get(state.session_id)
            if record is None:
                record = self.add_session(state.session_id, state.student_id, state.topic)
            record.current_state = durable_status(state.current_state)
            record.orchestrator_state = state.to_dict()

    async def mark_status(self, session_id: str, status: str) -> None:
        async with self._lock:
            record = self.sessions.get(session_id)
            if record is not None:
                record.current_state = status

    async def mark_completed(self, session_id: str) -> None:
        async with self._lock:
            record = self.sessions.get(session_id)
            if record is not None:
                record.current_state = DURABLE_STATUS_COMPLETED
                if record.completed_at is None:
                    record.completed_at = datetime.now(timezone.utc)

    async def latest_feedback(self, student_id: str, session_id: str) -> dict | None:
        matches = [f for f in self.feedback if f.student_id == student_id and f.session_id == session_id]
        if not matches:
            return None
        # Stable sort: among equal timestamps the most recently added wins.
        return sorted(matches, key=lambda f: f.created_at)[-1].content

    async def grade_level(self, student_id: str) -> str | None:
        return self.grade_levels.get(student_id)


def build_durable_store() -> DurableStore:
    backend = settings.durable_store_backend.strip().lower()
    if backend == "memory":
        return InMemoryDurableStore()
    from tutor_orchestrator.memory.database import SessionLocal

    return SqlDurableStore(SessionLocal)
