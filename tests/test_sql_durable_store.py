from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tutor_orchestrator.core.errors import DurableStoreError
from tutor_orchestrator.core.settings import settings
from tutor_orchestrator.memory.cache import InMemoryStateCache
from tutor_orchestrator.memory.repository import SqlDurableStore
from tutor_orchestrator.memory.state_store import SessionStateStore
from tutor_orchestrator.models import entities  # noqa: F401
from tutor_orchestrator.models.base import Base
from tutor_orchestrator.models.entities import FeedbackRecord, LearningSession, StudentProfile
from tutor_orchestrator.orchestrator.executor import ActionExecutor
from tutor_orchestrator.orchestrator.service import Orchestrator
from tutor_orchestrator.orchestrator.states import OrchestratorState as S
from tutor_orchestrator.runtime.session_context import SessionState


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'durable.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def sql_store(session_factory) -> SqlDurableStore:
    return SqlDurableStore(session_factory)


def _state(**fields) -> SessionState:
    return SessionState(session_id="s1", student_id="stu1", topic="Math", **fields)


@pytest.mark.asyncio
async def test_save_orchestration_upserts_one_row(sql_store, session_factory):
    await sql_store.save_orchestration(_state())
    await sql_store.save_orchestration(_state(current_state=S.TEACHING_EXPLAIN, current_concept="Fractions"))

    record = await sql_store.load_session("s1")
    assert record.student_id == "stu1"
    assert record.topic == "Math"
    assert record.current_state == "teaching_explain"
    assert record.orchestrator_state["currentConcept"] == "Fractions"
    assert SessionState.from_dict(record.orchestrator_state).current_state is S.TEACHING_EXPLAIN
    async with session_factory() as db:
        assert await db.scalar(select(func.count()).select_from(LearningSession)) == 1


@pytest.mark.asyncio
async def test_session_complete_is_stored_as_completed(sql_store):
    await sql_store.save_orchestration(_state(current_state=S.SESSION_COMPLETE))

    assert (await sql_store.load_session("s1")).current_state == "completed"


@pytest.mark.asyncio
async def test_unknown_session_loads_as_none_and_status_writes_are_noops(sql_store):
    assert await sql_store.load_session("nope") is None
    await sql_store.mark_status("nope", "error")
    await sql_store.mark_completed("nope")
    assert await sql_store.load_session("nope") is None


@pytest.mark.asyncio
async def test_mark_status_sets_error(sql_store):
    await sql_store.save_orchestration(_state(current_state=S.CURRICULUM_GENERATION))
    await sql_store.mark_status("s1", "error")

    record = await sql_store.load_session("s1")
    assert record.current_state == "error"
    assert record.orchestrator_state["currentState"] == "curriculum_generation"


@pytest.mark.asyncio
async def test_mark_completed_keeps_the_first_timestamp(sql_store):
    await sql_store.save_orchestration(_state(current_state=S.FEEDBACK_ANALYSIS))

    await sql_store.mark_completed("s1")
    first = await sql_store.load_session("s1")
    await sql_store.mark_completed("s1")
    second = await sql_store.load_session("s1")

    assert first.current_state == "completed"
    assert first.completed_at is not None
    assert second.completed_at == first.completed_at


@pytest.mark.asyncio
async def test_latest_feedback_is_newest_for_the_session(sql_store, session_factory):
    async with session_factory() as db:
        db.add_all(
            [
                FeedbackRecord(
                    student_id="stu1",
                    session_id="s1",
                    content={"summary": "newest"},
                    created_at=datetime(2024, 3, 2, tzinfo=timezone.utc),
                ),
                FeedbackRecord(
                    student_id="stu1",
                    session_id="s1",
                    content={"summary": "oldest"},
                    created_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
                ),
                FeedbackRecord(
                    student_id="stu1",
                    session_id="other",
                    content={"summary": "other session"},
                    created_at=datetime(2024, 3, 5, tzinfo=timezone.utc),
                ),
            ]
        )
        await db.commit()

    assert await sql_store.latest_feedback("stu1", "s1") == {"summary": "newest"}
    assert await sql_store.latest_feedback("stu2", "s1") is None


@pytest.mark.asyncio
async def test_grade_level_comes_from_the_student_profile(sql_store, session_factory):
    async with session_factory() as db:
        db.add_all([StudentProfile(id="stu1", grade_level="Grade 7"), StudentProfile(id="stu2")])
        await db.commit()

    assert await sql_store.grade_level("stu1") == "Grade 7"
    assert await sql_store.grade_level("stu2") is None
    assert await sql_store.grade_level("stu3") is None


@pytest.mark.asyncio
async def test_missing_schema_raises_durable_store_error(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    store = SqlDurableStore(async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False))
    try:
        with pytest.raises(DurableStoreError):
            await store.load_session("s1")
        with pytest.raises(DurableStoreError):
            await store.save_orchestration(_state())
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_halted_session_is_recorded_as_error_and_readable_without_cache(sql_store, collaborators):
    collaborators.fail(settings.curriculum_path, status=503)
    orchestrator = Orchestrator(
        SessionStateStore(InMemoryStateCache()),
        sql_store,
        ActionExecutor(collaborators.client(), sql_store),
    )
    await orchestrator.orchestrate("s1", "stu1")
    await orchestrator.orchestrate("s1", "stu1", action="advance")
    await orchestrator.orchestrate("s1", "stu1")
    third = await orchestrator.orchestrate("s1", "stu1")
    assert third.state.error_count == 3

    record = await sql_store.load_session("s1")
    assert record.current_state == "error"
    assert record.orchestrator_state["errorCount"] == 3

    cold = Orchestrator(
        SessionStateStore(InMemoryStateCache()),
        sql_store,
        ActionExecutor(collaborators.client(), sql_store),
    )
    state = await cold.get_state("s1")
    assert state.current_state is S.ERROR
    assert state.failed_state is S.CURRICULUM_GENERATION
