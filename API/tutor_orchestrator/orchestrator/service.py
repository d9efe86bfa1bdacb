from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from tutor_orchestrator.core.app_metrics import record_escalation, record_executor_outcome
from tutor_orchestrator.core.errors import DurableStoreError
from tutor_orchestrator.core.logging import DOMAIN_ORCHESTRATION, get_domain_logger, log_state_transition
from tutor_orchestrator.core.settings import settings
from tutor_orchestrator.memory.repository import DurableStore
from tutor_orchestrator.memory.state_store import SessionStateStore
from tutor_orchestrator.orchestrator.engine import StateEngine, TransitionContext
from tutor_orchestrator.orchestrator.executor import ActionExecutor, ExecutionResult
from tutor_orchestrator.orchestrator.states import DURABLE_STATUS_ERROR, OrchestratorState
from tutor_orchestrator.runtime.session_context import SessionState

logger = get_domain_logger(__name__, DOMAIN_ORCHESTRATION)

ACTION_ADVANCE = "advance"
ACTION_RETRY = "retry"

NEXT_ACTIONS: dict[OrchestratorState, str | None] = {
    OrchestratorState.INITIALIZING: "advance",
    OrchestratorState.CURRICULUM_GENERATION: "advance",
    OrchestratorState.TEACHING_EXPLAIN: "tutor_turn",
    OrchestratorState.TEACHING_EXAMPLE: "tutor_turn",
    OrchestratorState.TEACHING_PRACTICE: "tutor_turn",
    OrchestratorState.ASSESSMENT: "submit_assessment",
    OrchestratorState.FEEDBACK_ANALYSIS: "advance",
    OrchestratorState.PROGRESSION_CHECK: "advance",
    OrchestratorState.SESSION_COMPLETE: None,
    OrchestratorState.ERROR: "retry",
}


class OrchestrationRequestError(ValueError):
    """The request itself is unusable (missing ids, unknown action); no state is touched."""


@dataclass
class OrchestrationOutcome:
    success: bool
    state: SessionState
    result: Any = None
    error: str | None = None


class Orchestrator:
    """Loads a session, applies the requested action, runs one executor step and persists the result.

    Writes are last-writer-wins on both the cache and the durable store: two concurrent
    requests for one session can read the same prior state and one update can be lost.
    """

    def __init__(
        self,
        state_store: SessionStateStore,
        durable_store: DurableStore,
        executor: ActionExecutor,
        *,
        engine: StateEngine | None = None,
        max_consecutive_errors: int | None = None,
    ):
        self.state_store = state_store
        self.durable_store = durable_store
        self.executor = executor
        self.engine = engine or StateEngine()
        self.max_consecutive_errors = max_consecutive_errors or settings.max_consecutive_errors

    async def _bootstrap(self, session_id: str, student_id: str) -> SessionState:
        record = None
        try:
            record = await self.durable_store.load_session(session_id)
        except DurableStoreError as exc:
            logger.warning("Durable store unavailable while bootstrapping session=%s: %s", session_id, exc)

        if record is not None and record.orchestrator_state:
            try:
                return SessionState.from_dict(record.orchestrator_state)
            except ValueError as exc:
                logger.warning("Ignoring malformed durable snapshot for session=%s: %s", session_id, exc)

        grade_level = None
        try:
            grade_level = await self.durable_store.grade_level(student_id)
        except DurableStoreError as exc:
            logger.warning("Could not read grade level for student=%s: %s", student_id, exc)

        return SessionState(
            session_id=session_id,
            student_id=student_id,
            topic=(record.topic if record and record.topic else settings.default_topic),
            current_state=OrchestratorState.INITIALIZING,
            current_concept=settings.default_concept,
            total_concepts=settings.default_total_concepts,
            last_action="Initialized",
            error_count=0,
            grade_level=grade_level or settings.default_grade_level,
        )

    async def load_or_initialize(self, session_id: str, student_id: str) -> SessionState:
        state = await self.state_store.get(session_id)
        if state is not None:
            return state
        return await self._bootstrap(session_id, student_id)

    async def get_state(self, session_id: str) -> SessionState | None:
        """Read-only view: cache first, then the durable snapshot. Never writes."""
        state = await self.state_store.get(session_id)
        if state is not None:
            return state
        try:
            record = await self.durable_store.load_session(session_id)
        except DurableStoreError as exc:
            logger.warning("Durable store unavailable for read of session=%s: %s", session_id, exc)
            return None
        if record is None or not record.orchestrator_state:
            return None
        try:
            return SessionState.from_dict(record.orchestrator_state)
        except ValueError:
            return None

    def _advance(self, state: SessionState, context: TransitionContext) -> TransitionContext:
        previous = state.current_state
        all_complete = context.all_concepts_complete
        if previous is OrchestratorState.PROGRESSION_CHECK:
            committed_all = self.executor.apply_progression(state)
            if all_complete is None:
                all_complete = committed_all
        context = replace(context, all_concepts_complete=all_complete)

        transition = self.engine.next_transition(previous, context)
        state.current_state = transition.next_state
        state.last_action = f"Advanced to {transition.next_state.value}"
        log_state_transition(
            logger,
            session_id=state.session_id,
            student_id=state.student_id,
            from_state=previous.value,
            to_state=transition.next_state.value,
            event="advance",
            payload={
                "concept_progress": context.concept_progress,
                "assessment_score": context.assessment_score,
                "current_concept": state.current_concept,
            },
        )
        return context

    def _retry(self, state: SessionState) -> None:
        state.error_count = 0
        state.last_action = "Retrying current state"
        if state.current_state is OrchestratorState.ERROR and state.failed_state is not None:
            log_state_transition(
                logger,
                session_id=state.session_id,
                student_id=state.student_id,
                from_state=state.current_state.value,
                to_state=state.failed_state.value,
                event="retry_resumed",
            )
            state.current_state = state.failed_state

    async def _record_failure(self, state: SessionState, result: ExecutionResult) -> None:
        failed = state.current_state
        if failed is not OrchestratorState.ERROR:
            state.failed_state = failed
        state.current_state = OrchestratorState.ERROR
        state.error_count += 1
        state.last_action = f"Error: {result.error}"
        log_state_transition(
            logger,
            session_id=state.session_id,
            student_id=state.student_id,
            from_state=failed.value,
            to_state=OrchestratorState.ERROR.value,
            event="action_failed",
            payload={"error": result.error, "error_count": state.error_count},
        )
        if state.error_count >= self.max_consecutive_errors:
            record_escalation()
            logger.error(
                "Session halted after %d consecutive failures | session=%s",
                state.error_count,
                state.session_id,
            )
            try:
                await self.durable_store.mark_status(state.session_id, DURABLE_STATUS_ERROR)
            except DurableStoreError as exc:
                logger.warning("Could not mark session=%s as errored: %s", state.session_id, exc)

    async def _persist(self, state: SessionState) -> None:
        state.touch()
        await self.state_store.put(state.session_id, state)
        try:
            await self.durable_store.save_orchestration(state)
        except DurableStoreError as exc:
            logger.warning("Durable write failed for session=%s: %s", state.session_id, exc)

    async def orchestrate(
        self,
        session_id: str | None,
        student_id: str | None,
        action: str | None = None,
        context: TransitionContext | None = None,
    ) -> OrchestrationOutcome:
        if not session_id or not student_id:
            raise OrchestrationRequestError("sessionId and studentId required")
        if action not in (None, ACTION_ADVANCE, ACTION_RETRY):
            raise OrchestrationRequestError(f"Unsupported action: {action}")

        context = context or TransitionContext()
        state = await self.load_or_initialize(session_id, student_id)

        if state.error_count >= self.max_consecutive_errors and action != ACTION_RETRY:
            return OrchestrationOutcome(
                success=False,
                state=state,
                error=(
                    f"Session halted after {state.error_count} consecutive failures; send action=retry"
                ),
            )

        if action == ACTION_ADVANCE:
            context = self._advance(state, context)
        elif action == ACTION_RETRY:
            self._retry(state)

        executed = state.current_state
        result = await self.executor.execute(state, context)
        record_executor_outcome(executed.value, result.success)

        if result.success:
            state.error_count = 0
            state.failed_state = None
            logger.info("Executed %s | session=%s", executed.value, session_id)
        else:
            await self._record_failure(state, result)

        state.next_action = NEXT_ACTIONS.get(state.current_state)
        await self._persist(state)
        return OrchestrationOutcome(success=result.success, state=state, result=result.result, error=result.error)
