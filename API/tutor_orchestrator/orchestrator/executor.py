"""
Action executor: one side effect per top-level state.

Collaborator and storage failures are folded into an ExecutionResult; nothing is
retried here. Retrying is an explicit client action handled by the orchestrator.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tutor_orchestrator.collaborators.client import CollaboratorClient
from tutor_orchestrator.core.errors import CollaboratorError, DurableStoreError
from tutor_orchestrator.core.logging import DOMAIN_ORCHESTRATION, get_domain_logger
from tutor_orchestrator.core.settings import settings
from tutor_orchestrator.memory.repository import DurableStore
from tutor_orchestrator.orchestrator.engine import TransitionContext
from tutor_orchestrator.orchestrator.progression import ConceptSelector, CurriculumOrderSelector
from tutor_orchestrator.orchestrator.states import OrchestratorState, teaching_phase_for
from tutor_orchestrator.runtime.session_context import SessionState

logger = get_domain_logger(__name__, DOMAIN_ORCHESTRATION)

_READY_VALUES = {"yes", "true", "ready"}


@dataclass
class ExecutionResult:
    success: bool
    result: Any = None
    error: str | None = None


def extract_curriculum_concepts(payload) -> list[str]:
    """Pull ordered concept labels out of a curriculum response (`lessons[].title` or `concepts[]`)."""
    if not isinstance(payload, dict):
        return []
    raw = payload.get("lessons") or payload.get("concepts") or []
    if not isinstance(raw, list):
        return []
    concepts: list[str] = []
    for item in raw:
        label = item.get("title") if isinstance(item, dict) else item
        if isinstance(label, str) and label.strip() and label.strip() not in concepts:
            concepts.append(label.strip())
    return concepts


def parse_progression_ready(value) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        return value.strip().lower() in _READY_VALUES
    return None


class ActionExecutor:
    def __init__(
        self,
        collaborators: CollaboratorClient,
        durable_store: DurableStore,
        *,
        concept_selector: ConceptSelector | None = None,
        question_count: int | None = None,
        mastery_threshold: float | None = None,
    ):
        self.collaborators = collaborators
        self.durable_store = durable_store
        self.question_count = question_count or settings.quiz_question_count
        self.mastery_threshold = settings.mastery_threshold if mastery_threshold is None else mastery_threshold
        self.concept_selector = concept_selector or CurriculumOrderSelector(self.mastery_threshold)
        self._handlers = {
            OrchestratorState.INITIALIZING: self._initialize,
            OrchestratorState.CURRICULUM_GENERATION: self._generate_curriculum,
            OrchestratorState.TEACHING_EXPLAIN: self._teach,
            OrchestratorState.TEACHING_EXAMPLE: self._teach,
            OrchestratorState.TEACHING_PRACTICE: self._teach,
            OrchestratorState.ASSESSMENT: self._generate_assessment,
            OrchestratorState.FEEDBACK_ANALYSIS: self._analyze_feedback,
            OrchestratorState.PROGRESSION_CHECK: self._check_progression,
            OrchestratorState.SESSION_COMPLETE: self._complete_session,
        }

    async def execute(self, state: SessionState, context: TransitionContext | None = None) -> ExecutionResult:
        current = state.current_state
        handler = self._handlers.get(current)
        if handler is None:
            value = current.value if isinstance(current, OrchestratorState) else current
            return ExecutionResult(success=False, error=f"Unknown state: {value}")
        try:
            return await handler(state, context or TransitionContext())
        except (CollaboratorError, DurableStoreError) as exc:
            logger.warning("Action for %s failed | session=%s | %s", current.value, state.session_id, exc)
            return ExecutionResult(success=False, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected failure executing %s | session=%s", current.value, state.session_id)
            return ExecutionResult(success=False, error=str(exc) or exc.__class__.__name__)

    async def _initialize(self, state: SessionState, context: TransitionContext) -> ExecutionResult:
        return ExecutionResult(success=True, result={"message": "Session initialized; awaiting advance"})

    async def _generate_curriculum(self, state: SessionState, context: TransitionContext) -> ExecutionResult:
        payload = await self.collaborators.generate_curriculum(
            student_id=state.student_id,
            session_id=state.session_id,
            topic=state.topic,
            grade_level=state.grade_level,
        )
        concepts = extract_curriculum_concepts(payload)
        if concepts:
            state.curriculum = concepts
            state.total_concepts = len(concepts)
            pending = [c for c in concepts if c not in state.concepts_completed]
            if state.current_concept not in pending:
                state.current_concept = pending[0] if pending else concepts[-1]
        logger.info(
            "Curriculum generated | session=%s | concepts=%d", state.session_id, len(concepts)
        )
        return ExecutionResult(success=True, result=payload)

    async def _teach(self, state: SessionState, context: TransitionContext) -> ExecutionResult:
        phase = teaching_phase_for(state.current_state)
        return ExecutionResult(
            success=True,
            result={"message": "Ready for teaching interaction", "phase": phase.value if phase else None},
        )

    async def _generate_assessment(self, state: SessionState, context: TransitionContext) -> ExecutionResult:
        payload = await self.collaborators.generate_quiz(
            student_id=state.student_id,
            session_id=state.session_id,
            topic=state.topic,
            concepts=[state.current_concept],
            question_count=self.question_count,
        )
        return ExecutionResult(success=True, result=payload)

    async def _analyze_feedback(self, state: SessionState, context: TransitionContext) -> ExecutionResult:
        payload = await self.collaborators.analyze_feedback(
            student_id=state.student_id,
            session_id=state.session_id,
            topic=state.topic,
        )
        return ExecutionResult(success=True, result=payload)

    async def _check_progression(self, state: SessionState, context: TransitionContext) -> ExecutionResult:
        feedback = await self.durable_store.latest_feedback(state.student_id, state.session_id)
        ready = parse_progression_ready(feedback.get("progressionReady")) if feedback else None
        if ready is None:
            score = context.assessment_score
            ready = score is not None and score >= self.mastery_threshold
            selection_score = score
            source = "assessment_score"
        else:
            selection_score = 100.0 if ready else 0.0
            source = "feedback"

        reviewed = state.current_concept
        completed = list(state.concepts_completed)
        if ready and reviewed not in completed:
            completed.append(reviewed)
        next_concept = self.concept_selector.select_next_concept(
            selection_score, completed, list(state.curriculum), reviewed
        )
        all_complete = (state.total_concepts > 0 and len(completed) >= state.total_concepts) or (
            bool(state.curriculum) and all(c in completed for c in state.curriculum)
        )
        # Recorded, not applied: polling this state must not move the student twice.
        state.pending_progression = {
            "concept": reviewed,
            "ready": ready,
            "nextConcept": next_concept,
            "allConceptsComplete": all_complete,
        }
        return ExecutionResult(
            success=True,
            result={
                "progressionReady": ready,
                "nextConcept": next_concept,
                "review": not ready,
                "allConceptsComplete": all_complete,
                "decidedBy": source,
            },
        )

    def apply_progression(self, state: SessionState) -> bool:
        """Commit the recorded progression decision; returns whether every concept is now complete."""
        decision = state.pending_progression
        state.pending_progression = None
        if decision:
            if decision.get("ready"):
                state.complete_concept(str(decision.get("concept") or state.current_concept))
            state.current_concept = str(decision.get("nextConcept") or state.current_concept)
        return state.all_concepts_complete() or (
            bool(state.curriculum) and all(c in state.concepts_completed for c in state.curriculum)
        )

    async def _complete_session(self, state: SessionState, context: TransitionContext) -> ExecutionResult:
        await self.durable_store.mark_completed(state.session_id)
        return ExecutionResult(success=True, result={"message": "Session completed successfully"})
