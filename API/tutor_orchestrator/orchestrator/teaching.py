from __future__ import annotations

from dataclasses import dataclass

from tutor_orchestrator.collaborators.resources import ResourceFetcher
from tutor_orchestrator.core.logging import DOMAIN_TEACHING, get_domain_logger, log_state_transition
from tutor_orchestrator.core.settings import settings
from tutor_orchestrator.memory.state_store import SessionStateStore, TeachingStateStore
from tutor_orchestrator.orchestrator.phases import TeachingPhaseMachine
from tutor_orchestrator.orchestrator.states import UnderstandingLevel
from tutor_orchestrator.runtime.session_context import TeachingState

logger = get_domain_logger(__name__, DOMAIN_TEACHING)


class TeachingRequestError(ValueError):
    pass


@dataclass
class TeachingTurnOutcome:
    teaching_state: TeachingState
    understanding: UnderstandingLevel
    phase_changed: bool


class TeachingService:
    """One student message in, one phase step out, for the concept currently being taught."""

    def __init__(
        self,
        teaching_store: TeachingStateStore,
        session_store: SessionStateStore,
        *,
        machine: TeachingPhaseMachine | None = None,
        resource_fetcher: ResourceFetcher | None = None,
    ):
        self.teaching_store = teaching_store
        self.session_store = session_store
        self.machine = machine or TeachingPhaseMachine()
        self.resource_fetcher = resource_fetcher or ResourceFetcher()

    async def _resolve_target(self, session_id: str, topic: str | None, concept: str | None) -> tuple[str, str]:
        if topic and concept:
            return topic, concept
        session = await self.session_store.get(session_id)
        resolved_topic = topic or (session.topic if session else None) or settings.default_topic
        resolved_concept = concept or (session.current_concept if session else None) or settings.default_concept
        return resolved_topic, resolved_concept

    async def turn(
        self,
        session_id: str | None,
        student_id: str | None,
        message: str | None,
        *,
        topic: str | None = None,
        concept: str | None = None,
    ) -> TeachingTurnOutcome:
        if not session_id or not student_id:
            raise TeachingRequestError("sessionId and studentId required")
        if message is None:
            raise TeachingRequestError("message required")

        topic, concept = await self._resolve_target(session_id, topic, concept)
        teaching_state = await self.teaching_store.get(session_id)
        if teaching_state is None or teaching_state.current_concept != concept:
            if teaching_state is not None:
                logger.info(
                    "Concept changed %s -> %s; resetting teaching state | session=%s",
                    teaching_state.current_concept,
                    concept,
                    session_id,
                )
            teaching_state = TeachingState(session_id=session_id, current_topic=topic, current_concept=concept)

        # Fetched once per concept; an empty list after a failed lookup is retried next turn.
        if not teaching_state.resources:
            teaching_state.resources = await self.resource_fetcher.fetch(concept, topic)

        step = self.machine.step(teaching_state, message)
        if step.phase_changed:
            log_state_transition(
                logger,
                session_id=session_id,
                student_id=student_id,
                from_state=step.previous_phase.value,
                to_state=step.phase.value,
                event="teaching_turn",
                payload={
                    "concept": concept,
                    "understanding": step.understanding.value,
                    "confused": step.confused,
                    "concept_progress": step.concept_progress,
                },
            )
        await self.teaching_store.put(session_id, teaching_state)
        return TeachingTurnOutcome(
            teaching_state=teaching_state,
            understanding=step.understanding,
            phase_changed=step.phase_changed,
        )

    async def get_state(self, session_id: str) -> TeachingState | None:
        return await self.teaching_store.get(session_id)
