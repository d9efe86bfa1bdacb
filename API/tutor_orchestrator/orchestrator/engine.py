from dataclasses import dataclass

from tutor_orchestrator.orchestrator.states import OrchestratorState, parse_state

EXPLAIN_EXIT_PROGRESS = 33
EXAMPLE_EXIT_PROGRESS = 66
PRACTICE_EXIT_PROGRESS = 100


@dataclass(frozen=True)
class TransitionContext:
    concept_progress: float = 0
    assessment_score: float | None = None
    feedback_ready: bool | None = None
    all_concepts_complete: bool | None = None


@dataclass
class TransitionResult:
    current_state: OrchestratorState | None
    next_state: OrchestratorState

    @property
    def changed(self) -> bool:
        return self.current_state is not self.next_state


def determine_next_state(current_state, context: TransitionContext) -> OrchestratorState:
    """Map (state, context) to the next top-level state. Pure and deterministic.

    Leaving ``progression_check`` always lands on ``teaching_explain`` unless every
    concept is complete; whether that explain pass covers a new concept or repeats
    the current one is decided before the transition by the progression check.
    """
    state = parse_state(current_state)
    if state is None:
        return OrchestratorState.ERROR

    progress = context.concept_progress or 0

    if state is OrchestratorState.INITIALIZING:
        return OrchestratorState.CURRICULUM_GENERATION
    if state is OrchestratorState.CURRICULUM_GENERATION:
        return OrchestratorState.TEACHING_EXPLAIN
    if state is OrchestratorState.TEACHING_EXPLAIN:
        return OrchestratorState.TEACHING_EXAMPLE if progress >= EXPLAIN_EXIT_PROGRESS else state
    if state is OrchestratorState.TEACHING_EXAMPLE:
        return OrchestratorState.TEACHING_PRACTICE if progress >= EXAMPLE_EXIT_PROGRESS else state
    if state is OrchestratorState.TEACHING_PRACTICE:
        return OrchestratorState.ASSESSMENT if progress >= PRACTICE_EXIT_PROGRESS else state
    if state is OrchestratorState.ASSESSMENT:
        return OrchestratorState.FEEDBACK_ANALYSIS
    if state is OrchestratorState.FEEDBACK_ANALYSIS:
        return OrchestratorState.PROGRESSION_CHECK
    if state is OrchestratorState.PROGRESSION_CHECK:
        if context.all_concepts_complete:
            return OrchestratorState.SESSION_COMPLETE
        return OrchestratorState.TEACHING_EXPLAIN
    if state is OrchestratorState.SESSION_COMPLETE:
        return OrchestratorState.SESSION_COMPLETE
    if state is OrchestratorState.ERROR:
        # Best-effort recovery target.
        return OrchestratorState.TEACHING_EXPLAIN
    raise AssertionError(f"unhandled orchestrator state: {state!r}")


class StateEngine:
    """Deterministic state engine for the curriculum -> teach -> assess -> progress cycle."""

    def next_transition(self, current_state, context: TransitionContext | None = None) -> TransitionResult:
        return TransitionResult(
            current_state=parse_state(current_state),
            next_state=determine_next_state(current_state, context or TransitionContext()),
        )
