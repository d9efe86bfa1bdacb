from enum import Enum


class OrchestratorState(str, Enum):
    INITIALIZING = "initializing"
    CURRICULUM_GENERATION = "curriculum_generation"
    TEACHING_EXPLAIN = "teaching_explain"
    TEACHING_EXAMPLE = "teaching_example"
    TEACHING_PRACTICE = "teaching_practice"
    ASSESSMENT = "assessment"
    FEEDBACK_ANALYSIS = "feedback_analysis"
    PROGRESSION_CHECK = "progression_check"
    SESSION_COMPLETE = "session_complete"
    ERROR = "error"


TEACHING_STATES = frozenset(
    {
        OrchestratorState.TEACHING_EXPLAIN,
        OrchestratorState.TEACHING_EXAMPLE,
        OrchestratorState.TEACHING_PRACTICE,
    }
)


class TeachingPhase(str, Enum):
    EXPLAIN = "explain"
    EXAMPLE = "example"
    PRACTICE = "practice"
    ASSESS = "assess"


class UnderstandingLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Values written to learning_sessions.current_state that differ from the enum value.
DURABLE_STATUS_COMPLETED = "completed"
DURABLE_STATUS_ERROR = "error"


def parse_state(value) -> OrchestratorState | None:
    """Return the enum member for a raw value, or None when it is not a known state."""
    if isinstance(value, OrchestratorState):
        return value
    try:
        return OrchestratorState(str(value))
    except ValueError:
        return None


def durable_status(state: OrchestratorState) -> str:
    if state is OrchestratorState.SESSION_COMPLETE:
        return DURABLE_STATUS_COMPLETED
    return state.value


def teaching_phase_for(state: OrchestratorState) -> TeachingPhase | None:
    if state not in TEACHING_STATES:
        return None
    return TeachingPhase(state.value.removeprefix("teaching_"))
