import pytest

from tutor_orchestrator.orchestrator.engine import StateEngine, TransitionContext, determine_next_state
from tutor_orchestrator.orchestrator.states import OrchestratorState as S


def test_initializing_moves_to_curriculum_generation_unconditionally():
    assert determine_next_state(S.INITIALIZING, TransitionContext()) is S.CURRICULUM_GENERATION


def test_explain_leaves_at_33_percent():
    assert determine_next_state(S.TEACHING_EXPLAIN, TransitionContext(concept_progress=32)) is S.TEACHING_EXPLAIN
    assert determine_next_state(S.TEACHING_EXPLAIN, TransitionContext(concept_progress=33)) is S.TEACHING_EXAMPLE
    assert determine_next_state(S.TEACHING_EXPLAIN, TransitionContext(concept_progress=40)) is S.TEACHING_EXAMPLE


def test_example_leaves_at_66_percent():
    assert determine_next_state(S.TEACHING_EXAMPLE, TransitionContext(concept_progress=65)) is S.TEACHING_EXAMPLE
    assert determine_next_state(S.TEACHING_EXAMPLE, TransitionContext(concept_progress=66)) is S.TEACHING_PRACTICE


def test_practice_stays_below_full_progress():
    assert determine_next_state(S.TEACHING_PRACTICE, TransitionContext(concept_progress=80)) is S.TEACHING_PRACTICE
    assert determine_next_state(S.TEACHING_PRACTICE, TransitionContext(concept_progress=100)) is S.ASSESSMENT


def test_assessment_and_feedback_are_unconditional():
    assert determine_next_state(S.ASSESSMENT, TransitionContext()) is S.FEEDBACK_ANALYSIS
    assert determine_next_state(S.FEEDBACK_ANALYSIS, TransitionContext()) is S.PROGRESSION_CHECK


def test_progression_check_completes_only_when_all_concepts_done():
    assert (
        determine_next_state(S.PROGRESSION_CHECK, TransitionContext(all_concepts_complete=True))
        is S.SESSION_COMPLETE
    )
    assert (
        determine_next_state(S.PROGRESSION_CHECK, TransitionContext(all_concepts_complete=False))
        is S.TEACHING_EXPLAIN
    )
    assert determine_next_state(S.PROGRESSION_CHECK, TransitionContext()) is S.TEACHING_EXPLAIN


def test_session_complete_is_absorbing():
    for progress in (0, 50, 100):
        ctx = TransitionContext(concept_progress=progress, all_concepts_complete=False)
        assert determine_next_state(S.SESSION_COMPLETE, ctx) is S.SESSION_COMPLETE


def test_error_recovers_to_explain():
    assert determine_next_state(S.ERROR, TransitionContext()) is S.TEACHING_EXPLAIN


@pytest.mark.parametrize("raw", ["mystery", "", None, 42])
def test_unknown_state_maps_to_error(raw):
    assert determine_next_state(raw, TransitionContext()) is S.ERROR


def test_raw_string_values_are_accepted():
    assert determine_next_state("assessment", TransitionContext()) is S.FEEDBACK_ANALYSIS


def test_transition_is_deterministic_across_the_table():
    contexts = [
        TransitionContext(concept_progress=p, assessment_score=score, all_concepts_complete=done)
        for p in (0, 33, 66, 100)
        for score in (None, 50, 90)
        for done in (None, True, False)
    ]
    for state in S:
        for ctx in contexts:
            first = determine_next_state(state, ctx)
            assert all(determine_next_state(state, ctx) is first for _ in range(3))


def test_engine_reports_whether_state_changed():
    engine = StateEngine()
    stay = engine.next_transition(S.TEACHING_PRACTICE, TransitionContext(concept_progress=10))
    move = engine.next_transition(S.ASSESSMENT)
    assert stay.changed is False
    assert move.changed is True
    assert move.next_state is S.FEEDBACK_ANALYSIS
