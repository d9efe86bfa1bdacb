from fastapi import APIRouter, Depends, HTTPException, Query

from tutor_orchestrator.orchestrator.engine import TransitionContext
from tutor_orchestrator.orchestrator.service import OrchestrationRequestError, Orchestrator
from tutor_orchestrator.runtime.services import get_orchestrator
from tutor_orchestrator.runtime.session_context import ms_to_iso
from tutor_orchestrator.schemas.orchestrate import (
    OrchestrateRequest,
    OrchestrateResponse,
    SessionStateResponse,
)

router = APIRouter(tags=["orchestrate"])


def _to_transition_context(payload: OrchestrateRequest) -> TransitionContext:
    if payload.context is None:
        return TransitionContext()
    ctx = payload.context
    return TransitionContext(
        concept_progress=ctx.concept_progress,
        assessment_score=ctx.assessment_score,
        feedback_ready=ctx.feedback_ready,
        all_concepts_complete=ctx.all_concepts_complete,
    )


@router.post("/orchestrate", response_model=OrchestrateResponse, response_model_by_alias=True)
async def orchestrate(payload: OrchestrateRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Apply an optional action to the session, run the current state's side effect and persist."""
    try:
        outcome = await orchestrator.orchestrate(
            payload.session_id,
            payload.student_id,
            action=payload.action,
            context=_to_transition_context(payload),
        )
    except OrchestrationRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    state = outcome.state
    return {
        "success": outcome.success,
        "state": {
            "current": state.current_state.value,
            "nextAction": state.next_action,
            "progress": state.progress(),
            "lastAction": state.last_action,
            "errorCount": state.error_count,
        },
        "result": outcome.result,
        "error": outcome.error,
    }


@router.get("/orchestrate", response_model=SessionStateResponse, response_model_by_alias=True)
async def get_orchestration_state(
    session_id: str | None = Query(None, alias="sessionId"),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    if not session_id:
        raise HTTPException(status_code=400, detail="sessionId required")
    state = await orchestrator.get_state(session_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {
        "success": True,
        "state": {
            "current": state.current_state.value,
            "conceptProgress": {
                "current": state.current_concept,
                "completed": list(state.concepts_completed),
                "total": state.total_concepts,
            },
            "lastAction": state.last_action,
            "lastUpdated": ms_to_iso(state.last_updated),
            "errorCount": state.error_count,
        },
    }
