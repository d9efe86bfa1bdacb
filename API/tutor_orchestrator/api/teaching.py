from fastapi import APIRouter, Depends, HTTPException, Query

from tutor_orchestrator.orchestrator.teaching import TeachingRequestError, TeachingService
from tutor_orchestrator.runtime.services import get_teaching_service
from tutor_orchestrator.schemas.teaching import TeachingTurnRequest, TeachingTurnResponse

router = APIRouter(prefix="/teaching", tags=["teaching"])


@router.post("/turn", response_model=TeachingTurnResponse, response_model_by_alias=True)
async def teaching_turn(payload: TeachingTurnRequest, teaching: TeachingService = Depends(get_teaching_service)):
    try:
        outcome = await teaching.turn(
            payload.session_id,
            payload.student_id,
            payload.message,
            topic=payload.topic,
            concept=payload.concept,
        )
    except TeachingRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "success": True,
        "teachingState": outcome.teaching_state.to_dict(),
        "understandingLevel": outcome.understanding.value,
        "phaseChanged": outcome.phase_changed,
    }


@router.get("/state")
async def teaching_state(
    session_id: str | None = Query(None, alias="sessionId"),
    teaching: TeachingService = Depends(get_teaching_service),
):
    if not session_id:
        raise HTTPException(status_code=400, detail="sessionId required")
    state = await teaching.get_state(session_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Teaching state not found")
    return {"success": True, "teachingState": state.to_dict()}
