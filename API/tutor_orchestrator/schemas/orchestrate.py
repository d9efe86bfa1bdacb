from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OrchestrationContextIn(CamelModel):
    concept_progress: float = Field(0, ge=0, le=100, alias="conceptProgress")
    assessment_score: float | None = Field(None, ge=0, le=100, alias="assessmentScore")
    feedback_ready: bool | None = Field(None, alias="feedbackReady")
    all_concepts_complete: bool | None = Field(None, alias="allConceptsComplete")


class OrchestrateRequest(CamelModel):
    # Optional here so a missing id is reported as a 400 rather than a 422.
    session_id: str | None = Field(None, alias="sessionId")
    student_id: str | None = Field(None, alias="studentId")
    action: Literal["advance", "retry"] | None = None
    context: OrchestrationContextIn | None = None


class ProgressOut(CamelModel):
    concepts_completed: int = Field(..., alias="conceptsCompleted")
    total_concepts: int = Field(..., alias="totalConcepts")
    percentage: float


class OrchestrationStateOut(CamelModel):
    current: str
    next_action: str | None = Field(None, alias="nextAction")
    progress: ProgressOut
    last_action: str = Field(..., alias="lastAction")
    error_count: int = Field(..., alias="errorCount")


class OrchestrateResponse(CamelModel):
    success: bool
    state: OrchestrationStateOut
    result: Any = None
    error: str | None = None


class ConceptProgressOut(CamelModel):
    current: str
    completed: list[str]
    total: int


class SessionStateView(CamelModel):
    current: str
    concept_progress: ConceptProgressOut = Field(..., alias="conceptProgress")
    last_action: str = Field(..., alias="lastAction")
    last_updated: str = Field(..., alias="lastUpdated")
    error_count: int = Field(0, alias="errorCount")


class SessionStateResponse(CamelModel):
    success: bool
    state: SessionStateView
