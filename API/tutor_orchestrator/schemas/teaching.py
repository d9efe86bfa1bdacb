from pydantic import BaseModel, ConfigDict, Field


class TeachingTurnRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(None, alias="sessionId")
    student_id: str | None = Field(None, alias="studentId")
    message: str | None = None
    topic: str | None = None
    concept: str | None = None


class TeachingTurnResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    teaching_state: dict = Field(..., alias="teachingState")
    understanding_level: str = Field(..., alias="understandingLevel")
    phase_changed: bool = Field(..., alias="phaseChanged")
