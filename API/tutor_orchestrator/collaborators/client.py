from __future__ import annotations

import httpx

from tutor_orchestrator.core.errors import CollaboratorError
from tutor_orchestrator.core.logging import DOMAIN_COLLABORATOR, get_domain_logger
from tutor_orchestrator.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_COLLABORATOR)


class CollaboratorClient:
    """POSTs JSON to the content, quiz and feedback services and returns their payload untouched."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.collaborator_base_url).rstrip("/")
        self.timeout = settings.collaborator_timeout_seconds if timeout is None else timeout
        self._transport = transport

    async def _post(self, label: str, path: str, payload: dict):
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(path, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("%s request to %s failed: %s", label, path, exc)
            raise CollaboratorError(f"{label} failed: {exc}") from exc

        if not response.is_success:
            logger.warning("%s returned %s for session=%s", label, response.status_code, payload.get("sessionId"))
            raise CollaboratorError(
                f"{label} failed: {response.reason_phrase or response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise CollaboratorError(f"{label} failed: response was not valid JSON") from exc

    async def generate_curriculum(self, *, student_id: str, session_id: str, topic: str, grade_level: str):
        return await self._post(
            "Curriculum generation",
            settings.curriculum_path,
            {
                "studentId": student_id,
                "sessionId": session_id,
                "topic": topic,
                "gradeLevel": grade_level,
            },
        )

    async def generate_quiz(
        self,
        *,
        student_id: str,
        session_id: str,
        topic: str,
        concepts: list[str],
        question_count: int,
    ):
        return await self._post(
            "Quiz generation",
            settings.quiz_path,
            {
                "studentId": student_id,
                "sessionId": session_id,
                "topic": topic,
                "concepts": concepts,
                "questionCount": question_count,
            },
        )

    async def analyze_feedback(self, *, student_id: str, session_id: str, topic: str):
        return await self._post(
            "Feedback analysis",
            settings.feedback_path,
            {"studentId": student_id, "sessionId": session_id, "topic": topic},
        )
