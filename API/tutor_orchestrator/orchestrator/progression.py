from __future__ import annotations

from typing import Protocol

from tutor_orchestrator.core.settings import settings


class ConceptSelector(Protocol):
    def select_next_concept(
        self,
        assessment_score: float | None,
        completed: list[str],
        curriculum: list[str],
        current: str,
    ) -> str: ...


class CurriculumOrderSelector:
    """Advance through the curriculum in order on mastery, otherwise repeat the current concept."""

    def __init__(self, mastery_threshold: float | None = None):
        self.mastery_threshold = settings.mastery_threshold if mastery_threshold is None else mastery_threshold

    def select_next_concept(
        self,
        assessment_score: float | None,
        completed: list[str],
        curriculum: list[str],
        current: str,
    ) -> str:
        if assessment_score is None or assessment_score < self.mastery_threshold:
            return current
        for concept in curriculum:
            if concept not in completed:
                return concept
        return current
