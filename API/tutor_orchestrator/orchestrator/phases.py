"""
Teaching phase sub-machine: explain -> example -> practice -> assess inside one concept.

Understanding is read from the student's latest message by a pluggable classifier.
The default classifier is a deliberately coarse keyword heuristic.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from tutor_orchestrator.orchestrator.states import TeachingPhase, UnderstandingLevel
from tutor_orchestrator.runtime.session_context import TeachingState, now_ms

PHASE_PROGRESS_STEP = 25
MAX_CONCEPT_PROGRESS = 100


class UnderstandingClassifier(Protocol):
    def classify_understanding(self, text: str) -> UnderstandingLevel: ...

    def signals_confusion(self, text: str) -> bool: ...


class KeywordUnderstandingClassifier:
    """Substring matching on the lower-cased message; agreement is checked before negation."""

    def __init__(
        self,
        *,
        high_phrases: tuple[str, ...] = ("yes", "got it", "understand"),
        low_phrases: tuple[str, ...] = ("no", "confused", "don't"),
        confusion_phrases: tuple[str, ...] = ("don't understand", "confused", "what?"),
    ):
        self.high_phrases = high_phrases
        self.low_phrases = low_phrases
        self.confusion_phrases = confusion_phrases

    def classify_understanding(self, text: str) -> UnderstandingLevel:
        lowered = (text or "").lower()
        if any(phrase in lowered for phrase in self.high_phrases):
            return UnderstandingLevel.HIGH
        if any(phrase in lowered for phrase in self.low_phrases):
            return UnderstandingLevel.LOW
        return UnderstandingLevel.MEDIUM

    def signals_confusion(self, text: str) -> bool:
        lowered = (text or "").lower()
        return any(phrase in lowered for phrase in self.confusion_phrases)


def determine_next_phase(current: TeachingPhase, *, confused: bool, understanding: UnderstandingLevel) -> TeachingPhase:
    if confused:
        return TeachingPhase.EXAMPLE if current is TeachingPhase.PRACTICE else TeachingPhase.EXPLAIN
    high = understanding is UnderstandingLevel.HIGH
    if current is TeachingPhase.EXPLAIN:
        return TeachingPhase.PRACTICE if high else TeachingPhase.EXAMPLE
    if current is TeachingPhase.EXAMPLE:
        return TeachingPhase.PRACTICE if high else TeachingPhase.EXAMPLE
    if current is TeachingPhase.PRACTICE:
        return TeachingPhase.ASSESS if high else TeachingPhase.PRACTICE
    return TeachingPhase.EXPLAIN


def next_progress(progress: int, phase_changed: bool) -> int:
    if not phase_changed:
        return progress
    return min(MAX_CONCEPT_PROGRESS, progress + PHASE_PROGRESS_STEP)


@dataclass
class PhaseStep:
    previous_phase: TeachingPhase
    phase: TeachingPhase
    understanding: UnderstandingLevel
    confused: bool
    concept_progress: int

    @property
    def phase_changed(self) -> bool:
        return self.previous_phase is not self.phase


class TeachingPhaseMachine:
    def __init__(self, classifier: UnderstandingClassifier | None = None):
        self.classifier = classifier or KeywordUnderstandingClassifier()

    def step(self, teaching_state: TeachingState, message: str) -> PhaseStep:
        """Apply one student turn to the teaching state in place and describe what happened."""
        understanding = self.classifier.classify_understanding(message)
        confused = self.classifier.signals_confusion(message)
        previous = teaching_state.phase
        nxt = determine_next_phase(previous, confused=confused, understanding=understanding)
        changed = nxt is not previous
        teaching_state.mark_phase_completed(previous)
        teaching_state.phase = nxt
        teaching_state.concept_progress = next_progress(teaching_state.concept_progress, changed)
        teaching_state.last_updated = max(teaching_state.last_updated, now_ms())
        return PhaseStep(
            previous_phase=previous,
            phase=nxt,
            understanding=understanding,
            confused=confused,
            concept_progress=teaching_state.concept_progress,
        )
