from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from tutor_orchestrator.orchestrator.states import OrchestratorState, TeachingPhase


def now_ms() -> int:
    return int(time.time() * 1000)


def ms_to_iso(value: int) -> str:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


def _timestamp_ms(value) -> int:
    ms = int(value or 0)
    try:
        datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"timestamp out of range: {ms}") from exc
    return ms


def _require(payload: dict, key: str):
    if key not in payload or payload[key] in (None, ""):
        raise ValueError(f"missing field: {key}")
    return payload[key]


def _str_list(value) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("expected a list")
    return [str(item) for item in value]


def _optional_dict(value) -> dict | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError("expected an object")
    return value


@dataclass
class SessionState:
    """Orchestration record for one learning session, cached hot and snapshotted durably."""

    session_id: str
    student_id: str
    topic: str
    current_state: OrchestratorState = OrchestratorState.INITIALIZING
    current_concept: str = "Introduction"
    concepts_completed: list[str] = field(default_factory=list)
    total_concepts: int = 10
    last_action: str = "Initialized"
    last_updated: int = field(default_factory=now_ms)
    error_count: int = 0
    next_action: str | None = None
    curriculum: list[str] = field(default_factory=list)
    failed_state: OrchestratorState | None = None
    grade_level: str = "Middle School"
    pending_progression: dict | None = None

    def touch(self) -> None:
        # lastUpdated never moves backwards, even across clock skew between workers.
        self.last_updated = max(self.last_updated, now_ms())

    def complete_concept(self, concept: str) -> None:
        if concept and concept not in self.concepts_completed:
            self.concepts_completed.append(concept)

    def all_concepts_complete(self) -> bool:
        return self.total_concepts > 0 and len(self.concepts_completed) >= self.total_concepts

    def progress(self) -> dict:
        completed = len(self.concepts_completed)
        percentage = round(completed / self.total_concepts * 100, 2) if self.total_concepts > 0 else 0.0
        return {
            "conceptsCompleted": completed,
            "totalConcepts": self.total_concepts,
            "percentage": percentage,
        }

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "studentId": self.student_id,
            "topic": self.topic,
            "currentState": self.current_state.value,
            "currentConcept": self.current_concept,
            "conceptsCompleted": list(self.concepts_completed),
            "totalConcepts": self.total_concepts,
            "lastAction": self.last_action,
            "lastUpdated": self.last_updated,
            "errorCount": self.error_count,
            "nextAction": self.next_action,
            "curriculum": list(self.curriculum),
            "failedState": self.failed_state.value if self.failed_state else None,
            "gradeLevel": self.grade_level,
            "pendingProgression": self.pending_progression,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> SessionState:
        """Rebuild a record; raises ValueError for anything malformed, including unknown states."""
        if not isinstance(payload, dict):
            raise ValueError("session state must be an object")
        failed = payload.get("failedState")
        try:
            return cls(
                session_id=str(_require(payload, "sessionId")),
                student_id=str(_require(payload, "studentId")),
                topic=str(payload.get("topic") or "General Learning"),
                current_state=OrchestratorState(_require(payload, "currentState")),
                current_concept=str(payload.get("currentConcept") or "Introduction"),
                concepts_completed=_str_list(payload.get("conceptsCompleted")),
                total_concepts=int(payload.get("totalConcepts", 10)),
                last_action=str(payload.get("lastAction") or ""),
                last_updated=_timestamp_ms(payload.get("lastUpdated")),
                error_count=int(payload.get("errorCount", 0)),
                next_action=payload.get("nextAction"),
                curriculum=_str_list(payload.get("curriculum")),
                failed_state=OrchestratorState(failed) if failed else None,
                grade_level=str(payload.get("gradeLevel") or "Middle School"),
                pending_progression=_optional_dict(payload.get("pendingProgression")),
            )
        except (TypeError, KeyError, OverflowError) as exc:
            raise ValueError(str(exc)) from exc


@dataclass
class TeachingResource:
    title: str
    url: str
    type: str = "article"
    snippet: str | None = None

    def to_dict(self) -> dict:
        out = {"title": self.title, "url": self.url, "type": self.type}
        if self.snippet:
            out["snippet"] = self.snippet
        return out


@dataclass
class TeachingState:
    """Phase sub-machine record for the concept currently being taught."""

    session_id: str
    current_topic: str
    current_concept: str
    phase: TeachingPhase = TeachingPhase.EXPLAIN
    completed_phases: list[TeachingPhase] = field(default_factory=list)
    concept_progress: int = 0
    resources: list[TeachingResource] = field(default_factory=list)
    last_updated: int = field(default_factory=now_ms)

    def mark_phase_completed(self, phase: TeachingPhase) -> None:
        if phase not in self.completed_phases:
            self.completed_phases.append(phase)

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "currentTopic": self.current_topic,
            "currentConcept": self.current_concept,
            "phase": self.phase.value,
            "completedPhases": [p.value for p in self.completed_phases],
            "conceptProgress": self.concept_progress,
            "resources": [r.to_dict() for r in self.resources],
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> TeachingState:
        if not isinstance(payload, dict):
            raise ValueError("teaching state must be an object")
        try:
            resources = [
                TeachingResource(
                    title=str(item.get("title", "")),
                    url=str(item.get("url", "")),
                    type=str(item.get("type", "article")),
                    snippet=item.get("snippet"),
                )
                for item in payload.get("resources") or []
            ]
            return cls(
                session_id=str(_require(payload, "sessionId")),
                current_topic=str(payload.get("currentTopic") or "General Learning"),
                current_concept=str(_require(payload, "currentConcept")),
                phase=TeachingPhase(payload.get("phase") or TeachingPhase.EXPLAIN.value),
                completed_phases=[TeachingPhase(p) for p in payload.get("completedPhases") or []],
                concept_progress=max(0, min(100, int(payload.get("conceptProgress", 0)))),
                resources=resources,
                last_updated=_timestamp_ms(payload.get("lastUpdated")),
            )
        except (TypeError, AttributeError, KeyError, OverflowError) as exc:
            raise ValueError(str(exc)) from exc
