from __future__ import annotations

import httpx
import pytest

from tutor_orchestrator.collaborators.resources import ResourceFetcher
from tutor_orchestrator.memory.state_store import SessionStateStore, TeachingStateStore
from tutor_orchestrator.orchestrator.teaching import TeachingRequestError, TeachingService


def _turn(client, message, **extra):
    body = {"sessionId": "s1", "studentId": "stu1", "message": message, "topic": "Math", "concept": "Fractions"}
    body.update(extra)
    return client.post("/teaching/turn", json=body)


def test_high_understanding_skips_to_practice(client):
    response = _turn(client, "Yes, got it")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["understandingLevel"] == "high"
    assert body["phaseChanged"] is True
    state = body["teachingState"]
    assert state["phase"] == "practice"
    assert state["conceptProgress"] == 25
    assert state["completedPhases"] == ["explain"]
    assert state["resources"] == []


def test_progress_only_moves_when_the_phase_changes(client):
    _turn(client, "show me a picture")
    stayed = _turn(client, "and one more please").json()
    assert stayed["teachingState"]["phase"] == "example"
    assert stayed["phaseChanged"] is False
    assert stayed["teachingState"]["conceptProgress"] == 25


def test_confusion_in_practice_regresses_to_example(client):
    _turn(client, "yes")
    body = _turn(client, "wait, I'm confused").json()
    assert body["understandingLevel"] == "low"
    assert body["teachingState"]["phase"] == "example"
    assert body["teachingState"]["conceptProgress"] == 50


def test_new_concept_resets_the_teaching_state(client):
    _turn(client, "yes")
    body = _turn(client, "ok", concept="Decimals").json()
    state = body["teachingState"]
    assert state["currentConcept"] == "Decimals"
    assert state["phase"] == "example"
    assert state["conceptProgress"] == 25
    assert state["completedPhases"] == ["explain"]


def test_concept_defaults_to_the_sessions_current_concept(client):
    client.post("/orchestrate", json={"sessionId": "s1", "studentId": "stu1"})
    client.post("/orchestrate", json={"sessionId": "s1", "studentId": "stu1", "action": "advance"})

    response = client.post("/teaching/turn", json={"sessionId": "s1", "studentId": "stu1", "message": "ok"})
    assert response.json()["teachingState"]["currentConcept"] == "Fractions"


def test_turn_validation_and_state_lookup(client):
    assert client.post("/teaching/turn", json={"sessionId": "s1", "message": "hi"}).status_code == 400
    assert client.post("/teaching/turn", json={"sessionId": "s1", "studentId": "stu1"}).status_code == 400
    assert client.get("/teaching/state", params={"sessionId": "s1"}).status_code == 404

    _turn(client, "yes")
    response = client.get("/teaching/state", params={"sessionId": "s1"})
    assert response.status_code == 200
    assert response.json()["teachingState"]["phase"] == "practice"


@pytest.mark.asyncio
async def test_resources_are_fetched_once_per_concept(state_cache):
    requests: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request.content)
        return httpx.Response(
            200,
            json={
                "results": [
                    {"title": "Fractions intro", "url": "https://www.youtube.com/watch?v=abc", "content": "x" * 300},
                    {"title": "Worksheet", "url": "https://school.edu/fractions.pdf"},
                    {"title": "Wiki", "url": "https://en.wikipedia.org/wiki/Fraction", "content": "A fraction"},
                    {"title": "Extra", "url": "https://khanacademy.org/fractions"},
                ]
            },
        )

    fetcher = ResourceFetcher(api_key="test-key", transport=httpx.MockTransport(handler))
    service = TeachingService(TeachingStateStore(state_cache), SessionStateStore(state_cache), resource_fetcher=fetcher)

    first = await service.turn("s1", "stu1", "hmm", topic="Math", concept="Fractions")
    await service.turn("s1", "stu1", "yes", topic="Math", concept="Fractions")

    assert len(requests) == 1
    resources = first.teaching_state.resources
    assert [r.type for r in resources] == ["video", "doc", "article"]
    assert len(resources[0].snippet) == 200
    assert resources[1].snippet is None


@pytest.mark.asyncio
async def test_resource_lookup_failure_yields_no_resources(state_cache):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"error": "bad gateway"})

    fetcher = ResourceFetcher(api_key="test-key", transport=httpx.MockTransport(handler))
    service = TeachingService(TeachingStateStore(state_cache), SessionStateStore(state_cache), resource_fetcher=fetcher)

    outcome = await service.turn("s1", "stu1", "ok", topic="Math", concept="Fractions")
    assert outcome.teaching_state.resources == []


@pytest.mark.asyncio
async def test_service_rejects_missing_identifiers(state_cache):
    service = TeachingService(
        TeachingStateStore(state_cache), SessionStateStore(state_cache), resource_fetcher=ResourceFetcher(api_key="")
    )
    with pytest.raises(TeachingRequestError):
        await service.turn(None, "stu1", "hello")
