from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
API_DIR = ROOT / "API"
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

# Test-mode runtime guards:
# - in-process cache and durable store, no redis/postgres
# - no outbound resource lookups
os.environ.setdefault("APP_ENV", "test")
os.environ["STATE_CACHE_BACKEND"] = "memory"
os.environ["DURABLE_STORE_BACKEND"] = "memory"
os.environ["TAVILY_API_KEY"] = ""

from tutor_orchestrator.collaborators.client import CollaboratorClient  # noqa: E402
from tutor_orchestrator.collaborators.resources import ResourceFetcher  # noqa: E402
from tutor_orchestrator.core.app_metrics import reset_metrics  # noqa: E402
from tutor_orchestrator.core.cache_metrics import reset_cache_metrics  # noqa: E402
from tutor_orchestrator.core.settings import settings  # noqa: E402
from tutor_orchestrator.main import app  # noqa: E402
from tutor_orchestrator.memory.cache import InMemoryStateCache  # noqa: E402
from tutor_orchestrator.memory.repository import InMemoryDurableStore  # noqa: E402
from tutor_orchestrator.runtime.services import services  # noqa: E402

DEFAULT_CURRICULUM = {"lessons": [{"title": "Fractions"}, {"title": "Decimals"}]}
DEFAULT_QUIZ = {"questions": [{"id": "q1", "prompt": "1/2 + 1/4 = ?"}]}
DEFAULT_FEEDBACK = {"summary": "Solid grasp of equivalent fractions"}


class CollaboratorStub:
    """Serves canned responses for the three collaborator endpoints and records every call."""

    def __init__(self):
        self.responses: dict[str, tuple[int, object]] = {
            settings.curriculum_path: (200, DEFAULT_CURRICULUM),
            settings.quiz_path: (200, DEFAULT_QUIZ),
            settings.feedback_path: (200, DEFAULT_FEEDBACK),
        }
        self.calls: list[tuple[str, dict]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((path, json.loads(request.content or b"{}")))
        status, body = self.responses.get(path, (404, {"error": "not found"}))
        return httpx.Response(status, json=body)

    def fail(self, path: str, status: int = 500) -> None:
        self.responses[path] = (status, {"error": "upstream failure"})

    def succeed(self, path: str, body: object) -> None:
        self.responses[path] = (200, body)

    def calls_to(self, path: str) -> list[dict]:
        return [payload for called, payload in self.calls if called == path]

    def client(self) -> CollaboratorClient:
        return CollaboratorClient("http://collaborators.test", transport=httpx.MockTransport(self.handler))


@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_metrics()
    reset_cache_metrics()
    yield


@pytest.fixture
def collaborators() -> CollaboratorStub:
    return CollaboratorStub()


@pytest.fixture
def durable_store() -> InMemoryDurableStore:
    return InMemoryDurableStore()


@pytest.fixture
def state_cache() -> InMemoryStateCache:
    return InMemoryStateCache()


@pytest.fixture
def wired(collaborators, durable_store, state_cache):
    services.configure(
        cache=state_cache,
        durable_store=durable_store,
        collaborators=collaborators.client(),
        resource_fetcher=ResourceFetcher(api_key=""),
    )
    yield services
    services.reset()


@pytest.fixture
def orchestrator(wired):
    return wired.orchestrator


@pytest.fixture
def client(wired) -> TestClient:
    with TestClient(app) as tc:
        yield tc
