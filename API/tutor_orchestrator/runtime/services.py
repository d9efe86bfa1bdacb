from __future__ import annotations

from tutor_orchestrator.collaborators.client import CollaboratorClient
from tutor_orchestrator.collaborators.resources import ResourceFetcher
from tutor_orchestrator.memory.cache import StateCache, build_state_cache
from tutor_orchestrator.memory.repository import DurableStore, build_durable_store
from tutor_orchestrator.memory.state_store import SessionStateStore, TeachingStateStore
from tutor_orchestrator.orchestrator.executor import ActionExecutor
from tutor_orchestrator.orchestrator.service import Orchestrator
from tutor_orchestrator.orchestrator.teaching import TeachingService


class ServiceRegistry:
    """Process-wide wiring of stores, collaborators and services; built on first use."""

    def __init__(self):
        self._cache: StateCache | None = None
        self._durable_store: DurableStore | None = None
        self._orchestrator: Orchestrator | None = None
        self._teaching: TeachingService | None = None

    def configure(
        self,
        *,
        cache: StateCache | None = None,
        durable_store: DurableStore | None = None,
        collaborators: CollaboratorClient | None = None,
        resource_fetcher: ResourceFetcher | None = None,
    ) -> None:
        self._cache = cache or build_state_cache()
        self._durable_store = durable_store or build_durable_store()
        session_store = SessionStateStore(self._cache)
        executor = ActionExecutor(collaborators or CollaboratorClient(), self._durable_store)
        self._orchestrator = Orchestrator(session_store, self._durable_store, executor)
        self._teaching = TeachingService(
            TeachingStateStore(self._cache),
            session_store,
            resource_fetcher=resource_fetcher,
        )

    def _ensure(self) -> None:
        if self._orchestrator is None:
            self.configure()

    @property
    def cache(self) -> StateCache:
        self._ensure()
        return self._cache

    @property
    def durable_store(self) -> DurableStore:
        self._ensure()
        return self._durable_store

    @property
    def orchestrator(self) -> Orchestrator:
        self._ensure()
        return self._orchestrator

    @property
    def teaching(self) -> TeachingService:
        self._ensure()
        return self._teaching

    def reset(self) -> None:
        self._cache = None
        self._durable_store = None
        self._orchestrator = None
        self._teaching = None


services = ServiceRegistry()


def get_orchestrator() -> Orchestrator:
    return services.orchestrator


def get_teaching_service() -> TeachingService:
    return services.teaching
