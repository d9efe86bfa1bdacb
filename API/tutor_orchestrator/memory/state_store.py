"""
Session and teaching state stores on top of the TTL cache.

`get` returns None for a missing key, an undeserializable record, or an unreachable
cache alike; callers re-initialize in all three cases. Undeserializable records are
deleted on read. `put` is a last-write-wins overwrite with no version check.
"""
from __future__ import annotations

import json

from tutor_orchestrator.core.errors import StateStoreError
from tutor_orchestrator.core.logging import DOMAIN_PERSISTENCE, get_domain_logger
from tutor_orchestrator.core.settings import settings
from tutor_orchestrator.memory.cache import StateCache
from tutor_orchestrator.runtime.session_context import SessionState, TeachingState

logger = get_domain_logger(__name__, DOMAIN_PERSISTENCE)

SESSION_KEY_PREFIX = "orchestrator:"
TEACHING_KEY_PREFIX = "teaching:state:"


class _JsonRecordStore:
    key_prefix = ""
    record_type = None

    def __init__(self, cache: StateCache, ttl_seconds: int):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def key_for(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    async def get(self, session_id: str):
        key = self.key_for(session_id)
        try:
            raw = await self.cache.get(key)
        except StateStoreError as exc:
            logger.warning("State cache unavailable for %s; treating as absent: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return self.record_type.from_dict(json.loads(raw))
        except ValueError as exc:
            logger.warning("Discarding malformed record at %s: %s", key, exc)
            await self.delete(session_id)
            return None

    async def put(self, session_id: str, record, ttl_seconds: int | None = None) -> bool:
        key = self.key_for(session_id)
        try:
            await self.cache.set(key, json.dumps(record.to_dict()), ttl_seconds or self.ttl_seconds)
        except StateStoreError as exc:
            logger.warning("State cache write failed for %s: %s", key, exc)
            return False
        return True

    async def delete(self, session_id: str) -> None:
        try:
            await self.cache.delete(self.key_for(session_id))
        except StateStoreError as exc:
            logger.warning("State cache delete failed for %s: %s", self.key_for(session_id), exc)


class SessionStateStore(_JsonRecordStore):
    key_prefix = SESSION_KEY_PREFIX
    record_type = SessionState

    def __init__(self, cache: StateCache, ttl_seconds: int | None = None):
        super().__init__(cache, ttl_seconds or settings.session_ttl_seconds)

    async def get(self, session_id: str) -> SessionState | None:
        return await super().get(session_id)


class TeachingStateStore(_JsonRecordStore):
    key_prefix = TEACHING_KEY_PREFIX
    record_type = TeachingState

    def __init__(self, cache: StateCache, ttl_seconds: int | None = None):
        super().__init__(cache, ttl_seconds or settings.teaching_state_ttl_seconds)

    async def get(self, session_id: str) -> TeachingState | None:
        return await super().get(session_id)
