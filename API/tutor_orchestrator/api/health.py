from fastapi import APIRouter

from tutor_orchestrator.runtime.services import services

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "tutor-orchestrator",
        "stateCacheBackend": services.cache.backend_name,
        "durableStoreBackend": services.durable_store.backend_name,
    }
