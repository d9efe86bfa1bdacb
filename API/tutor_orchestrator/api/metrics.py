from __future__ import annotations

from fastapi import APIRouter

from tutor_orchestrator.core.app_metrics import get_metrics
from tutor_orchestrator.core.cache_metrics import get_cache_metrics

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/app")
async def app_metrics():
    """Request latency (p50/p95), error rate, executor outcomes, cache counters and alerts."""
    out = get_metrics()
    out["cache"] = get_cache_metrics()
    cache = out["cache"]
    ratio = cache.get("cache_hit_ratio")
    if cache.get("cache_get_total", 0) >= 10 and ratio is not None and ratio < 0.5:
        out["alerts"] = list(out.get("alerts", [])) + ["low_cache_hit_ratio"]
    if cache.get("cache_failures", 0):
        out["alerts"] = list(out.get("alerts", [])) + ["state_cache_unavailable"]
    return out
