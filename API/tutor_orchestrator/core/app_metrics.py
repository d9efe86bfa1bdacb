"""In-process orchestration metrics: per-route latency, executor outcomes per state, halted sessions."""
from __future__ import annotations

import time
from collections import defaultdict, deque
from threading import Lock

from starlette.requests import Request
from starlette.responses import Response

LATENCY_WINDOW = 500
ERROR_RATE_ALERT = 0.10
LATENCY_P95_ALERT_MS = 2000
EXECUTOR_FAILURE_ALERT = 0.25


def _percentile(sorted_values: list[float], fraction: float) -> float | None:
    if not sorted_values:
        return None
    return sorted_values[int((len(sorted_values) - 1) * fraction)]


class OrchestrationMetrics:
    def __init__(self):
        self._lock = Lock()
        self.clear()

    def clear(self) -> None:
        self._routes: dict[str, dict[str, int]] = defaultdict(lambda: {"requests": 0, "errors": 0})
        self._latencies_ms: deque[float] = deque(maxlen=LATENCY_WINDOW)
        self._outcomes: dict[str, dict[str, int]] = defaultdict(lambda: {"success": 0, "failure": 0})
        self._escalations = 0

    def observe_request(self, route: str, duration_ms: float, failed: bool) -> None:
        with self._lock:
            counts = self._routes[route]
            counts["requests"] += 1
            counts["errors"] += int(failed)
            self._latencies_ms.append(duration_ms)

    def observe_outcome(self, state: str, success: bool) -> None:
        with self._lock:
            self._outcomes[state]["success" if success else "failure"] += 1

    def observe_escalation(self) -> None:
        with self._lock:
            self._escalations += 1

    def reset(self) -> None:
        with self._lock:
            self.clear()

    def snapshot(self) -> dict:
        with self._lock:
            routes = {route: dict(counts) for route, counts in self._routes.items()}
            latencies = sorted(self._latencies_ms)
            outcomes = {state: dict(counts) for state, counts in self._outcomes.items()}
            escalations = self._escalations

        requests = sum(c["requests"] for c in routes.values())
        errors = sum(c["errors"] for c in routes.values())
        error_rate = errors / requests if requests else 0.0
        p50 = _percentile(latencies, 0.50)
        p95 = _percentile(latencies, 0.95)
        executed = sum(c["success"] + c["failure"] for c in outcomes.values())
        failed = sum(c["failure"] for c in outcomes.values())

        alerts: list[str] = []
        if requests and error_rate >= ERROR_RATE_ALERT:
            alerts.append("high_error_rate")
        if p95 is not None and p95 >= LATENCY_P95_ALERT_MS:
            alerts.append("high_latency_p95")
        if executed >= 10 and failed / executed >= EXECUTOR_FAILURE_ALERT:
            alerts.append("high_executor_failure_rate")
        if escalations:
            alerts.append("sessions_halted")

        return {
            "request_count": requests,
            "error_count": errors,
            "error_rate": round(error_rate, 4),
            "latency_ms_p50": round(p50, 2) if p50 is not None else None,
            "latency_ms_p95": round(p95, 2) if p95 is not None else None,
            "routes": routes,
            "executor_outcomes": outcomes,
            "terminal_escalations": escalations,
            "alerts": alerts,
        }


_metrics = OrchestrationMetrics()


def record_request(route: str, duration_sec: float, is_error: bool) -> None:
    _metrics.observe_request(route, duration_sec * 1000, is_error)


def record_executor_outcome(state: str, success: bool) -> None:
    _metrics.observe_outcome(state, success)


def record_escalation() -> None:
    _metrics.observe_escalation()


def get_metrics() -> dict:
    return _metrics.snapshot()


def reset_metrics() -> None:
    """Reset counters (e.g. for tests)."""
    _metrics.reset()


async def metrics_middleware(request: Request, call_next) -> Response:
    path = request.url.path
    if path == "/health" or path.startswith("/metrics"):
        return await call_next(request)
    start = time.perf_counter()
    response = await call_next(request)
    record_request(f"{request.method} {path}", time.perf_counter() - start, response.status_code >= 400)
    return response
