"""State cache counters per key space (session vs teaching records), exposed under /metrics/app."""
from __future__ import annotations

from collections import Counter
from threading import Lock

_KEYSPACES = ("orchestrator", "teaching")


def keyspace_for(key: str) -> str:
    head = key.split(":", 1)[0]
    return head if head in _KEYSPACES else "other"


class StateCacheCounters:
    def __init__(self):
        self._lock = Lock()
        self._counts: Counter[tuple[str, str]] = Counter()

    def bump(self, keyspace: str, event: str) -> None:
        with self._lock:
            self._counts[(keyspace, event)] += 1

    def clear(self) -> None:
        with self._lock:
            self._counts.clear()

    def snapshot(self) -> dict:
        with self._lock:
            counts = dict(self._counts)
        by_keyspace: dict[str, dict[str, int]] = {}
        for (keyspace, event), value in counts.items():
            by_keyspace.setdefault(keyspace, {})[event] = value

        def total(event: str) -> int:
            return sum(v for (_, e), v in counts.items() if e == event)

        hits, misses = total("hit"), total("miss")
        gets = hits + misses
        return {
            "cache_hits": hits,
            "cache_misses": misses,
            "cache_sets": total("set"),
            "cache_failures": total("failure"),
            "cache_get_total": gets,
            "cache_hit_ratio": round(hits / gets, 4) if gets else None,
            "by_keyspace": by_keyspace,
        }


_counters = StateCacheCounters()


def record_cache_get(key: str, hit: bool) -> None:
    _counters.bump(keyspace_for(key), "hit" if hit else "miss")


def record_cache_set(key: str) -> None:
    _counters.bump(keyspace_for(key), "set")


def record_cache_failure(key: str) -> None:
    _counters.bump(keyspace_for(key), "failure")


def get_cache_metrics() -> dict:
    return _counters.snapshot()


def reset_cache_metrics() -> None:
    """Reset counters (e.g. for tests)."""
    _counters.clear()
