"""Hit/miss counters and provider latency tracking shared by the domain caches."""

from __future__ import annotations

import threading
from collections import deque
from enum import Enum

from nlshell.cache.models import CacheMetrics

# Rolling window for the recent-latency average
_RECENT_WINDOW = 100


class LookupKind(str, Enum):
    """Which kind of cache lookup a hit or miss belongs to."""

    COMMAND = "command"
    VALIDATION = "validation"
    CONTEXT = "context"


class MetricsTracker:
    """Thread-safe counters for cache lookups and provider response times.

    Hit rate is computed from explicit counters as ``hits / (hits + misses)``
    and is ``0.0`` before any lookup has been recorded.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits: dict[LookupKind, int] = dict.fromkeys(LookupKind, 0)
        self._misses: dict[LookupKind, int] = dict.fromkeys(LookupKind, 0)
        self._response_count = 0
        self._total_response_ms = 0.0
        self._recent_ms: deque[float] = deque(maxlen=_RECENT_WINDOW)

    def record_hit(self, kind: LookupKind | str) -> None:
        kind = LookupKind(kind)
        with self._lock:
            self._hits[kind] += 1

    def record_miss(self, kind: LookupKind | str) -> None:
        kind = LookupKind(kind)
        with self._lock:
            self._misses[kind] += 1

    def record_response_time(self, seconds: float) -> None:
        """Record one provider call's latency, given in seconds."""
        ms = max(seconds, 0.0) * 1000.0
        with self._lock:
            self._response_count += 1
            self._total_response_ms += ms
            self._recent_ms.append(ms)

    def hit_rate(self, *kinds: LookupKind) -> float:
        """Hit rate across ``kinds`` (all kinds when none are given)."""
        selected = kinds or tuple(LookupKind)
        with self._lock:
            hits = sum(self._hits[k] for k in selected)
            misses = sum(self._misses[k] for k in selected)
        total = hits + misses
        return hits / total if total else 0.0

    def get_metrics(self) -> CacheMetrics:
        with self._lock:
            total_hits = sum(self._hits.values())
            total_misses = sum(self._misses.values())
            lookups = total_hits + total_misses
            return CacheMetrics(
                command_hits=self._hits[LookupKind.COMMAND],
                command_misses=self._misses[LookupKind.COMMAND],
                validation_hits=self._hits[LookupKind.VALIDATION],
                validation_misses=self._misses[LookupKind.VALIDATION],
                context_hits=self._hits[LookupKind.CONTEXT],
                context_misses=self._misses[LookupKind.CONTEXT],
                total_hits=total_hits,
                total_misses=total_misses,
                hit_rate=total_hits / lookups if lookups else 0.0,
                response_count=self._response_count,
                average_response_time_ms=(
                    self._total_response_ms / self._response_count if self._response_count else 0.0
                ),
                recent_average_response_time_ms=(
                    sum(self._recent_ms) / len(self._recent_ms) if self._recent_ms else 0.0
                ),
            )

    def reset(self) -> None:
        with self._lock:
            for kind in LookupKind:
                self._hits[kind] = 0
                self._misses[kind] = 0
            self._response_count = 0
            self._total_response_ms = 0.0
            self._recent_ms.clear()
