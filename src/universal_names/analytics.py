"""
Analytics collector for name operations.

Counts attempts, successes, failures and cache-served results per operation
kind and per backend, tracks error types, and keeps a rolling buffer of
response times for average and P50/P95/P99 reporting.
"""

import math
import threading
import time
from collections import deque
from dataclasses import replace
from typing import Optional, Sequence

from .enums import OperationKind
from .models import AnalyticsStats, ResolverStats

MAX_TIMING_SAMPLES = 1000
MAX_RESOLVER_SAMPLES = 100


def percentile(values: Sequence[float], fraction: float) -> float:
    """Nearest-rank percentile; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    ordered = sorted(values)
    index = max(0, math.ceil(len(ordered) * fraction) - 1)
    return ordered[min(index, len(ordered) - 1)]


class NameAnalytics:
    """
    Thread-safe operation statistics.

    reset() clears every counter and sample under one lock, so readers never
    observe a partially reset state.
    """

    def __init__(self, enabled: bool = True, max_samples: int = MAX_TIMING_SAMPLES) -> None:
        self._enabled = enabled
        self._lock = threading.Lock()
        self._max_samples = max_samples
        self._init_state()

    def _init_state(self) -> None:
        self._attempts: dict[OperationKind, int] = {}
        self._successes = 0
        self._failures = 0
        self._cache_served = 0
        self._resolvers: dict[str, ResolverStats] = {}
        self._errors: dict[str, int] = {}
        self._timings: deque[float] = deque(maxlen=self._max_samples)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def start_operation(self, kind: OperationKind) -> "OperationStopwatch":
        return OperationStopwatch(self, kind)

    def record_operation(
        self,
        kind: OperationKind,
        success: bool,
        duration_ms: float,
        from_cache: bool = False,
        error: Optional[BaseException] = None,
    ) -> None:
        """Record the outcome of one dispatcher-level operation."""
        if not self._enabled:
            return
        with self._lock:
            self._attempts[kind] = self._attempts.get(kind, 0) + 1
            if success:
                self._successes += 1
            else:
                self._failures += 1
            if from_cache:
                self._cache_served += 1
            else:
                self._timings.append(duration_ms)
            if error is not None:
                error_type = type(error).__name__
                self._errors[error_type] = self._errors.get(error_type, 0) + 1

    def record_backend_call(self, backend_id: str, success: bool, duration_ms: float) -> None:
        """Record one call into a resolver backend."""
        if not self._enabled:
            return
        with self._lock:
            stats = self._resolvers.get(backend_id)
            if stats is None:
                stats = ResolverStats(backend_id=backend_id)
                self._resolvers[backend_id] = stats
            stats.calls += 1
            if success:
                stats.successes += 1
                stats.response_times_ms.append(duration_ms)
                del stats.response_times_ms[:-MAX_RESOLVER_SAMPLES]
            else:
                stats.failures += 1

    def record_error(self, error: BaseException) -> None:
        if not self._enabled:
            return
        with self._lock:
            error_type = type(error).__name__
            self._errors[error_type] = self._errors.get(error_type, 0) + 1

    def get_stats(self) -> AnalyticsStats:
        with self._lock:
            timings = list(self._timings)
            resolvers = {
                rid: replace(s, response_times_ms=list(s.response_times_ms))
                for rid, s in self._resolvers.items()
            }
            return AnalyticsStats(
                total_operations=sum(self._attempts.values()),
                successes=self._successes,
                failures=self._failures,
                cache_served=self._cache_served,
                operations_by_kind={k.value: v for k, v in self._attempts.items()},
                resolvers=resolvers,
                errors_by_type=dict(self._errors),
                average_response_time_ms=sum(timings) / len(timings) if timings else 0.0,
                p50_ms=percentile(timings, 0.50),
                p95_ms=percentile(timings, 0.95),
                p99_ms=percentile(timings, 0.99),
            )

    def reset(self) -> None:
        with self._lock:
            self._init_state()


class OperationStopwatch:
    """Times one operation and reports it exactly once."""

    def __init__(self, analytics: NameAnalytics, kind: OperationKind) -> None:
        self._analytics = analytics
        self._kind = kind
        self._start = time.perf_counter()
        self._finished = False

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000

    def success(self, from_cache: bool = False) -> None:
        self._finish(True, from_cache, None)

    def failure(self, error: Optional[BaseException] = None) -> None:
        self._finish(False, False, error)

    def _finish(self, success: bool, from_cache: bool, error: Optional[BaseException]) -> None:
        if self._finished:
            return
        self._finished = True
        self._analytics.record_operation(
            self._kind, success, self.elapsed_ms, from_cache=from_cache, error=error
        )
