"""
SDK Metrics Collection.
Tracks request performance, retries, cache efficiency and error rates.
"""

import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class OperationStats:
    """Statistics for a single operation."""
    requests: int = 0
    errors: int = 0
    avg_latency_ms: float = 0


@dataclass
class MetricsSnapshot:
    """Complete snapshot of all metrics."""
    # Request metrics
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    success_rate: float = 0
    error_rate: float = 0
    total_retries: int = 0

    # Latency metrics (in milliseconds)
    avg_latency_ms: float = 0
    min_latency_ms: float = 0
    max_latency_ms: float = 0
    p50_latency_ms: float = 0
    p95_latency_ms: float = 0
    p99_latency_ms: float = 0

    # Cache metrics
    cache_hits: int = 0
    cache_misses: int = 0
    cache_hit_rate: float = 0

    # Error metrics
    errors_by_kind: Dict[str, int] = field(default_factory=dict)

    # Per-operation metrics
    operations: Dict[str, OperationStats] = field(default_factory=dict)

    # Timing
    uptime_ms: int = 0
    last_request_at: Optional[int] = None


@dataclass
class RequestMetrics:
    """Metrics for one logical operation, including its retries."""
    operation: str
    success: bool
    latency_ms: float
    attempts: int = 1
    error_kind: Optional[str] = None


class SDKMetrics:
    """
    Collects SDK metrics.

    Example:
        ```python
        metrics = SDKMetrics()

        metrics.record_request(RequestMetrics(
            operation="evaluate",
            success=True,
            latency_ms=45.2,
        ))
        metrics.record_cache_lookup(hit=False)

        snap = metrics.snapshot()
        print(f"Success rate: {snap.success_rate}%")
        ```
    """

    def __init__(self):
        """Initialize metrics collector."""
        self._lock = threading.Lock()
        self._max_latency_history = 1000
        self._reset_state()

    def record_request(self, metrics: RequestMetrics) -> None:
        """
        Record a completed operation.

        Args:
            metrics: Request metrics to record
        """
        with self._lock:
            self._total_requests += 1
            self._last_request_at = time.time()
            self._total_retries += max(0, metrics.attempts - 1)

            op = self._operations[metrics.operation]
            op["requests"] += 1
            op["total_latency_ms"] += metrics.latency_ms

            if metrics.success:
                self._successful_requests += 1
            else:
                self._failed_requests += 1
                op["errors"] += 1
                if metrics.error_kind:
                    self._errors_by_kind[metrics.error_kind] += 1

            self._latencies.append(metrics.latency_ms)
            if len(self._latencies) > self._max_latency_history:
                self._latencies.pop(0)

    def record_cache_lookup(self, hit: bool) -> None:
        """Record the outcome of a cache lookup."""
        with self._lock:
            if hit:
                self._cache_hits += 1
            else:
                self._cache_misses += 1

    def snapshot(self) -> MetricsSnapshot:
        """
        Get a snapshot of all metrics.

        Returns:
            Complete metrics snapshot
        """
        with self._lock:
            sorted_latencies = sorted(self._latencies)
            total_cache_requests = self._cache_hits + self._cache_misses

            return MetricsSnapshot(
                total_requests=self._total_requests,
                successful_requests=self._successful_requests,
                failed_requests=self._failed_requests,
                success_rate=(
                    (self._successful_requests / self._total_requests) * 100
                    if self._total_requests > 0 else 0
                ),
                error_rate=(
                    (self._failed_requests / self._total_requests) * 100
                    if self._total_requests > 0 else 0
                ),
                total_retries=self._total_retries,

                avg_latency_ms=self._calculate_average(sorted_latencies),
                min_latency_ms=sorted_latencies[0] if sorted_latencies else 0,
                max_latency_ms=sorted_latencies[-1] if sorted_latencies else 0,
                p50_latency_ms=self._calculate_percentile(sorted_latencies, 50),
                p95_latency_ms=self._calculate_percentile(sorted_latencies, 95),
                p99_latency_ms=self._calculate_percentile(sorted_latencies, 99),

                cache_hits=self._cache_hits,
                cache_misses=self._cache_misses,
                cache_hit_rate=(
                    (self._cache_hits / total_cache_requests) * 100
                    if total_cache_requests > 0 else 0
                ),

                errors_by_kind=dict(self._errors_by_kind),
                operations={
                    name: OperationStats(
                        requests=op["requests"],
                        errors=op["errors"],
                        avg_latency_ms=(
                            op["total_latency_ms"] / op["requests"]
                            if op["requests"] > 0 else 0
                        ),
                    )
                    for name, op in self._operations.items()
                },

                uptime_ms=int((time.time() - self._start_time) * 1000),
                last_request_at=(
                    int(self._last_request_at * 1000)
                    if self._last_request_at else None
                ),
            )

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._reset_state()

    def _reset_state(self) -> None:
        self._total_requests = 0
        self._successful_requests = 0
        self._failed_requests = 0
        self._total_retries = 0
        self._cache_hits = 0
        self._cache_misses = 0
        self._latencies: List[float] = []
        self._errors_by_kind: Dict[str, int] = defaultdict(int)
        self._operations: Dict[str, Dict[str, float]] = defaultdict(
            lambda: {"requests": 0, "errors": 0, "total_latency_ms": 0.0}
        )
        self._start_time = time.time()
        self._last_request_at: Optional[float] = None

    @staticmethod
    def _calculate_average(sorted_values: List[float]) -> float:
        """Calculate average of sorted values."""
        if not sorted_values:
            return 0
        return sum(sorted_values) / len(sorted_values)

    @staticmethod
    def _calculate_percentile(sorted_values: List[float], percentile: float) -> float:
        """Calculate percentile of sorted values."""
        if not sorted_values:
            return 0
        index = int((percentile / 100) * len(sorted_values)) - 1
        return sorted_values[max(0, index)]
