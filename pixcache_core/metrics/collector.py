"""PixCache Metrics Collector - Fetch and Cache Counters.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List

logger = logging.getLogger(__name__)


@dataclass
class CacheMetrics:
    """Resource cache metrics container.

    Attributes:
        hits: Requests served from the backend
        misses: Requests that went to the origin
        origin_fetches: Successful origin reads
        origin_failures: Failed origin reads
        persist_failures: Failed backend writes
        pre_warms: Completed pre-warms
        swept: Entries removed by sweeping
        coalesced: Requests that joined an in-flight fetch
        latency_avg_ms: Average request latency
        latency_p99_ms: P99 request latency
    """

    hits: int = 0
    misses: int = 0
    origin_fetches: int = 0
    origin_failures: int = 0
    persist_failures: int = 0
    pre_warms: int = 0
    swept: int = 0
    coalesced: int = 0
    latency_avg_ms: float = 0.0
    latency_p99_ms: float = 0.0

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "origin_fetches": self.origin_fetches,
            "origin_failures": self.origin_failures,
            "persist_failures": self.persist_failures,
            "pre_warms": self.pre_warms,
            "swept": self.swept,
            "coalesced": self.coalesced,
            "latency_avg_ms": self.latency_avg_ms,
            "latency_p99_ms": self.latency_p99_ms,
        }


class MetricsCollector:
    """Collects resource cache metrics.

    Example:
        collector = MetricsCollector()
        collector.record_hit()
        with Timer(collector):
            fetch()

        print(f"Hit rate: {collector.get_metrics().hit_rate:.2%}")
    """

    def __init__(self, max_latency_samples: int = 10000):
        self._counters: Dict[str, int] = {
            "hits": 0,
            "misses": 0,
            "origin_fetches": 0,
            "origin_failures": 0,
            "persist_failures": 0,
            "pre_warms": 0,
            "swept": 0,
            "coalesced": 0,
        }
        self._latencies: Deque[float] = deque(maxlen=max_latency_samples)
        self._lock = threading.RLock()
        self._exporters: List[Callable[[CacheMetrics], None]] = []

    def _incr(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def record_hit(self) -> None:
        self._incr("hits")

    def record_miss(self) -> None:
        self._incr("misses")

    def record_origin_fetch(self) -> None:
        self._incr("origin_fetches")

    def record_origin_failure(self) -> None:
        self._incr("origin_failures")

    def record_persist_failure(self) -> None:
        self._incr("persist_failures")

    def record_pre_warm(self) -> None:
        self._incr("pre_warms")

    def record_swept(self, count: int) -> None:
        self._incr("swept", count)

    def record_coalesced(self) -> None:
        self._incr("coalesced")

    def record_latency(self, ms: float) -> None:
        """Record request latency.

        Args:
            ms: Latency in milliseconds
        """
        with self._lock:
            self._latencies.append(ms)

    def _calculate_latency_avg(self) -> float:
        if not self._latencies:
            return 0.0
        return sum(self._latencies) / len(self._latencies)

    def _calculate_latency_p99(self) -> float:
        if not self._latencies:
            return 0.0
        sorted_latencies = sorted(self._latencies)
        idx = int(len(sorted_latencies) * 0.99)
        return sorted_latencies[min(idx, len(sorted_latencies) - 1)]

    def get_metrics(self) -> CacheMetrics:
        """Get current metrics.

        Returns:
            CacheMetrics snapshot
        """
        with self._lock:
            return CacheMetrics(
                latency_avg_ms=self._calculate_latency_avg(),
                latency_p99_ms=self._calculate_latency_p99(),
                **self._counters,
            )

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            for name in self._counters:
                self._counters[name] = 0
            self._latencies.clear()

    def add_exporter(self, exporter: Callable[[CacheMetrics], None]) -> None:
        """Add metrics exporter.

        Args:
            exporter: Callback to receive metrics
        """
        self._exporters.append(exporter)

    def export(self) -> None:
        """Export metrics to all exporters."""
        metrics = self.get_metrics()
        for exporter in self._exporters:
            try:
                exporter(metrics)
            except Exception as e:
                logger.error(f"Exporter error: {e}")

    def to_prometheus(self) -> str:
        """Export metrics in Prometheus format.

        Returns:
            Prometheus-formatted metrics
        """
        metrics = self.get_metrics()
        lines: List[str] = []
        counters = [
            ("pixcache_hits_total", "Requests served from cache", metrics.hits),
            ("pixcache_misses_total", "Requests sent to the origin", metrics.misses),
            ("pixcache_origin_fetches_total", "Successful origin reads", metrics.origin_fetches),
            ("pixcache_origin_failures_total", "Failed origin reads", metrics.origin_failures),
            ("pixcache_persist_failures_total", "Failed backend writes", metrics.persist_failures),
            ("pixcache_pre_warms_total", "Completed pre-warms", metrics.pre_warms),
            ("pixcache_swept_total", "Entries removed by sweeping", metrics.swept),
        ]
        for name, help_text, value in counters:
            lines.extend([
                f"# HELP {name} {help_text}",
                f"# TYPE {name} counter",
                f"{name} {value}",
                "",
            ])
        lines.extend([
            "# HELP pixcache_hit_rate Cache hit rate",
            "# TYPE pixcache_hit_rate gauge",
            f"pixcache_hit_rate {metrics.hit_rate:.4f}",
            "",
            "# HELP pixcache_latency_p99_ms P99 request latency",
            "# TYPE pixcache_latency_p99_ms gauge",
            f"pixcache_latency_p99_ms {metrics.latency_p99_ms:.2f}",
        ])
        return "\n".join(lines)

    def __repr__(self) -> str:
        metrics = self.get_metrics()
        return f"MetricsCollector(hits={metrics.hits}, hit_rate={metrics.hit_rate:.2%})"


class Timer:
    """Context manager for timing operations."""

    def __init__(self, collector: MetricsCollector):
        self._collector = collector
        self._start: float = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        elapsed_ms = (time.perf_counter() - self._start) * 1000
        self._collector.record_latency(elapsed_ms)


__all__ = [
    "MetricsCollector",
    "CacheMetrics",
    "Timer",
]
