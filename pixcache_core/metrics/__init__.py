"""Metrics module - Resource cache counters and export."""

from pixcache_core.metrics.collector import (
    MetricsCollector,
    CacheMetrics,
    Timer,
)

__all__ = [
    "MetricsCollector",
    "CacheMetrics",
    "Timer",
]
