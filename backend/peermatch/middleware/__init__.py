"""
Middleware Package

Contains FastAPI middleware for:
- Prometheus metrics collection
- Provider and matching performance monitoring
"""

from peermatch.middleware.metrics import (
    PrometheusMiddleware,
    setup_metrics,
    REQUEST_LATENCY,
    REQUEST_COUNT,
    ACTIVE_REQUESTS,
    CACHE_HITS,
    CACHE_MISSES,
)

__all__ = [
    "PrometheusMiddleware",
    "setup_metrics",
    "REQUEST_LATENCY",
    "REQUEST_COUNT",
    "ACTIVE_REQUESTS",
    "CACHE_HITS",
    "CACHE_MISSES",
]
