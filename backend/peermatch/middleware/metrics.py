"""
Prometheus Metrics Middleware

Provides request/response metrics for monitoring:
- HTTP request latency
- Request count by endpoint and status
- Active request gauge
- Expansion/embedding latency and per-slot outcomes
- Match computation latency and peer recalculation failures

Usage:
    from peermatch.middleware.metrics import setup_metrics

    # In main.py
    app = FastAPI()
    setup_metrics(app)

Metrics Endpoint:
    GET /metrics - Prometheus-format metrics
"""

import time
import logging
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CONTENT_TYPE_LATEST,
    generate_latest,
    REGISTRY,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

logger = logging.getLogger(__name__)

# ==================== Prometheus Metrics ====================

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint", "status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
    ["method", "endpoint"]
)

# Embedding cache metrics
CACHE_HITS = Counter(
    "cache_hits_total",
    "Total cache hits",
    ["layer"]
)

CACHE_MISSES = Counter(
    "cache_misses_total",
    "Total cache misses",
    ["layer"]
)

# AI provider metrics
EMBEDDING_LATENCY = Histogram(
    "embedding_generation_seconds",
    "Time to generate embeddings",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0]
)

EXPANSION_LATENCY = Histogram(
    "text_expansion_seconds",
    "Time to expand profile text",
    ["slot"],
    buckets=[0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0]
)

SLOT_OUTCOMES = Counter(
    "profile_slot_outcomes_total",
    "Profile slot processing outcomes",
    ["outcome"]  # expanded, fallback, failed, cleared
)

# Matching metrics
MATCH_SCORE_LATENCY = Histogram(
    "match_computation_seconds",
    "Time to compute a user's match list",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

PEER_RECALC_FAILURES = Counter(
    "peer_match_recalculation_failures_total",
    "Peers whose match recalculation failed during a fan-out"
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for Prometheus metrics collection.

    Records:
    - Request latency
    - Request count by status code
    - Active request count
    """

    def __init__(self, app: FastAPI, app_name: str = "peermatch"):
        super().__init__(app)
        self.app_name = app_name

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        """Process request and record metrics."""
        method = request.method
        active_endpoint = self._get_endpoint(request)

        if active_endpoint == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.labels(method=method, endpoint=active_endpoint).inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status = str(response.status_code)
        except Exception as e:
            status = "500"
            logger.error(f"Request error: {e}")
            raise
        finally:
            duration = time.perf_counter() - start_time
            # Routing has run by now, so the matched route is in the scope.
            endpoint = self._get_endpoint(request)

            REQUEST_LATENCY.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).observe(duration)

            REQUEST_COUNT.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).inc()

            ACTIVE_REQUESTS.labels(
                method=method,
                endpoint=active_endpoint
            ).dec()

        return response

    def _get_endpoint(self, request: Request) -> str:
        """
        Get normalized endpoint path from request.

        Uses the route pattern (e.g., /api/live-support/user/{user_id})
        instead of the actual path to avoid high cardinality.
        """
        path = getattr(request.scope.get("route"), "path", None)
        if path:
            return path

        return _match_route_path(request.app.routes, request.scope) or request.url.path


def _match_route_path(routes, scope) -> Optional[str]:
    """Path template of the first fully matching route, looking inside included routers."""
    for route in routes:
        path = getattr(route, "path", None)
        if path is None:
            nested = _match_route_path(getattr(route, "routes", []), scope)
            if nested:
                return nested
            continue
        match, _ = route.matches(scope)
        if match == Match.FULL:
            return path
    return None


def metrics_endpoint(request: Request) -> Response:
    """Endpoint handler for Prometheus metrics scraping."""
    return PlainTextResponse(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST
    )


def setup_metrics(app: FastAPI) -> None:
    """
    Configure Prometheus metrics for FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(PrometheusMiddleware, app_name="peermatch")
    app.add_route("/metrics", metrics_endpoint, methods=["GET"])

    logger.info("Prometheus metrics configured")


# ==================== Helper Functions ====================

def record_cache_hit(layer: str) -> None:
    CACHE_HITS.labels(layer=layer).inc()


def record_cache_miss(layer: str) -> None:
    CACHE_MISSES.labels(layer=layer).inc()


def record_embedding_latency(provider: str, duration: float) -> None:
    EMBEDDING_LATENCY.labels(provider=provider).observe(duration)


def record_expansion_latency(slot: str, duration: float) -> None:
    EXPANSION_LATENCY.labels(slot=slot).observe(duration)


def record_slot_outcome(outcome: str) -> None:
    SLOT_OUTCOMES.labels(outcome=outcome).inc()


def record_match_score_latency(duration: float) -> None:
    MATCH_SCORE_LATENCY.observe(duration)


def record_peer_recalc_failure() -> None:
    PEER_RECALC_FAILURES.inc()
