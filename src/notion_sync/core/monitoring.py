"""Prometheus metrics for sync cycles, records and schema changes.

Provides:
- Counters updated by the orchestrator and schema reconciler
- MetricsMiddleware: request count and latency for the HTTP surface
- get_metrics_response(): FastAPI route handler body for /metrics
"""

from __future__ import annotations

import time

from prometheus_client import REGISTRY, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── Sync Metrics ─────────────────────────────────────────────────────────────

sync_records_total = Counter(
    "notion_sync_records_total",
    "Notion pages handled by sync invocations",
    ["table", "outcome"],
)

sync_cycles_total = Counter(
    "notion_sync_cycles_total",
    "Sync invocations by the state they started from",
    ["table", "phase"],
)

schema_columns_added_total = Counter(
    "notion_sync_columns_added_total",
    "Columns added to synced tables by schema reconciliation",
    ["table"],
)

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "notion_sync_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "notion_sync_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record request count and duration per method/endpoint.

    Skips /metrics itself.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        endpoint = request.url.path
        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()
        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
