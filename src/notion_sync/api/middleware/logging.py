"""Structured logging setup and request logging middleware.

configure_structlog() is shared by the API and the scripts. The middleware
binds request_id, method and path into structlog contextvars, so every event
logged while a sync cycle runs inside the request carries them too.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.notion_sync.config import LogLevel

logger = structlog.get_logger(__name__)


def configure_structlog(level: LogLevel = LogLevel.INFO, json_logs: bool = False) -> None:
    """Configure structlog processors and the minimum level to emit."""
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level.numeric),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log one event per request and tag the response with X-Request-ID."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        started = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request.failed", duration_ms=_elapsed_ms(started))
            raise

        response.headers["X-Request-ID"] = request_id
        if response.status_code >= 500:
            log_method = logger.error
        elif response.status_code >= 400:
            log_method = logger.warning
        else:
            log_method = logger.info
        log_method("request.completed", status_code=response.status_code, duration_ms=_elapsed_ms(started))
        structlog.contextvars.clear_contextvars()
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)
