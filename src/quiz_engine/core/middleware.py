"""
Middleware for Exam Quiz Engine.
Implements request correlation, structured request logging and CORS.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware

from .config import Settings
from .observability import get_observability_service

logger = logging.getLogger(__name__)


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Correlation ID middleware for request tracing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Add correlation ID to requests."""
        # Generate or extract correlation ID
        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())

        request.state.correlation_id = correlation_id

        response = await call_next(request)

        response.headers["x-correlation-id"] = correlation_id

        return response


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Structured JSON logging middleware with observability integration."""

    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.settings = settings
        self.observability = get_observability_service()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Add structured logging and metrics to requests."""
        start_time = time.time()
        correlation_id = getattr(request.state, "correlation_id", "unknown")

        log_context = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else "unknown",
            "session_id": self._extract_session_id(request),
            "timestamp": start_time,
        }

        logger.info(json.dumps({"event": "request_started", **log_context}))

        status_code = 500
        error = None
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            error = str(e)
            logger.error(json.dumps({"event": "request_error", "error": error, **log_context}))
            raise
        finally:
            latency_seconds = time.time() - start_time

            if self.settings.enable_metrics:
                self.observability.record_request(
                    method=request.method,
                    endpoint=self._route_template(request),
                    status_code=status_code,
                    duration=latency_seconds,
                )

            logger.info(
                json.dumps(
                    {
                        "event": "request_completed",
                        "status_code": status_code,
                        "latency_ms": round(latency_seconds * 1000, 2),
                        "error": error,
                        **log_context,
                    }
                )
            )

        return response

    def _extract_session_id(self, request: Request) -> str:
        """Session id from the header, else from a /v1/sessions/{id} path."""
        session_id = request.headers.get("x-session-id")
        if session_id:
            return session_id
        parts = request.url.path.strip("/").split("/")
        if len(parts) >= 3 and parts[0] == "v1" and parts[1] == "sessions":
            return parts[2]
        return "unknown"

    def _route_template(self, request: Request) -> str:
        # Per-session paths share one label: the route template
        route = request.scope.get("route")
        return getattr(route, "path", request.url.path)


def setup_cors_middleware(app, settings: Settings):
    """Setup CORS middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )


def setup_middleware(app, settings: Settings):
    """Setup all middleware for the application."""
    # Add middleware in reverse order (last added is first executed)

    # Structured logging middleware
    app.add_middleware(StructuredLoggingMiddleware, settings=settings)

    # Correlation ID middleware
    app.add_middleware(CorrelationMiddleware)

    # CORS middleware
    setup_cors_middleware(app, settings)
