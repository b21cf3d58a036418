"""
Observability module for Exam Quiz Engine.
Implements health checks, readiness checks, and metrics endpoints.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Optional

import httpx
from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from quiz_engine.domain.schemas import HealthResponse, ReadinessResponse

logger = logging.getLogger(__name__)

# Prometheus metrics
REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"]
)
REQUEST_DURATION = Histogram(
    "http_request_duration_seconds", "HTTP request duration", ["method", "endpoint"]
)
ACTIVE_SESSIONS = Gauge("quiz_active_sessions", "Number of registered quiz sessions")
SESSIONS_STARTED = Counter("quiz_sessions_started_total", "Sessions that became active", ["mode"])
SESSIONS_COMPLETED = Counter(
    "quiz_sessions_completed_total", "Sessions that completed", ["mode", "trigger"]
)
SESSIONS_ABANDONED = Counter(
    "quiz_sessions_ended_total", "Sessions that ended without a result", ["status"]
)
POOL_ASSEMBLY_TIME = Histogram("quiz_pool_assembly_seconds", "Question pool assembly time")
RECORDS_DROPPED = Counter("quiz_records_dropped_total", "Malformed question records dropped")
SINK_FAILURES = Counter("quiz_result_sink_failures_total", "Failed attempt persistence calls")


class ObservabilityService:
    """Service for managing observability features."""

    def __init__(self):
        self.startup_time = datetime.now(UTC)

    async def health_check(self, version: str) -> HealthResponse:
        """
        Basic health check - returns app status without external dependencies.
        Fast check for load balancers.
        """
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(UTC),
            services={"app": True},
            version=version,
            details={
                "uptime_seconds": int((datetime.now(UTC) - self.startup_time).total_seconds())
            },
        )

    async def readiness_check(
        self, version: str, store_url: Optional[str], store_key: Optional[str]
    ) -> ReadinessResponse:
        """
        Readiness check - verifies the hosted question store when one is configured.
        """
        dependencies = {}
        overall_ready = True

        if store_url:
            store_status = await self._check_store(store_url, store_key)
            dependencies["question_store"] = store_status
            if not store_status["healthy"]:
                overall_ready = False
        else:
            dependencies["question_store"] = {"healthy": True, "message": "in-memory store"}

        return ReadinessResponse(
            ready=overall_ready,
            timestamp=datetime.now(UTC),
            dependencies=dependencies,
            version=version,
        )

    async def _check_store(self, url: str, key: Optional[str]) -> dict[str, Any]:
        """Check the PostgREST endpoint answers its root."""
        headers = {"apikey": key, "Authorization": f"Bearer {key}"} if key else {}
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{url.rstrip('/')}/rest/v1/", headers=headers)
                return {
                    "healthy": response.status_code < 400,
                    "status_code": response.status_code,
                    "response_time_ms": int(response.elapsed.total_seconds() * 1000),
                }
        except Exception as e:
            logger.error(f"Question store health check failed: {e}")
            return {"healthy": False, "error": str(e), "response_time_ms": None}

    async def get_metrics(self) -> Response:
        """Get Prometheus metrics."""
        try:
            metrics_data = generate_latest()
            return Response(content=metrics_data, media_type=CONTENT_TYPE_LATEST)
        except Exception as e:
            logger.error(f"Error generating metrics: {e}")
            return Response(
                content="# Error generating metrics\n",
                status_code=500,
                media_type=CONTENT_TYPE_LATEST,
            )

    def record_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record request metrics."""
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)

    def set_active_sessions(self, count: int):
        """Update active sessions metric."""
        ACTIVE_SESSIONS.set(count)

    def record_session_started(self, mode: str):
        SESSIONS_STARTED.labels(mode=mode).inc()

    def record_session_completed(self, mode: str, trigger: str):
        SESSIONS_COMPLETED.labels(mode=mode, trigger=trigger).inc()

    def record_session_ended(self, status: str):
        SESSIONS_ABANDONED.labels(status=status).inc()

    def record_pool_assembly_time(self, duration: float):
        POOL_ASSEMBLY_TIME.observe(duration)

    def record_dropped_records(self, count: int):
        if count > 0:
            RECORDS_DROPPED.inc(count)

    def record_sink_failure(self):
        SINK_FAILURES.inc()


# Global observability service instance
observability_service = ObservabilityService()


def get_observability_service() -> ObservabilityService:
    """Get observability service instance."""
    return observability_service


def get_structured_logger(level: str = "INFO") -> logging.Logger:
    """Get structured logger for JSON logging."""
    logger = logging.getLogger("quiz_engine")

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level.upper())

    return logger
