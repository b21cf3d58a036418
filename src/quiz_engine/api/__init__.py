"""
API router aggregation for Exam Quiz Engine.
Combines session endpoints and monitoring endpoints into a single router.
"""

from fastapi import APIRouter, Request

from quiz_engine.core.observability import get_observability_service

from .sessions import router as sessions_router

# Create main API router
router = APIRouter()

router.include_router(sessions_router, prefix="/v1/sessions", tags=["Sessions"])


# Observability endpoints (not in sub-routers to avoid conflicts)
@router.get(
    "/healthz",
    tags=["Monitoring"],
    summary="Health Check",
    description="Fast health check endpoint for load balancers and container orchestration",
)
async def health_check(request: Request):
    """
    Fast health check for load balancers.

    Returns basic application health status without checking external dependencies.
    """
    settings = request.app.state.settings
    observability = get_observability_service()
    return await observability.health_check(settings.app_version)


@router.get(
    "/readyz",
    tags=["Monitoring"],
    summary="Readiness Check",
    description="Readiness check including the hosted question store",
)
async def readiness_check(request: Request):
    """
    Readiness check.

    Verifies the hosted question store answers when one is configured;
    the in-memory store is always ready.
    """
    settings = request.app.state.settings
    observability = get_observability_service()
    return await observability.readiness_check(
        version=settings.app_version,
        store_url=settings.question_store_url,
        store_key=settings.question_store_key,
    )


@router.get(
    "/metrics",
    tags=["Monitoring"],
    summary="Prometheus Metrics",
    description="Application metrics in Prometheus format",
)
async def metrics():
    """
    Prometheus metrics endpoint.

    Returns HTTP request metrics and quiz session statistics
    (sessions started/completed, pool assembly time, sink failures).
    """
    observability = get_observability_service()
    return await observability.get_metrics()


__all__ = ["router"]
