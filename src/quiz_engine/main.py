"""
Main application entry point for Exam Quiz Engine.
Builds the FastAPI application and wires the session engine to its collaborators.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from quiz_engine.api import router as api_router
from quiz_engine.core.config import Settings, get_settings, validate_settings
from quiz_engine.core.middleware import setup_middleware
from quiz_engine.core.observability import get_structured_logger
from quiz_engine.domain.ports import DurationResolver, QuestionStore, ResultSink
from quiz_engine.repositories.memory_repository import (
    InMemoryAttemptSink,
    InMemoryQuestionStore,
    StaticDurationResolver,
)
from quiz_engine.services.session_manager import SessionManager
from quiz_engine.services.timer_service import TimerService

# Get structured logger
logger = get_structured_logger()


def build_collaborators(settings: Settings):
    """
    Pick store, duration resolver and result sink from configuration.

    Returns:
        Tuple of (question_store, duration_resolver, result_sink, closeable client or None)
    """
    if settings.question_store_url:
        from quiz_engine.repositories.rest_repository import (
            PostgrestClient,
            RestAttemptSink,
            RestDurationResolver,
            RestQuestionStore,
        )

        client = PostgrestClient(settings)
        logger.info(f"Using hosted question store at {settings.question_store_url}")
        return (
            RestQuestionStore(client),
            RestDurationResolver(client, settings),
            RestAttemptSink(client),
            client,
        )

    if settings.question_seed_path:
        store = InMemoryQuestionStore.from_json_file(settings.question_seed_path)
    else:
        store = InMemoryQuestionStore()
    logger.info("Using in-memory question store")
    return store, StaticDurationResolver(settings), InMemoryAttemptSink(), None


def create_app(
    settings: Optional[Settings] = None,
    question_store: Optional[QuestionStore] = None,
    duration_resolver: Optional[DurationResolver] = None,
    result_sink: Optional[ResultSink] = None,
    timer_service: Optional[TimerService] = None,
) -> FastAPI:
    """Create the application; explicit collaborators override configuration."""
    settings = settings or get_settings()
    logger.setLevel(settings.log_level.upper())

    client = None
    if question_store is None or duration_resolver is None:
        store, resolver, sink, client = build_collaborators(settings)
        question_store = question_store or store
        duration_resolver = duration_resolver or resolver
        result_sink = result_sink or sink

    session_manager = SessionManager(
        settings,
        question_store,
        duration_resolver,
        result_sink=result_sink,
        timer_service=timer_service,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info(f"Starting {settings.app_name}...")

        issues = validate_settings(settings)
        if issues:
            logger.warning(f"Configuration issues: {issues}")

        logger.info("Application startup complete")

        yield

        # Shutdown
        logger.info(f"Shutting down {settings.app_name}...")
        session_manager.shutdown()
        if client is not None:
            await client.aclose()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        description="""
        Quiz session engine for exam preparation: practice sessions with immediate
        feedback and timed exam simulations with automatic submission.
        """,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.enable_docs else None,
        redoc_url="/redoc" if settings.enable_docs else None,
    )

    app.state.settings = settings
    app.state.session_manager = session_manager

    setup_middleware(app, settings)

    # Include main API router
    app.include_router(api_router)

    @app.get("/", response_model=dict, tags=["Root"])
    async def root():
        """
        Root endpoint with API information and navigation links.
        """
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "description": "Practice and timed exam sessions over a shared question store",
            "monitoring": {"health": "/healthz", "readiness": "/readyz", "metrics": "/metrics"},
            "api_endpoints": {"sessions": "/v1/sessions"},
            "modes": ["practice", "exam"],
        }

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc):
        """Handle 404 errors."""
        detail = getattr(exc, "detail", None) or "Endpoint not found"
        return JSONResponse(status_code=404, content={"error": detail, "path": str(request.url)})

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc):
        """Handle 500 errors."""
        logger.error(f"Internal server error: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "quiz_engine.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
