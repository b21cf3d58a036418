"""
Configuration management for Exam Quiz Engine.
Settings are read from the environment (and an optional .env file) with Pydantic BaseSettings.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

EXAM_CATEGORIES = ("JAMB", "WAEC")


class Settings(BaseSettings):
    """Application settings and configuration."""

    # Application
    app_name: str = Field("Exam Quiz Engine", description="Application name")
    app_version: str = Field("1.0.0", description="Application version")
    debug: bool = Field(False, description="Debug mode")
    log_level: str = Field("INFO", description="Logging level")
    enable_docs: bool = Field(True, description="Enable Swagger/OpenAPI documentation")

    # API
    api_host: str = Field("0.0.0.0", description="API host")
    api_port: int = Field(8000, description="API port")
    cors_origins: list[str] = Field(["*"], description="CORS allowed origins")

    # Question store (hosted PostgREST endpoint, in-memory when unset)
    question_store_url: Optional[str] = Field(
        None, description="Base URL of the hosted data store (PostgREST)"
    )
    question_store_key: Optional[str] = Field(None, description="API key for the data store")
    question_store_timeout: float = Field(10.0, description="Data store request timeout (s)")
    question_seed_path: Optional[str] = Field(
        None, description="JSON file of raw question records for the in-memory store"
    )

    # Pool assembly
    subject_question_limit: int = Field(60, description="Question cap for by-subject sessions")
    year_subject_question_limit: int = Field(
        10, description="Per-subject question cap for by-year sessions"
    )
    min_exam_year: int = Field(2000, description="Earliest accepted exam year")

    # Timer
    default_durations: dict[str, int] = Field(
        default_factory=lambda: {"JAMB": 2100, "WAEC": 3600},
        description="Fallback exam durations in seconds, keyed by exam category",
    )
    timer_tick_seconds: float = Field(1.0, description="Countdown tick interval in seconds")

    # Session policy
    allow_early_submit: bool = Field(
        True, description="Allow finishing an exam before the timer reaches zero"
    )
    pass_mark_percentage: int = Field(50, description="Score percentage counted as a pass")
    max_sessions: int = Field(1000, description="Maximum number of registered sessions")
    session_idle_ttl_seconds: int = Field(
        1800, description="Idle seconds after which an untimed session may be reclaimed"
    )

    # Monitoring & Observability
    enable_metrics: bool = Field(True, description="Enable Prometheus metrics")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()


def validate_settings(settings: Settings) -> list[str]:
    """
    Validate settings and return list of issues.

    Returns:
        List of validation issues (empty if all valid)
    """
    issues = []

    # Validate numeric ranges
    if settings.subject_question_limit <= 0:
        issues.append("Subject question limit must be positive")

    if settings.year_subject_question_limit <= 0:
        issues.append("Per-subject question limit for year sessions must be positive")

    if settings.timer_tick_seconds <= 0:
        issues.append("Timer tick interval must be positive")

    if settings.pass_mark_percentage < 0 or settings.pass_mark_percentage > 100:
        issues.append("Pass mark must be between 0 and 100")

    if settings.max_sessions <= 0:
        issues.append("Maximum sessions must be positive")

    if settings.session_idle_ttl_seconds <= 0:
        issues.append("Session idle TTL must be positive")

    if settings.api_port <= 0 or settings.api_port > 65535:
        issues.append("API port must be between 1 and 65535")

    # Every recognized exam category needs a usable fallback duration
    for category in EXAM_CATEGORIES:
        duration = settings.default_durations.get(category)
        if duration is None:
            issues.append(f"Missing default duration for exam category {category}")
        elif duration <= 0:
            issues.append(f"Default duration for {category} must be positive")

    if settings.question_store_url and not settings.question_store_key:
        issues.append("Question store URL is set but no API key was provided")

    return issues
