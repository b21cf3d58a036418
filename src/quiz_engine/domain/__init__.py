"""
Domain layer for Exam Quiz Engine.
Contains ports (interfaces), models (entities), schemas (DTOs) and the error taxonomy.
"""

from .exceptions import (
    ConfigurationError,
    EmptyPoolCondition,
    PoolAssemblyError,
    QuizEngineError,
    TimerInitializationError,
)
from .models import (
    AttemptSummary,
    CategoryScore,
    Question,
    QuestionOption,
    Result,
    SelectionConfig,
    SessionState,
    SessionStatus,
)
from .ports import DurationResolver, QuestionStore, ResultSink
from .schemas import (
    AnswerRequest,
    HealthResponse,
    IntentResponse,
    KeyPressRequest,
    NavigateRequest,
    ReadinessResponse,
    SessionView,
    StartSessionRequest,
)

__all__ = [
    # Models (domain entities)
    "SelectionConfig",
    "Question",
    "QuestionOption",
    "SessionState",
    "SessionStatus",
    "CategoryScore",
    "Result",
    "AttemptSummary",
    # Ports (interfaces)
    "QuestionStore",
    "DurationResolver",
    "ResultSink",
    # Errors
    "QuizEngineError",
    "ConfigurationError",
    "PoolAssemblyError",
    "EmptyPoolCondition",
    "TimerInitializationError",
    # Schemas (DTOs)
    "StartSessionRequest",
    "AnswerRequest",
    "NavigateRequest",
    "KeyPressRequest",
    "SessionView",
    "IntentResponse",
    "HealthResponse",
    "ReadinessResponse",
]
