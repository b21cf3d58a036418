"""
Request/response schemas (DTOs) for the Exam Quiz Engine.
Transport layer schemas separate from domain models.
"""

from datetime import UTC, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from .models import Direction, SelectionConfig


class StartSessionRequest(BaseModel):
    """Request schema for starting a session."""

    config: SelectionConfig = Field(..., description="What the session should contain")
    user_id: Optional[str] = Field(None, description="Authenticated user, if any")


class AnswerRequest(BaseModel):
    """Request schema for selecting an answer."""

    question_id: str = Field(..., description="Question being answered")
    label: str = Field(..., min_length=1, max_length=1, description="Option label (A-D)")


class NavigateRequest(BaseModel):
    """Request schema for moving between questions."""

    direction: Direction = Field(..., description="next or previous")


class KeyPressRequest(BaseModel):
    """Request schema for a keyboard key forwarded by the UI."""

    key: str = Field(
        ..., min_length=1, description="Key name", examples=["A", "ArrowLeft", "Enter"]
    )


class OptionView(BaseModel):
    label: str
    text: str


class QuestionView(BaseModel):
    """A question as presented to the user; the answer key is withheld until allowed."""

    question_id: str
    text: str
    options: list[OptionView]
    selected: Optional[str] = Field(None, description="The user's current answer")
    correct: Optional[str] = Field(None, description="Revealed with feedback or after completion")
    is_correct: Optional[bool] = None
    explanation: Optional[str] = None
    subject: Optional[str] = None
    topic: Optional[str] = None
    exam_year: Optional[int] = None


class SessionView(BaseModel):
    """Snapshot of a session for rendering."""

    session_id: str
    status: Literal["loading", "active", "completed", "empty", "error", "cancelled"]
    mode: Literal["practice", "exam"]
    mode_label: str
    exam_category: str
    current_index: int
    total_questions: int
    answered: int
    answers: dict[str, str] = Field(default_factory=dict, description="Question id -> chosen label")
    current_question: Optional[QuestionView] = None
    feedback_visible: bool = False
    time_remaining: Optional[int] = None
    time_display: Optional[str] = None
    message: Optional[str] = None
    retryable: bool = False
    result_available: bool = False


class IntentResponse(BaseModel):
    """Outcome of an intent; ``accepted`` is false when it was an ignored no-op."""

    accepted: bool
    session: SessionView


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(
        ..., description="Service health status"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Health check timestamp"
    )
    services: dict[str, bool] = Field(..., description="Individual service health status")
    version: str = Field(..., description="Application version")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional health details")


class ReadinessResponse(BaseModel):
    """Readiness check response schema."""

    ready: bool = Field(..., description="Whether service is ready")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Readiness check timestamp"
    )
    dependencies: dict[str, dict[str, Any]] = Field(..., description="Dependency status details")
    version: str = Field(..., description="Application version")
