"""
Domain models for the Exam Quiz Engine.
Core business entities separate from transport DTOs.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

OPTION_LABELS: tuple[str, ...] = ("A", "B", "C", "D")
UNKNOWN_CATEGORY = "Unknown"

ExamCategory = Literal["JAMB", "WAEC"]
QuizMode = Literal["practice", "exam"]
SelectionMethod = Literal["subject", "year"]
Direction = Literal["next", "previous"]
CompletionTrigger = Literal["manual", "timer"]


class SessionStatus(str, Enum):
    """Lifecycle states of a quiz session."""

    LOADING = "loading"
    ACTIVE = "active"
    COMPLETED = "completed"
    EMPTY = "empty"
    ERROR = "error"
    CANCELLED = "cancelled"


class SelectionConfig(BaseModel):
    """Immutable description of what a session should contain."""

    model_config = ConfigDict(frozen=True)

    exam_category: ExamCategory = Field(..., description="Examination board")
    mode: QuizMode = Field(..., description="Practice (immediate feedback) or exam (timed)")
    selection_method: SelectionMethod = Field(..., description="Select by subject or by year")
    subject_slug: Optional[str] = Field(None, description="Subject for by-subject selection")
    year: Optional[int] = Field(None, description="Exam year filter")

    @property
    def is_practice(self) -> bool:
        return self.mode == "practice"

    @property
    def is_exam(self) -> bool:
        return self.mode == "exam"

    @property
    def quiz_mode_identifier(self) -> str:
        """Analytics identifier, e.g. ``practice-subject`` or ``exam-year``."""
        return f"{self.mode}-{self.selection_method}"

    @property
    def mode_label(self) -> str:
        return "Practice" if self.is_practice else "Exam Simulation"

    def validation_issues(self, min_year: int = 2000) -> list[str]:
        """
        Check the selection rules.

        Returns:
            List of issues (empty if the configuration is usable)
        """
        issues = []

        if self.selection_method == "subject" and not (self.subject_slug or "").strip():
            issues.append("Subject slug is required for subject-based quizzes.")

        if self.selection_method == "year" and not self.year:
            issues.append("Year is required for year-based quizzes.")

        if self.year is not None:
            current_year = datetime.now(UTC).year
            if self.year < min_year or self.year > current_year:
                issues.append(f"Invalid year. Must be between {min_year} and {current_year}.")

        return issues


class QuestionOption(BaseModel):
    """A single labeled answer option."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Option label (A-D)")
    text: str = Field(..., min_length=1, description="Option text")


class Question(BaseModel):
    """Normalized multiple-choice question with exactly four labeled options."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Question identifier, unique within a session")
    text: str = Field(..., min_length=1, description="Question prompt")
    options: tuple[QuestionOption, ...] = Field(
        ..., min_length=4, max_length=4, description="Exactly 4 labeled options"
    )
    correct: str = Field(..., description="Label of the correct option")
    explanation: Optional[str] = Field(None, description="Explanation shown after answering")
    exam_year: Optional[int] = Field(None, description="Exam year the question comes from")
    exam_category: Optional[ExamCategory] = Field(None, description="Examination board")
    subject_slug: Optional[str] = Field(None, description="Subject slug")
    subject_name: Optional[str] = Field(None, description="Subject display name")
    topic: Optional[str] = Field(None, description="Topic within the subject")

    @model_validator(mode="after")
    def _check_labels(self) -> "Question":
        labels = [option.label for option in self.options]
        if sorted(labels) != sorted(OPTION_LABELS):
            raise ValueError(f"Options must carry labels {OPTION_LABELS} exactly once: {labels}")
        if self.correct not in labels:
            raise ValueError(f"Correct label {self.correct!r} is not among the options")
        return self

    @property
    def labels(self) -> list[str]:
        return [option.label for option in self.options]

    def is_correct(self, label: Optional[str]) -> bool:
        return label is not None and label == self.correct

    def category_label(self, selection_method: SelectionMethod) -> str:
        """Grouping key for per-category scoring."""
        if selection_method == "year":
            return self.subject_name or self.topic or UNKNOWN_CATEGORY
        return self.topic or self.subject_name or UNKNOWN_CATEGORY


class SessionState(BaseModel):
    """Mutable core of one quiz session."""

    status: SessionStatus = Field(SessionStatus.LOADING, description="Lifecycle state")
    current_index: int = Field(0, ge=0, description="Index of the current question")
    answers: dict[str, str] = Field(
        default_factory=dict, description="Question id -> most recently chosen label"
    )
    feedback_visible: bool = Field(False, description="Practice feedback shown for current")
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Session start timestamp"
    )
    completed_at: Optional[datetime] = Field(None, description="Completion timestamp")
    time_remaining: Optional[int] = Field(None, description="Exam mode remaining seconds")
    trigger: Optional[CompletionTrigger] = Field(None, description="What completed the session")
    message: Optional[str] = Field(None, description="Reason for an empty/error terminal")


class CategoryScore(BaseModel):
    """Correct/total tally for one category label."""

    correct: int = Field(0, ge=0)
    total: int = Field(0, ge=0)

    @property
    def percentage(self) -> int:
        return percentage_of(self.correct, self.total)


class QuestionReview(BaseModel):
    """Per-question review row."""

    model_config = ConfigDict(frozen=True)

    question_id: str
    user_answer: Optional[str] = None
    correct_answer: str
    is_correct: bool


class Result(BaseModel):
    """Write-once record built when a session completes."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(..., ge=1, description="Questions in the pool")
    answered: int = Field(..., ge=0, description="Questions with an answer")
    correct: int = Field(..., ge=0, description="Correct answers")
    incorrect: int = Field(..., ge=0, description="Answered but wrong")
    unanswered: int = Field(..., ge=0, description="Questions never answered")
    percentage: int = Field(..., ge=0, le=100, description="Rounded correct / total")
    passed: bool = Field(..., description="Whether the pass mark was reached")
    elapsed_seconds: int = Field(..., ge=0, description="Wall-clock seconds from start")
    time_remaining: Optional[int] = Field(None, description="Seconds left when completed")
    trigger: CompletionTrigger = Field(..., description="Manual submit or timer expiry")
    completed_at: datetime = Field(..., description="Completion timestamp")
    breakdown: dict[str, CategoryScore] = Field(
        default_factory=dict, description="Category label -> correct/total"
    )
    review: tuple[QuestionReview, ...] = Field(default=(), description="Per-question rows")
    questions: tuple[Question, ...] = Field(..., description="The session pool, in order")
    answers: dict[str, str] = Field(default_factory=dict, description="Final answer map")
    config: SelectionConfig = Field(..., description="Selection the session was built from")


class AttemptSummary(BaseModel):
    """Result-derived record handed to the analytics sink."""

    user_id: Optional[str] = Field(None, description="Authenticated user, when known")
    quiz_mode: Literal["PRACTICE", "MOCK_EXAM"] = Field(..., description="Attempt mode")
    quiz_mode_identifier: str = Field(..., description="e.g. exam-year")
    exam_type: ExamCategory
    exam_year: Optional[int] = None
    subject_slug: Optional[str] = None
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    score_percentage: float
    time_taken_seconds: int
    questions_data: list[dict[str, object]] = Field(default_factory=list)
    completed_at: datetime


def percentage_of(part: int, whole: int) -> int:
    """Half-up rounded integer percentage."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)
