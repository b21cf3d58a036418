"""
Domain ports (interfaces) for the Exam Quiz Engine.
The engine depends on these collaborator contracts, never on a concrete store.
"""

from abc import abstractmethod
from typing import Any, Optional, Protocol

from .models import AttemptSummary


class QuestionStore(Protocol):
    """Port for filtered question retrieval."""

    @abstractmethod
    async def fetch_questions(
        self,
        subject_slug: str,
        year: Optional[int] = None,
        exam_category: Optional[str] = None,
        limit: int = 60,
    ) -> list[dict[str, Any]]:
        """Get raw question records for a subject, optionally narrowed by year and category."""
        pass

    @abstractmethod
    async def list_subjects(self, exam_category: str) -> list[str]:
        """Get the slugs of every subject available for an exam category."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        pass


class DurationResolver(Protocol):
    """Port for exam duration lookup."""

    @abstractmethod
    async def resolve_duration(
        self,
        exam_category: str,
        subject_slug: Optional[str] = None,
        year: Optional[int] = None,
    ) -> int:
        """Get the exam duration in whole seconds."""
        pass


class ResultSink(Protocol):
    """Port for recording finished attempts (analytics)."""

    @abstractmethod
    async def persist_attempt(self, summary: AttemptSummary) -> None:
        """Persist an attempt summary."""
        pass
