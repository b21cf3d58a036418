"""
Hosted data store adapters over the PostgREST HTTP interface.
Implements the question store, duration resolver and result sink ports with httpx.
"""

import logging
from typing import Any, Optional

import httpx

from quiz_engine.core.config import Settings
from quiz_engine.domain.models import AttemptSummary
from quiz_engine.repositories.memory_repository import lookup_chain

logger = logging.getLogger(__name__)

QUESTION_SELECT = "*,topics!inner(name,subjects!inner(slug,name))"


class PostgrestClient:
    """Thin async client for the hosted store's REST endpoint."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not settings.question_store_url:
            raise ValueError("question_store_url is required for the REST store")

        key = settings.question_store_key or ""
        headers = {"apikey": key, "Authorization": f"Bearer {key}"} if key else {}
        self._client = httpx.AsyncClient(
            base_url=f"{settings.question_store_url.rstrip('/')}/rest/v1",
            headers=headers,
            timeout=settings.question_store_timeout,
            transport=transport,
        )

    async def select(self, table: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        response = await self._client.get(f"/{table}", params=params)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, list):
            raise ValueError(f"Unexpected payload from {table}: {type(data).__name__}")
        return data

    async def insert(self, table: str, row: dict[str, Any]) -> None:
        response = await self._client.post(
            f"/{table}", json=row, headers={"Prefer": "return=minimal"}
        )
        response.raise_for_status()

    async def ping(self) -> bool:
        try:
            response = await self._client.get("/")
            return response.status_code < 400
        except httpx.HTTPError as e:
            logger.error(f"Question store ping failed: {e}")
            return False

    async def aclose(self) -> None:
        await self._client.aclose()


class RestQuestionStore:
    """Question store backed by the ``questions``/``topics``/``subjects`` tables."""

    def __init__(self, client: PostgrestClient):
        self.client = client

    async def fetch_questions(
        self,
        subject_slug: str,
        year: Optional[int] = None,
        exam_category: Optional[str] = None,
        limit: int = 60,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "select": QUESTION_SELECT,
            "topics.subjects.slug": f"eq.{subject_slug}",
            "is_active": "eq.true",
            "order": "created_at.desc",
            "limit": str(limit),
        }
        if year is not None:
            params["exam_year"] = f"eq.{year}"
        if exam_category:
            params["exam_type"] = f"eq.{exam_category}"

        rows = await self.client.select("questions", params)
        logger.debug(f"Fetched {len(rows)} questions for subject {subject_slug}")
        return rows

    async def list_subjects(self, exam_category: str) -> list[str]:
        rows = await self.client.select(
            "subjects",
            {
                "select": "slug",
                "is_active": "eq.true",
                "exam_type": f"eq.{exam_category}",
                "order": "name.asc",
            },
        )
        return [row["slug"] for row in rows if row.get("slug")]

    async def health_check(self) -> bool:
        return await self.client.ping()


class RestDurationResolver:
    """Reads ``timer_configurations`` most-specific-first, then falls back to defaults."""

    def __init__(self, client: PostgrestClient, settings: Settings):
        self.client = client
        self.defaults = dict(settings.default_durations)

    async def resolve_duration(
        self,
        exam_category: str,
        subject_slug: Optional[str] = None,
        year: Optional[int] = None,
    ) -> int:
        for category, subject, exam_year in lookup_chain(exam_category, subject_slug, year):
            rows = await self.client.select(
                "timer_configurations",
                {
                    "select": "duration_seconds",
                    "exam_type": f"eq.{category}",
                    "subject_slug": f"eq.{subject}" if subject else "is.null",
                    "year": f"eq.{exam_year}" if exam_year else "is.null",
                    "limit": "1",
                },
            )
            if rows:
                return int(rows[0]["duration_seconds"])

        if exam_category not in self.defaults:
            raise LookupError(f"No duration configured for exam category {exam_category}")
        logger.info(f"No timer configuration for {exam_category}, using default")
        return self.defaults[exam_category]


class RestAttemptSink:
    """Inserts attempt summaries into ``quiz_attempts``."""

    def __init__(self, client: PostgrestClient):
        self.client = client

    async def persist_attempt(self, summary: AttemptSummary) -> None:
        row = {
            "user_id": summary.user_id,
            "quiz_mode": summary.quiz_mode,
            "total_questions": summary.total_questions,
            "correct_answers": summary.correct_answers,
            "incorrect_answers": summary.incorrect_answers,
            "score_percentage": summary.score_percentage,
            "time_taken_seconds": summary.time_taken_seconds,
            "exam_year": summary.exam_year,
            "questions_data": summary.questions_data,
            "completed_at": summary.completed_at.isoformat(),
        }
        await self.client.insert("quiz_attempts", row)
        logger.info(f"Persisted {summary.quiz_mode_identifier} attempt")
