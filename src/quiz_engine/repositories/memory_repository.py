"""
In-memory collaborators: question store, duration table and attempt sink.
Used when no hosted store is configured, and by the test suite.
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Optional

from quiz_engine.core.config import Settings
from quiz_engine.domain.models import AttemptSummary
from quiz_engine.services.normalizer import year_of

logger = logging.getLogger(__name__)


class InMemoryQuestionStore:
    """Question store over raw records held in memory."""

    def __init__(self, records: Optional[list[dict[str, Any]]] = None):
        self._records: dict[str, dict[str, Any]] = {}
        self._subjects: dict[str, set[str]] = {}
        self._records_by_filters: dict[str, list[str]] = {}
        if records:
            self.bulk_add_records(records)

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryQuestionStore":
        """Load a JSON array of raw question records."""
        with open(Path(path), encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"Expected a JSON array of question records in {path}")
        logger.info(f"Loaded {len(data)} question records from {path}")
        return cls(data)

    def register_subject(self, exam_category: str, subject_slug: str) -> None:
        """Make a subject visible to by-year fan-out even before it has questions."""
        self._subjects.setdefault(exam_category.upper(), set()).add(subject_slug)

    def bulk_add_records(self, records: list[dict[str, Any]]) -> int:
        """
        Add multiple raw records in bulk.

        Args:
            records: Raw question rows; each needs an ``id``

        Returns:
            Number of records added
        """
        added_count = 0
        for record in records:
            record_id = record.get("id")
            if record_id is None:
                logger.warning("Skipping record without id")
                continue
            if str(record_id) in self._records:
                logger.warning(f"Record {record_id} already exists, skipping")
                continue

            self._records[str(record_id)] = record
            subject = _subject_of(record)
            category = _category_of(record)
            if subject and category:
                self.register_subject(category, subject)
            added_count += 1

        # Clear filter cache
        self._records_by_filters.clear()

        logger.info(f"Added {added_count} question records")
        return added_count

    async def fetch_questions(
        self,
        subject_slug: str,
        year: Optional[int] = None,
        exam_category: Optional[str] = None,
        limit: int = 60,
    ) -> list[dict[str, Any]]:
        filters: dict[str, Any] = {"subject": subject_slug}
        if year is not None:
            filters["year"] = year
        if exam_category:
            filters["category"] = exam_category.upper()

        filter_key = self._build_filter_key(filters)
        if filter_key not in self._records_by_filters:
            self._records_by_filters[filter_key] = [
                record_id
                for record_id, record in self._records.items()
                if self._matches_filters(record, filters)
            ]

        record_ids = self._records_by_filters[filter_key][:limit]
        logger.debug(f"Found {len(record_ids)} records for {filters}")
        return [dict(self._records[record_id]) for record_id in record_ids]

    async def list_subjects(self, exam_category: str) -> list[str]:
        return sorted(self._subjects.get(exam_category.upper(), set()))

    async def health_check(self) -> bool:
        return True

    async def get_record_count(self) -> int:
        return len(self._records)

    def _build_filter_key(self, filters: dict[str, Any]) -> str:
        """Build cache key for filters."""
        filter_str = json.dumps(sorted(filters.items()), sort_keys=True)
        return hashlib.md5(filter_str.encode()).hexdigest()

    def _matches_filters(self, record: dict[str, Any], filters: dict[str, Any]) -> bool:
        for key, value in filters.items():
            if key == "subject" and _subject_of(record) != value:
                return False
            elif key == "year" and year_of(record) not in (None, value):
                return False
            elif key == "category" and _category_of(record) != value:
                return False
        return True


class StaticDurationResolver:
    """Duration table with most-specific-first lookup and per-category defaults."""

    def __init__(self, settings: Settings, entries: Optional[list[dict[str, Any]]] = None):
        self.defaults = dict(settings.default_durations)
        self._entries: dict[tuple[str, Optional[str], Optional[int]], int] = {}
        for entry in entries or []:
            self.set_duration(
                entry["exam_type"],
                entry["duration_seconds"],
                subject_slug=entry.get("subject_slug"),
                year=entry.get("year"),
            )

    def set_duration(
        self,
        exam_category: str,
        duration_seconds: int,
        subject_slug: Optional[str] = None,
        year: Optional[int] = None,
    ) -> None:
        self._entries[(exam_category.upper(), subject_slug, year)] = duration_seconds

    async def resolve_duration(
        self,
        exam_category: str,
        subject_slug: Optional[str] = None,
        year: Optional[int] = None,
    ) -> int:
        category = exam_category.upper()
        for key in lookup_chain(category, subject_slug, year):
            if key in self._entries:
                return self._entries[key]

        if category not in self.defaults:
            raise LookupError(f"No duration configured for exam category {category}")
        return self.defaults[category]


class InMemoryAttemptSink:
    """Collects attempt summaries in a list."""

    def __init__(self):
        self.attempts: list[AttemptSummary] = []

    async def persist_attempt(self, summary: AttemptSummary) -> None:
        self.attempts.append(summary)
        logger.debug(f"Recorded attempt {summary.quiz_mode_identifier}: {summary.correct_answers}")


def lookup_chain(
    exam_category: str, subject_slug: Optional[str], year: Optional[int]
) -> list[tuple[str, Optional[str], Optional[int]]]:
    """Duration keys from most to least specific."""
    chain: list[tuple[str, Optional[str], Optional[int]]] = []
    if subject_slug and year:
        chain.append((exam_category, subject_slug, year))
    if subject_slug:
        chain.append((exam_category, subject_slug, None))
    if year:
        chain.append((exam_category, None, year))
    chain.append((exam_category, None, None))
    return chain


def _subject_of(record: dict[str, Any]) -> Optional[str]:
    slug = record.get("subject_slug")
    if slug:
        return slug
    subjects = record.get("subjects")
    if isinstance(subjects, dict):
        return subjects.get("slug")
    return None


def _category_of(record: dict[str, Any]) -> Optional[str]:
    value = record.get("exam_type") or record.get("exam_category")
    return value.upper() if isinstance(value, str) else None
