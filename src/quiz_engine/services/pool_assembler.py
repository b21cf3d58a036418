"""
Question pool assembly for quiz sessions.
Single retrieval path for every selection method: fetch, normalize, shuffle.
"""

import asyncio
import logging
import random
import time
from typing import Any, Optional

from quiz_engine.core.config import Settings
from quiz_engine.core.observability import get_observability_service
from quiz_engine.domain.exceptions import (
    ConfigurationError,
    EmptyPoolCondition,
    PoolAssemblyError,
)
from quiz_engine.domain.models import Question, SelectionConfig
from quiz_engine.domain.ports import QuestionStore
from quiz_engine.services.normalizer import normalize_record, normalize_records

logger = logging.getLogger(__name__)


class PoolAssembler:
    """Builds the immutable, shuffled question pool for one session."""

    def __init__(
        self,
        question_store: QuestionStore,
        settings: Settings,
        rng: Optional[random.Random] = None,
    ):
        self.question_store = question_store
        self.settings = settings
        self._rng = rng or random.Random()
        self.observability = get_observability_service()

    async def assemble(self, config: SelectionConfig) -> tuple[Question, ...]:
        """
        Assemble the pool for a selection.

        Args:
            config: Session selection configuration

        Returns:
            Non-empty tuple of questions in presentation order

        Raises:
            ConfigurationError: config is malformed (raised before any store call)
            PoolAssemblyError: store unreachable or answered with unusable data
            EmptyPoolCondition: store answered but no valid question matched
        """
        issues = config.validation_issues(min_year=self.settings.min_exam_year)
        if issues:
            raise ConfigurationError(issues)

        start_time = time.time()
        try:
            if config.selection_method == "subject":
                records = await self._fetch_by_subject(config)
            else:
                records = await self._fetch_by_year(config)
        except PoolAssemblyError:
            raise
        except Exception as e:
            logger.error(f"Question store failed for {config.quiz_mode_identifier}: {e}")
            raise PoolAssemblyError(f"Question store unavailable: {e}") from e
        finally:
            self.observability.record_pool_assembly_time(time.time() - start_time)

        questions, dropped = normalize_records(
            records, exam_year=config.year, exam_category=config.exam_category
        )
        self.observability.record_dropped_records(dropped)

        if not questions:
            if records and all(normalize_record(raw) is None for raw in records):
                logger.error(f"All {len(records)} records for {config.quiz_mode_identifier} are malformed")
                raise PoolAssemblyError("Question store returned only malformed records")
            logger.warning(
                f"No valid questions for {config.exam_category} {config.quiz_mode_identifier} "
                f"(subject={config.subject_slug}, year={config.year}, fetched={len(records)})"
            )
            raise EmptyPoolCondition("No questions are available for this selection yet.")

        self._rng.shuffle(questions)
        logger.info(f"Assembled pool of {len(questions)} questions ({dropped} dropped)")
        return tuple(questions)

    async def _fetch_by_subject(self, config: SelectionConfig) -> list[dict[str, Any]]:
        records = await self.question_store.fetch_questions(
            config.subject_slug,
            year=config.year,
            exam_category=config.exam_category,
            limit=self.settings.subject_question_limit,
        )
        return self._ensure_rows(records)

    async def _fetch_by_year(self, config: SelectionConfig) -> list[dict[str, Any]]:
        """Fan out across every subject of the exam category and concatenate."""
        subjects = await self.question_store.list_subjects(config.exam_category)
        if not subjects:
            logger.warning(f"No subjects registered for {config.exam_category}")
            return []

        results = await asyncio.gather(
            *(
                self.question_store.fetch_questions(
                    subject,
                    year=config.year,
                    exam_category=config.exam_category,
                    limit=self.settings.year_subject_question_limit,
                )
                for subject in subjects
            )
        )

        records: list[dict[str, Any]] = []
        for subject, rows in zip(subjects, results):
            rows = self._ensure_rows(rows)
            logger.debug(f"Subject {subject} contributed {len(rows)} records")
            records.extend(rows)
        return records

    def _ensure_rows(self, rows: Any) -> list[dict[str, Any]]:
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise PoolAssemblyError(f"Question store returned {type(rows).__name__}, expected list")
        return rows
