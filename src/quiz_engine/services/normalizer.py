"""
Normalization of raw question-store records into canonical Question models.
Heterogeneous field names are mapped onto one shape; malformed records are dropped.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from quiz_engine.core.config import EXAM_CATEGORIES
from quiz_engine.domain.models import OPTION_LABELS, Question

logger = logging.getLogger(__name__)

PROMPT_FIELDS = ("question_text", "text", "question", "stem")
CORRECT_FIELDS = ("correct_answer", "correct", "answer", "correct_option")
YEAR_FIELDS = ("exam_year", "year")
CATEGORY_FIELDS = ("exam_type", "exam_category")
FLAT_OPTION_FIELDS = ("option_a", "option_b", "option_c", "option_d")


def normalize_records(
    records: list[dict[str, Any]],
    exam_year: Optional[int] = None,
    exam_category: Optional[str] = None,
) -> tuple[list[Question], int]:
    """
    Normalize raw records, honoring the session's year and category filters.

    Args:
        records: Raw rows as returned by the question store
        exam_year: Year filter; conflicting records are dropped, missing years inherit it
        exam_category: Exam category filter, same rule as the year

    Returns:
        Tuple of (valid questions in input order, number of dropped records)
    """
    questions: list[Question] = []
    seen_ids: set[str] = set()
    dropped = 0

    for raw in records:
        question = normalize_record(raw, exam_year=exam_year, exam_category=exam_category)
        if question is None or question.id in seen_ids:
            dropped += 1
            continue
        seen_ids.add(question.id)
        questions.append(question)

    if dropped:
        logger.warning(f"Dropped {dropped} of {len(records)} question records during normalization")

    return questions, dropped


def normalize_record(
    raw: dict[str, Any],
    exam_year: Optional[int] = None,
    exam_category: Optional[str] = None,
) -> Optional[Question]:
    """Map one raw record onto a Question, or return None when it is unusable."""
    if not isinstance(raw, dict):
        return None

    record_id = raw.get("id")
    if record_id is None or str(record_id).strip() == "":
        return None

    record_year = year_of(raw)
    if exam_year is not None and record_year is not None and record_year != exam_year:
        logger.debug(f"Record {record_id} year {record_year} conflicts with filter {exam_year}")
        return None

    record_category = _coerce_category(_first(raw, CATEGORY_FIELDS))
    if exam_category and record_category and record_category != exam_category:
        logger.debug(f"Record {record_id} category {record_category} conflicts with filter")
        return None

    options = _extract_options(raw)
    correct = _correct_label(_first(raw, CORRECT_FIELDS))
    subject_slug, subject_name = _extract_subject(raw)

    try:
        return Question(
            id=str(record_id),
            text=_clean_text(_first(raw, PROMPT_FIELDS)) or "",
            options=options,
            correct=correct or "",
            explanation=_clean_text(raw.get("explanation")),
            exam_year=record_year if record_year is not None else exam_year,
            exam_category=record_category or exam_category,
            subject_slug=subject_slug,
            subject_name=subject_name,
            topic=_extract_topic(raw),
        )
    except ValidationError as e:
        logger.debug(f"Record {record_id} failed validation: {e.error_count()} error(s)")
        return None


def year_of(raw: dict[str, Any]) -> Optional[int]:
    """The exam year a raw record carries, or None when absent or unreadable."""
    return _coerce_year(_first(raw, YEAR_FIELDS))


def _first(raw: dict[str, Any], fields: tuple[str, ...]) -> Any:
    for field in fields:
        value = raw.get(field)
        if value is not None and value != "":
            return value
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_year(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _coerce_category(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    category = value.strip().upper()
    return category if category in EXAM_CATEGORIES else None


def _correct_label(value: Any) -> Optional[str]:
    """Accept a letter label (any case) or a 0-3 option index."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return OPTION_LABELS[value] if 0 <= value < len(OPTION_LABELS) else None
    if isinstance(value, str):
        label = value.strip().upper()
        return label or None
    return None


def _extract_options(raw: dict[str, Any]) -> list[dict[str, Any]]:
    """Collect options as label/text pairs from any of the supported layouts."""
    if any(field in raw for field in FLAT_OPTION_FIELDS):
        return [
            {"label": label, "text": _clean_text(raw.get(field)) or ""}
            for label, field in zip(OPTION_LABELS, FLAT_OPTION_FIELDS)
        ]

    options = raw.get("options")
    if isinstance(options, dict):
        return [
            {"label": str(label).strip().upper(), "text": _clean_text(text) or ""}
            for label, text in options.items()
        ]

    if isinstance(options, list):
        pairs = []
        for position, item in enumerate(options):
            if isinstance(item, dict):
                label = item.get("key") or item.get("label") or ""
                pairs.append(
                    {"label": str(label).strip().upper(), "text": _clean_text(item.get("text")) or ""}
                )
            else:
                label = OPTION_LABELS[position] if position < len(OPTION_LABELS) else ""
                pairs.append({"label": label, "text": _clean_text(item) or ""})
        return pairs

    return []


def _extract_subject(raw: dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
    slug = _clean_text(raw.get("subject_slug"))
    name = _clean_text(raw.get("subject_name"))

    nested = raw.get("subjects")
    if not isinstance(nested, dict):
        topics = raw.get("topics")
        nested = topics.get("subjects") if isinstance(topics, dict) else None

    if isinstance(nested, dict):
        slug = slug or _clean_text(nested.get("slug"))
        name = name or _clean_text(nested.get("name"))

    return slug, name


def _extract_topic(raw: dict[str, Any]) -> Optional[str]:
    topic = raw.get("topic")
    if isinstance(topic, str) and topic.strip():
        return topic.strip()

    topic_name = _clean_text(raw.get("topic_name"))
    if topic_name:
        return topic_name

    topics = raw.get("topics")
    if isinstance(topics, dict):
        return _clean_text(topics.get("name"))
    return None
