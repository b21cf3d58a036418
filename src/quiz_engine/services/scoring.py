"""
Scoring and result building.
Pure functions of the finished session state, the pool, and the selection.
"""

import logging
from datetime import UTC, datetime
from typing import Optional

from quiz_engine.domain.models import (
    AttemptSummary,
    CategoryScore,
    CompletionTrigger,
    Question,
    QuestionReview,
    Result,
    SelectionConfig,
    SessionState,
    percentage_of,
)

logger = logging.getLogger(__name__)


def tally(questions: tuple[Question, ...], answers: dict[str, str]) -> tuple[int, int, int]:
    """Return (correct, incorrect, unanswered) counts."""
    correct = incorrect = unanswered = 0
    for question in questions:
        label = answers.get(question.id)
        if label is None:
            unanswered += 1
        elif question.is_correct(label):
            correct += 1
        else:
            incorrect += 1
    return correct, incorrect, unanswered


def category_breakdown(
    questions: tuple[Question, ...], answers: dict[str, str], config: SelectionConfig
) -> dict[str, CategoryScore]:
    """Group questions by category label; each question lands in exactly one bucket."""
    breakdown: dict[str, CategoryScore] = {}
    for question in questions:
        label = question.category_label(config.selection_method)
        bucket = breakdown.setdefault(label, CategoryScore())
        bucket.total += 1
        if question.is_correct(answers.get(question.id)):
            bucket.correct += 1
    return breakdown


def build_result(
    state: SessionState,
    questions: tuple[Question, ...],
    config: SelectionConfig,
    pass_mark: int = 50,
    trigger: Optional[CompletionTrigger] = None,
    completed_at: Optional[datetime] = None,
) -> Result:
    """
    Build the immutable result record for a finished session.

    Percentage is correct / total (unanswered questions count as not correct),
    rounded half-up to an integer.
    """
    if not questions:
        raise ValueError("Cannot score a session without questions")

    answers = {
        question.id: state.answers[question.id]
        for question in questions
        if question.id in state.answers
    }
    correct, incorrect, unanswered = tally(questions, answers)
    total = len(questions)
    percentage = percentage_of(correct, total)

    finished_at = completed_at or state.completed_at or datetime.now(UTC)
    elapsed = max(0, int((finished_at - state.started_at).total_seconds()))

    review = tuple(
        QuestionReview(
            question_id=question.id,
            user_answer=answers.get(question.id),
            correct_answer=question.correct,
            is_correct=question.is_correct(answers.get(question.id)),
        )
        for question in questions
    )

    result = Result(
        total=total,
        answered=correct + incorrect,
        correct=correct,
        incorrect=incorrect,
        unanswered=unanswered,
        percentage=percentage,
        passed=percentage >= pass_mark,
        elapsed_seconds=elapsed,
        time_remaining=state.time_remaining,
        trigger=trigger or state.trigger or "manual",
        completed_at=finished_at,
        breakdown=category_breakdown(questions, answers, config),
        review=review,
        questions=tuple(questions),
        answers=answers,
        config=config,
    )

    logger.debug(
        f"Scored session: {correct}/{total} correct, {unanswered} unanswered, {percentage}%"
    )
    return result


def summarize_attempt(result: Result, user_id: Optional[str] = None) -> AttemptSummary:
    """Derive the analytics record persisted for a finished attempt."""
    config = result.config
    return AttemptSummary(
        user_id=user_id,
        quiz_mode="PRACTICE" if config.is_practice else "MOCK_EXAM",
        quiz_mode_identifier=config.quiz_mode_identifier,
        exam_type=config.exam_category,
        exam_year=config.year,
        subject_slug=config.subject_slug if config.selection_method == "subject" else None,
        total_questions=result.total,
        correct_answers=result.correct,
        incorrect_answers=result.total - result.correct,
        score_percentage=round(result.correct / result.total * 100, 2),
        time_taken_seconds=result.elapsed_seconds,
        questions_data=[row.model_dump() for row in result.review],
        completed_at=result.completed_at,
    )
