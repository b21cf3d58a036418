import asyncio
import random
from typing import Any, Optional

import pytest

from quiz_engine.core.config import Settings
from quiz_engine.domain.models import SelectionConfig
from quiz_engine.repositories.memory_repository import (
    InMemoryAttemptSink,
    InMemoryQuestionStore,
    StaticDurationResolver,
)
from quiz_engine.services.pool_assembler import PoolAssembler
from quiz_engine.services.session_engine import QuizSession
from quiz_engine.services.timer_service import TimerService


def make_record(
    record_id: Any,
    subject: str = "mathematics",
    correct: Any = "A",
    year: Optional[int] = 2020,
    exam_type: Optional[str] = "JAMB",
    topic: Optional[str] = "Algebra",
    **overrides: Any,
) -> dict[str, Any]:
    """Raw question row shaped like the hosted store's ``questions`` join."""
    record = {
        "id": record_id,
        "question_text": f"Question {record_id}?",
        "option_a": "alpha",
        "option_b": "beta",
        "option_c": "gamma",
        "option_d": "delta",
        "correct_answer": correct,
        "explanation": f"Because of {record_id}.",
        "exam_year": year,
        "exam_type": exam_type,
        "subject_slug": subject,
        "topics": {"name": topic, "subjects": {"slug": subject, "name": subject.title()}},
    }
    record.update(overrides)
    return record


def make_records(count: int, prefix: str = "q", **kwargs: Any) -> list[dict[str, Any]]:
    return [make_record(f"{prefix}{i}", **kwargs) for i in range(count)]


async def instant_sleep(_delay: float) -> None:
    """Timer sleep that only yields to the loop, so one tick per scheduling round."""
    await asyncio.sleep(0)


async def run_until(predicate, max_rounds: int = 100_000) -> None:
    for _ in range(max_rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def subject_config(mode: str = "practice", subject: str = "mathematics", **kwargs: Any) -> SelectionConfig:
    return SelectionConfig(
        exam_category=kwargs.pop("exam_category", "JAMB"),
        mode=mode,
        selection_method="subject",
        subject_slug=subject,
        **kwargs,
    )


def year_config(year: int = 2020, mode: str = "practice", **kwargs: Any) -> SelectionConfig:
    return SelectionConfig(
        exam_category=kwargs.pop("exam_category", "JAMB"),
        mode=mode,
        selection_method="year",
        year=year,
        **kwargs,
    )


async def start_session(
    config: SelectionConfig,
    settings: Settings,
    store: InMemoryQuestionStore,
    resolver: Any = None,
    sink: Any = None,
) -> QuizSession:
    session = QuizSession(
        config,
        settings,
        timer_service=TimerService(interval=settings.timer_tick_seconds, sleep=instant_sleep),
        result_sink=sink,
        user_id="user-1",
    )
    await session.load(PoolAssembler(store, settings, rng=random.Random(7)), resolver)
    return session


@pytest.fixture
def settings() -> Settings:
    return Settings(question_store_url=None, question_seed_path=None, _env_file=None)


@pytest.fixture
def store() -> InMemoryQuestionStore:
    return InMemoryQuestionStore(make_records(20))


@pytest.fixture
def resolver(settings: Settings) -> StaticDurationResolver:
    return StaticDurationResolver(settings)


@pytest.fixture
def sink() -> InMemoryAttemptSink:
    return InMemoryAttemptSink()
