import asyncio

import pytest
from conftest import make_records, run_until, start_session, subject_config, year_config

from quiz_engine.core.config import Settings
from quiz_engine.domain.exceptions import (
    ConfigurationError,
    PoolAssemblyError,
    TimerInitializationError,
)
from quiz_engine.domain.models import SessionStatus
from quiz_engine.repositories.memory_repository import InMemoryQuestionStore, StaticDurationResolver
from quiz_engine.services.pool_assembler import PoolAssembler
from quiz_engine.services.session_engine import QuizSession


class BrokenResolver:
    async def resolve_duration(self, exam_category, subject_slug=None, year=None):
        raise ConnectionError("timer_configurations unreachable")


class FailingSink:
    def __init__(self):
        self.calls = 0

    async def persist_attempt(self, summary):
        self.calls += 1
        raise RuntimeError("insert rejected")


class DownStore(InMemoryQuestionStore):
    async def fetch_questions(self, subject_slug, year=None, exam_category=None, limit=60):
        raise ConnectionError("store down")


# --- Loading ---


async def test_practice_session_starts_active(settings, store) -> None:
    session = await start_session(subject_config(), settings, store)

    assert session.status is SessionStatus.ACTIVE
    assert len(session.questions) == 20
    assert session.state.current_index == 0
    assert session.state.answers == {}
    assert session.state.time_remaining is None
    assert session.timer is None


async def test_exam_session_starts_with_resolved_duration(settings, store, resolver) -> None:
    session = await start_session(subject_config(mode="exam"), settings, store, resolver)

    assert session.status is SessionStatus.ACTIVE
    assert session.state.time_remaining == 2100
    assert session.timer is not None
    session.cancel()


async def test_empty_pool_ends_in_empty(settings, store) -> None:
    session = await start_session(subject_config(subject="biology"), settings, store)

    assert session.status is SessionStatus.EMPTY
    assert session.state.message
    assert session.error.retryable is False


async def test_store_failure_ends_in_error(settings) -> None:
    session = await start_session(subject_config(), settings, DownStore())

    assert session.status is SessionStatus.ERROR
    assert isinstance(session.error, PoolAssemblyError)
    assert session.error.retryable is True


async def test_bad_config_raises_and_ends_in_error(settings, store) -> None:
    with pytest.raises(ConfigurationError):
        await start_session(year_config(1990), settings, store)


async def test_duration_failure_ends_exam_in_error(settings, store) -> None:
    session = await start_session(subject_config(mode="exam"), settings, store, BrokenResolver())

    assert session.status is SessionStatus.ERROR
    assert isinstance(session.error, TimerInitializationError)
    assert session.timer is None


async def test_duration_lookup_uses_subject_only_for_subject_sessions(settings, store) -> None:
    class RecordingResolver(StaticDurationResolver):
        def __init__(self, settings):
            super().__init__(settings)
            self.calls: list[tuple] = []

        async def resolve_duration(self, exam_category, subject_slug=None, year=None):
            self.calls.append((exam_category, subject_slug, year))
            return await super().resolve_duration(exam_category, subject_slug, year)

    resolver = RecordingResolver(settings)
    resolver.set_duration("JAMB", 900, subject_slug="mathematics")
    store.register_subject("JAMB", "mathematics")

    by_year = await start_session(
        year_config(2020, mode="exam", subject_slug="mathematics"), settings, store, resolver
    )
    by_subject = await start_session(subject_config(mode="exam"), settings, store, resolver)

    assert resolver.calls == [("JAMB", None, 2020), ("JAMB", "mathematics", None)]
    assert by_year.timer.duration == 2100
    assert by_subject.timer.duration == 900
    by_year.cancel()
    by_subject.cancel()


async def test_by_year_session_with_one_empty_subject(settings) -> None:
    store = InMemoryQuestionStore(
        make_records(3, prefix="m", subject="mathematics") + make_records(4, prefix="e", subject="english")
    )
    store.register_subject("JAMB", "physics")

    session = await start_session(year_config(2020), settings, store)

    assert session.status is SessionStatus.ACTIVE
    assert len(session.questions) == 7


async def test_cancel_during_load_wins(settings, store) -> None:
    gate = asyncio.Event()

    class SlowStore(InMemoryQuestionStore):
        async def fetch_questions(self, *args, **kwargs):
            await gate.wait()
            return await store.fetch_questions(*args, **kwargs)

    session = QuizSession(subject_config(), settings)
    loading = asyncio.create_task(session.load(PoolAssembler(SlowStore(), settings)))
    await asyncio.sleep(0)

    assert session.cancel() is True
    gate.set()

    assert await loading is SessionStatus.CANCELLED
    assert session.questions == ()


# --- Practice mode ---


async def test_practice_answer_locks_question(settings, store) -> None:
    session = await start_session(subject_config(), settings, store)
    question = session.current_question

    assert session.select_answer(question.id, "C") is True
    assert session.state.feedback_visible is True
    assert session.select_answer(question.id, "D") is False
    assert session.state.answers == {question.id: "C"}


async def test_practice_only_current_question_can_be_answered(settings, store) -> None:
    session = await start_session(subject_config(), settings, store)

    assert session.select_answer(session.questions[1].id, "A") is False
    assert session.select_answer("no-such-id", "A") is False
    assert session.select_answer(session.current_question.id, "E") is False
    assert session.state.answers == {}


async def test_practice_next_requires_answer(settings, store) -> None:
    session = await start_session(subject_config(), settings, store)

    assert session.advance("previous") is False
    assert session.advance("next") is False
    assert session.state.current_index == 0

    session.select_answer(session.current_question.id, "A")
    assert session.advance("next") is True
    assert session.state.current_index == 1
    assert session.state.feedback_visible is False

    assert session.advance("previous") is True
    assert session.state.current_index == 0
    assert session.state.feedback_visible is True


async def test_practice_submit_only_after_last_answer(settings) -> None:
    store = InMemoryQuestionStore(make_records(2))
    session = await start_session(subject_config(), settings, store)

    assert session.submit() is False
    session.select_answer(session.current_question.id, "A")
    session.advance("next")
    assert session.submit() is False

    session.select_answer(session.current_question.id, "B")
    assert session.submit() is True
    assert session.status is SessionStatus.COMPLETED
    assert session.result.trigger == "manual"
    assert session.result.answered == 2


# --- Exam mode ---


async def test_exam_navigation_is_free_and_answers_change(settings, store, resolver) -> None:
    session = await start_session(subject_config(mode="exam"), settings, store, resolver)
    first, second = session.questions[0], session.questions[1]

    assert session.advance("next") is True
    assert session.advance("next") is True
    assert session.advance("previous") is True
    assert session.state.current_index == 1

    assert session.select_answer(first.id, "A") is True
    assert session.select_answer(first.id, "B") is True
    assert session.select_answer(second.id, "D") is True
    assert session.state.answers == {first.id: "B", second.id: "D"}
    assert session.state.feedback_visible is False
    session.cancel()


async def test_exam_early_submit(settings, store, resolver) -> None:
    session = await start_session(subject_config(mode="exam"), settings, store, resolver)

    assert session.submit() is True
    assert session.result.trigger == "manual"
    assert session.result.unanswered == 20
    assert session.result.time_remaining == 2100
    assert session.timer.is_stopped


async def test_exam_early_submit_can_be_disabled(store) -> None:
    settings = Settings(allow_early_submit=False, _env_file=None)

    session = await start_session(
        subject_config(mode="exam"), settings, store, StaticDurationResolver(settings)
    )

    assert session.submit() is False
    assert session.status is SessionStatus.ACTIVE
    session.cancel()


async def test_exam_timer_expiry_auto_submits(settings, store, resolver) -> None:
    session = await start_session(subject_config(mode="exam"), settings, store, resolver)
    session.select_answer(session.current_question.id, session.current_question.correct)
    seen: list[int] = []
    session.add_result_listener(lambda result: seen.append(result.time_remaining))

    await run_until(lambda: session.status is SessionStatus.COMPLETED)

    assert session.state.time_remaining == 0
    assert session.result.trigger == "timer"
    assert session.result.time_remaining == 0
    assert session.result.correct == 1
    assert seen == [0]
    assert session.timer.expired


async def test_auto_submit_is_idempotent(settings, store, resolver) -> None:
    session = await start_session(subject_config(mode="exam"), settings, store, resolver)

    assert session.auto_submit() is True
    result = session.result
    assert session.auto_submit() is False
    assert session.submit() is False
    assert session.result is result


async def test_intents_after_completion_are_ignored(settings, store, resolver) -> None:
    session = await start_session(subject_config(mode="exam"), settings, store, resolver)
    session.submit()

    assert session.select_answer(session.current_question.id, "A") is False
    assert session.advance("next") is False
    assert session.handle_key("B") is False
    assert session.result.answers == {}


async def test_cancel_stops_timer(settings, store, resolver) -> None:
    session = await start_session(subject_config(mode="exam"), settings, store, resolver)
    await run_until(lambda: session.state.time_remaining < 2098)

    assert session.cancel() is True
    remaining = session.state.time_remaining
    for _ in range(50):
        await asyncio.sleep(0)

    assert session.status is SessionStatus.CANCELLED
    assert session.timer.is_stopped
    assert session.state.time_remaining == remaining
    assert session.result is None
    assert session.cancel() is False


# --- Keyboard ---


async def test_exam_keyboard_mapping(settings) -> None:
    store = InMemoryQuestionStore(make_records(3))

    session = await start_session(
        subject_config(mode="exam"), settings, store, StaticDurationResolver(settings)
    )

    assert session.handle_key("b") is True
    assert session.state.answers == {session.questions[0].id: "B"}
    assert session.handle_key("ArrowRight") is True
    assert session.handle_key("ArrowLeft") is True
    assert session.handle_key("Enter") is True
    assert session.state.current_index == 1
    assert session.handle_key("x") is False
    session.handle_key("Enter")
    assert session.is_last_question
    assert session.handle_key("Enter") is True
    assert session.status is SessionStatus.COMPLETED


async def test_practice_keyboard_mapping(settings) -> None:
    store = InMemoryQuestionStore(make_records(2))
    session = await start_session(subject_config(), settings, store)
    first = session.current_question

    assert session.handle_key("Enter") is False
    assert session.handle_key("A") is True
    assert session.handle_key("B") is False
    assert session.state.answers == {first.id: "A"}
    assert session.handle_key("Enter") is True
    assert session.state.current_index == 1
    assert session.handle_key("c") is True
    assert session.handle_key("Enter") is True
    assert session.status is SessionStatus.COMPLETED


# --- Result handoff ---


async def test_result_is_persisted(settings, store, resolver, sink) -> None:
    session = await start_session(subject_config(mode="exam"), settings, store, resolver, sink)
    session.submit()
    await session.wait_persisted()

    assert len(sink.attempts) == 1
    attempt = sink.attempts[0]
    assert attempt.user_id == "user-1"
    assert attempt.quiz_mode == "MOCK_EXAM"
    assert attempt.quiz_mode_identifier == "exam-subject"
    assert attempt.total_questions == 20


async def test_sink_failure_does_not_revert_completion(settings, store) -> None:
    failing = FailingSink()
    session = await start_session(subject_config(), settings, store, sink=failing)
    for _ in range(len(session.questions)):
        session.select_answer(session.current_question.id, "A")
        session.handle_key("Enter")
    await session.wait_persisted()

    assert failing.calls == 1
    assert session.status is SessionStatus.COMPLETED
    assert session.result.correct == 20


async def test_late_listener_receives_result(settings, store, resolver) -> None:
    session = await start_session(subject_config(mode="exam"), settings, store, resolver)
    session.submit()
    received = []

    session.add_result_listener(received.append)

    assert received == [session.result]
