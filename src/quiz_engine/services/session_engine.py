"""
Quiz session state machine.

A session moves loading -> active -> completed, or ends in the empty, error or
cancelled terminals. Practice and exam differ only in the rules object that
guards each intent; every intent issued outside ``active`` is an ignored no-op.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Optional

from quiz_engine.core.config import Settings
from quiz_engine.core.observability import get_observability_service
from quiz_engine.domain.exceptions import (
    ConfigurationError,
    EmptyPoolCondition,
    PoolAssemblyError,
    QuizEngineError,
    TimerInitializationError,
)
from quiz_engine.domain.models import (
    OPTION_LABELS,
    AttemptSummary,
    CompletionTrigger,
    Direction,
    Question,
    Result,
    SelectionConfig,
    SessionState,
    SessionStatus,
)
from quiz_engine.domain.ports import DurationResolver, ResultSink
from quiz_engine.services.pool_assembler import PoolAssembler
from quiz_engine.services.scoring import build_result, summarize_attempt
from quiz_engine.services.timer_service import TimerHandle, TimerService

logger = logging.getLogger(__name__)

ResultListener = Callable[[Result], None]


class ModeRules:
    """Intent guards shared by both modes; subclasses override what differs."""

    shows_feedback = False

    def can_select(self, session: "QuizSession", question: Question) -> bool:
        return True

    def can_advance(self, session: "QuizSession", direction: Direction) -> bool:
        return True

    def can_submit(self, session: "QuizSession") -> bool:
        return True


class PracticeRules(ModeRules):
    """Commit on first pick, answer before moving on, finish after the last question."""

    shows_feedback = True

    def can_select(self, session: "QuizSession", question: Question) -> bool:
        if question.id != session.current_question.id:
            return False
        return question.id not in session.state.answers

    def can_advance(self, session: "QuizSession", direction: Direction) -> bool:
        if direction == "previous":
            return True
        return session.current_question.id in session.state.answers

    def can_submit(self, session: "QuizSession") -> bool:
        return session.is_last_question and session.current_question.id in session.state.answers


class ExamRules(ModeRules):
    """Blind, freely navigable; answers can change until the session ends."""

    def __init__(self, allow_early_submit: bool = True):
        self.allow_early_submit = allow_early_submit

    def can_submit(self, session: "QuizSession") -> bool:
        if self.allow_early_submit:
            return True
        return session.state.time_remaining == 0


class QuizSession:
    """One user's run from pool assembly to the result record."""

    def __init__(
        self,
        config: SelectionConfig,
        settings: Settings,
        timer_service: Optional[TimerService] = None,
        result_sink: Optional[ResultSink] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.config = config
        self.settings = settings
        self.user_id = user_id
        self.timer_service = timer_service or TimerService(interval=settings.timer_tick_seconds)
        self.result_sink = result_sink
        self.rules: ModeRules = (
            PracticeRules() if config.is_practice else ExamRules(settings.allow_early_submit)
        )
        self.observability = get_observability_service()

        self._clock = clock or (lambda: datetime.now(UTC))
        self.state = SessionState(started_at=self._clock())
        self.last_activity = self.state.started_at
        self.questions: tuple[Question, ...] = ()
        self.result: Optional[Result] = None
        self.error: Optional[QuizEngineError] = None
        self.timer: Optional[TimerHandle] = None

        self._by_id: dict[str, Question] = {}
        self._listeners: list[ResultListener] = []
        self._pending_persists: set[asyncio.Task] = set()

    # --- Lifecycle ---

    async def load(
        self,
        assembler: PoolAssembler,
        duration_resolver: Optional[DurationResolver] = None,
    ) -> SessionStatus:
        """
        Assemble the pool and, for exam sessions, start the countdown.

        Returns:
            The status the session settled in (active, empty, error or cancelled)

        Raises:
            ConfigurationError: the selection is malformed; no store call was made
        """
        if self.state.status is not SessionStatus.LOADING:
            return self.state.status

        try:
            questions = await assembler.assemble(self.config)
        except ConfigurationError as e:
            self._end(SessionStatus.ERROR, e)
            raise
        except EmptyPoolCondition as e:
            return self._end(SessionStatus.EMPTY, e)
        except PoolAssemblyError as e:
            return self._end(SessionStatus.ERROR, e)

        if self.state.status is not SessionStatus.LOADING:
            return self.state.status

        duration: Optional[int] = None
        if self.config.is_exam:
            if duration_resolver is None:
                return self._end(
                    SessionStatus.ERROR,
                    TimerInitializationError("No duration resolver configured for exam sessions"),
                )
            # Only subject sessions narrow the duration lookup
            subject_slug = self.config.subject_slug if self.config.selection_method == "subject" else None
            try:
                duration = await self.timer_service.resolve_duration(
                    duration_resolver,
                    self.config.exam_category,
                    subject_slug,
                    self.config.year,
                )
            except TimerInitializationError as e:
                return self._end(SessionStatus.ERROR, e)

            if self.state.status is not SessionStatus.LOADING:
                return self.state.status

        self.questions = questions
        self._by_id = {question.id: question for question in questions}
        self.state.status = SessionStatus.ACTIVE
        self.state.current_index = 0
        self.state.started_at = self._clock()
        self.last_activity = self.state.started_at
        self.state.time_remaining = duration

        if duration is not None:
            self.timer = self.timer_service.start(duration, self._on_tick, self._on_expire)

        self.observability.record_session_started(self.config.mode)
        logger.info(
            f"Session {self.session_id} active: {len(questions)} questions, "
            f"mode={self.config.mode}, duration={duration}"
        )
        return self.state.status

    def cancel(self) -> bool:
        """Abandon the session (user navigated away); releases the timer."""
        if self.state.status not in (SessionStatus.LOADING, SessionStatus.ACTIVE):
            return False
        self._release_timer()
        self.state.status = SessionStatus.CANCELLED
        self.observability.record_session_ended(SessionStatus.CANCELLED.value)
        logger.info(f"Session {self.session_id} cancelled at question {self.state.current_index}")
        return True

    # --- Intents ---

    def select_answer(self, question_id: str, label: str) -> bool:
        """Record an answer for a question; returns whether the intent took effect."""
        if not self.is_active:
            return self._ignored("select_answer")
        self._touch()

        question = self._by_id.get(question_id)
        label = (label or "").strip().upper()
        if question is None or label not in question.labels:
            return self._ignored("select_answer", f"unknown question or label {label!r}")

        if not self.rules.can_select(self, question):
            return self._ignored("select_answer", "question is locked")

        self.state.answers[question.id] = label
        if self.rules.shows_feedback:
            self.state.feedback_visible = True

        logger.debug(f"Session {self.session_id}: {question.id} -> {label}")
        return True

    def advance(self, direction: Direction) -> bool:
        """Move one question forward or back, clamped to the pool."""
        if not self.is_active:
            return self._ignored("advance")
        self._touch()

        step = 1 if direction == "next" else -1
        target = self.state.current_index + step
        if target < 0 or target >= len(self.questions):
            return self._ignored("advance", "out of bounds")

        if not self.rules.can_advance(self, direction):
            return self._ignored("advance", "current question must be answered first")

        self.state.current_index = target
        self.state.feedback_visible = (
            self.rules.shows_feedback and self.questions[target].id in self.state.answers
        )
        return True

    def submit(self) -> bool:
        """Finish the session on the user's request."""
        if not self.is_active:
            return self._ignored("submit")
        self._touch()
        if not self.rules.can_submit(self):
            return self._ignored("submit", "submission not allowed yet")
        self._complete("manual")
        return True

    def auto_submit(self) -> bool:
        """Finish the session because time ran out; idempotent."""
        if not self.is_active:
            return self._ignored("auto_submit")
        self._complete("timer")
        return True

    def handle_key(self, key: str) -> bool:
        """Map a keyboard key onto the intents above."""
        if not self.is_active:
            return self._ignored("handle_key")
        self._touch()

        if self.config.is_practice and self.state.feedback_visible:
            if key == "Enter":
                return self._advance_or_submit()
            return False

        if len(key) == 1 and key.upper() in OPTION_LABELS:
            return self.select_answer(self.current_question.id, key.upper())
        if key == "ArrowLeft":
            return self.advance("previous")
        if key == "ArrowRight":
            return self.advance("next")
        if key == "Enter" and self.config.is_exam:
            return self._advance_or_submit()
        return False

    # --- Result handoff ---

    def add_result_listener(self, listener: ResultListener) -> None:
        """Register a consumer that receives the result once, on completion."""
        if self.result is not None:
            listener(self.result)
            return
        self._listeners.append(listener)

    async def wait_persisted(self) -> None:
        """Wait for outstanding attempt persistence (never raises)."""
        if self._pending_persists:
            await asyncio.gather(*list(self._pending_persists))

    # --- Views ---

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def is_active(self) -> bool:
        return self.state.status is SessionStatus.ACTIVE

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.state.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.state.current_index == len(self.questions) - 1

    def is_idle(self, ttl_seconds: float) -> bool:
        """Active, untimed and without an intent for longer than ``ttl_seconds``."""
        if not self.is_active or (self.timer is not None and self.timer.is_running):
            return False
        return (self._clock() - self.last_activity).total_seconds() > ttl_seconds

    # --- Internals ---

    def _advance_or_submit(self) -> bool:
        if self.is_last_question:
            return self.submit()
        return self.advance("next")

    def _touch(self) -> None:
        self.last_activity = self._clock()

    def _on_tick(self, remaining: int) -> None:
        if not self.is_active:
            logger.warning(f"Session {self.session_id}: ignoring late timer tick ({remaining}s)")
            return
        self.state.time_remaining = remaining

    def _on_expire(self) -> None:
        if not self.is_active:
            logger.warning(f"Session {self.session_id}: ignoring late timer expiry")
            return
        self.state.time_remaining = 0
        self.auto_submit()

    def _complete(self, trigger: CompletionTrigger) -> None:
        self._release_timer()
        self.state.status = SessionStatus.COMPLETED
        self.state.feedback_visible = False
        self.state.trigger = trigger
        self.state.completed_at = self._clock()

        self.result = build_result(
            self.state,
            self.questions,
            self.config,
            pass_mark=self.settings.pass_mark_percentage,
            trigger=trigger,
            completed_at=self.state.completed_at,
        )
        self.observability.record_session_completed(self.config.mode, trigger)
        logger.info(
            f"Session {self.session_id} completed by {trigger}: "
            f"{self.result.correct}/{self.result.total} ({self.result.percentage}%)"
        )

        for listener in self._listeners:
            try:
                listener(self.result)
            except Exception as e:
                logger.error(f"Result listener failed for session {self.session_id}: {e}")
        self._listeners.clear()

        self._schedule_persist(summarize_attempt(self.result, user_id=self.user_id))

    def _schedule_persist(self, summary: AttemptSummary) -> None:
        if self.result_sink is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"Session {self.session_id}: no event loop, attempt not persisted")
            return
        task = loop.create_task(self._persist(summary))
        self._pending_persists.add(task)
        task.add_done_callback(self._pending_persists.discard)

    async def _persist(self, summary: AttemptSummary) -> None:
        try:
            await self.result_sink.persist_attempt(summary)
            logger.debug(f"Session {self.session_id}: attempt persisted")
        except Exception as e:
            self.observability.record_sink_failure()
            logger.error(f"Failed to persist attempt for session {self.session_id}: {e}")

    def _release_timer(self) -> None:
        if self.timer is not None:
            self.timer_service.stop(self.timer)

    def _end(self, status: SessionStatus, error: QuizEngineError) -> SessionStatus:
        if self.state.status is not SessionStatus.LOADING:
            return self.state.status
        self.error = error
        self.state.status = status
        self.state.message = str(error)
        self.observability.record_session_ended(status.value)
        if status is SessionStatus.EMPTY:
            logger.warning(f"Session {self.session_id} has no questions: {error}")
        else:
            logger.error(f"Session {self.session_id} failed to start: {error}")
        return status

    def _ignored(self, intent: str, reason: str = "session not active") -> bool:
        logger.debug(f"Session {self.session_id}: {intent} ignored ({reason})")
        return False
