"""
In-process registry of quiz sessions.
Each session owns its state and timer; the registry only creates, finds and releases them.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from quiz_engine.core.config import Settings
from quiz_engine.core.observability import get_observability_service
from quiz_engine.domain.models import SelectionConfig
from quiz_engine.domain.ports import DurationResolver, QuestionStore, ResultSink
from quiz_engine.services.pool_assembler import PoolAssembler
from quiz_engine.services.session_engine import QuizSession
from quiz_engine.services.timer_service import TimerService

logger = logging.getLogger(__name__)


class SessionLimitExceeded(Exception):
    """Too many sessions are registered."""


class SessionManager:
    """Creates sessions from a selection and tracks them by id."""

    def __init__(
        self,
        settings: Settings,
        question_store: QuestionStore,
        duration_resolver: DurationResolver,
        result_sink: Optional[ResultSink] = None,
        timer_service: Optional[TimerService] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.assembler = PoolAssembler(question_store, settings)
        self.duration_resolver = duration_resolver
        self.result_sink = result_sink
        self.timer_service = timer_service or TimerService(interval=settings.timer_tick_seconds)
        self._clock = clock
        self.observability = get_observability_service()
        self._sessions: dict[str, QuizSession] = {}

    async def start_session(
        self, config: SelectionConfig, user_id: Optional[str] = None
    ) -> QuizSession:
        """
        Create, register and load a session.

        Raises:
            SessionLimitExceeded: when max_sessions are already registered
            ConfigurationError: the selection is malformed
        """
        if len(self._sessions) >= self.settings.max_sessions:
            self._evict_stale()
            if len(self._sessions) >= self.settings.max_sessions:
                raise SessionLimitExceeded(f"Maximum of {self.settings.max_sessions} sessions reached")

        session = QuizSession(
            config,
            self.settings,
            timer_service=self.timer_service,
            result_sink=self.result_sink,
            user_id=user_id,
            clock=self._clock,
        )
        logger.info(f"Starting session {session.session_id} ({config.quiz_mode_identifier})")

        await session.load(self.assembler, self.duration_resolver)

        self._sessions[session.session_id] = session
        self.observability.set_active_sessions(len(self._sessions))
        return session

    def get(self, session_id: str) -> Optional[QuizSession]:
        return self._sessions.get(session_id)

    def cancel(self, session_id: str) -> bool:
        """Cancel (if still running) and forget a session."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.cancel()
        self.observability.set_active_sessions(len(self._sessions))
        return True

    def shutdown(self) -> None:
        """Cancel every session; stops all running timers."""
        for session_id in list(self._sessions):
            self.cancel(session_id)
        logger.info("All sessions released")

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict_stale(self) -> None:
        """Drop finished sessions, and cancel active ones idle past the TTL."""
        ttl = self.settings.session_idle_ttl_seconds
        stale = [
            sid
            for sid, session in self._sessions.items()
            if not session.is_active or session.is_idle(ttl)
        ]
        idle = 0
        for session_id in stale:
            session = self._sessions.pop(session_id)
            if session.cancel():
                idle += 1
        if stale:
            logger.info(f"Evicted {len(stale)} sessions ({idle} idle for more than {ttl}s)")
            self.observability.set_active_sessions(len(self._sessions))
