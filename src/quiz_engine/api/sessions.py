import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from quiz_engine.domain.exceptions import ConfigurationError
from quiz_engine.domain.models import Result, SessionStatus
from quiz_engine.domain.schemas import (
    AnswerRequest,
    IntentResponse,
    KeyPressRequest,
    NavigateRequest,
    OptionView,
    QuestionView,
    SessionView,
    StartSessionRequest,
)
from quiz_engine.services.session_engine import QuizSession
from quiz_engine.services.session_manager import SessionLimitExceeded, SessionManager
from quiz_engine.services.timer_service import format_time

logger = logging.getLogger(__name__)

router = APIRouter()


def get_session_manager(request: Request) -> SessionManager:
    """Dependency to get the application's session registry."""
    return request.app.state.session_manager


def _get_session(session_id: str, manager: SessionManager) -> QuizSession:
    session = manager.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


def build_session_view(session: QuizSession) -> SessionView:
    """Render a session; the answer key is only shown when the mode allows it."""
    state = session.state
    question = session.current_question
    question_view = None

    if question is not None:
        selected = state.answers.get(question.id)
        reveal = state.feedback_visible or state.status is SessionStatus.COMPLETED
        question_view = QuestionView(
            question_id=question.id,
            text=question.text,
            options=[OptionView(label=o.label, text=o.text) for o in question.options],
            selected=selected,
            correct=question.correct if reveal else None,
            is_correct=question.is_correct(selected) if reveal else None,
            explanation=question.explanation if reveal else None,
            subject=question.subject_name or question.subject_slug,
            topic=question.topic,
            exam_year=question.exam_year,
        )

    return SessionView(
        session_id=session.session_id,
        status=state.status.value,
        mode=session.config.mode,
        mode_label=session.config.mode_label,
        exam_category=session.config.exam_category,
        current_index=state.current_index,
        total_questions=len(session.questions),
        answered=len(state.answers),
        answers=dict(state.answers),
        current_question=question_view,
        feedback_visible=state.feedback_visible,
        time_remaining=state.time_remaining,
        time_display=format_time(state.time_remaining) if state.time_remaining is not None else None,
        message=state.message,
        retryable=bool(session.error is not None and getattr(session.error, "retryable", False)),
        result_available=session.result is not None,
    )


@router.post("", response_model=SessionView, status_code=201)
async def start_session(
    req: StartSessionRequest, manager: SessionManager = Depends(get_session_manager)
) -> SessionView:
    """
    Assemble a question pool for the selection and start a session.

    The returned status is ``active`` when questions were found, ``empty`` when the
    selection has no questions, or ``error`` when the store or timer could not be reached.
    """
    try:
        session = await manager.start_session(req.config, user_id=req.user_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=e.issues)
    except SessionLimitExceeded as e:
        raise HTTPException(status_code=429, detail=str(e))
    return build_session_view(session)


@router.get("/{session_id}", response_model=SessionView)
async def get_session(
    session_id: str, manager: SessionManager = Depends(get_session_manager)
) -> SessionView:
    return build_session_view(_get_session(session_id, manager))


@router.post("/{session_id}/answer", response_model=IntentResponse)
async def select_answer(
    session_id: str, req: AnswerRequest, manager: SessionManager = Depends(get_session_manager)
) -> IntentResponse:
    session = _get_session(session_id, manager)
    accepted = session.select_answer(req.question_id, req.label)
    return IntentResponse(accepted=accepted, session=build_session_view(session))


@router.post("/{session_id}/navigate", response_model=IntentResponse)
async def navigate(
    session_id: str, req: NavigateRequest, manager: SessionManager = Depends(get_session_manager)
) -> IntentResponse:
    session = _get_session(session_id, manager)
    accepted = session.advance(req.direction)
    return IntentResponse(accepted=accepted, session=build_session_view(session))


@router.post("/{session_id}/key", response_model=IntentResponse)
async def press_key(
    session_id: str, req: KeyPressRequest, manager: SessionManager = Depends(get_session_manager)
) -> IntentResponse:
    session = _get_session(session_id, manager)
    accepted = session.handle_key(req.key)
    return IntentResponse(accepted=accepted, session=build_session_view(session))


@router.post("/{session_id}/submit", response_model=IntentResponse)
async def submit(
    session_id: str, manager: SessionManager = Depends(get_session_manager)
) -> IntentResponse:
    session = _get_session(session_id, manager)
    accepted = session.submit()
    return IntentResponse(accepted=accepted, session=build_session_view(session))


@router.get("/{session_id}/result", response_model=Result)
async def get_result(
    session_id: str, manager: SessionManager = Depends(get_session_manager)
) -> Result:
    """Final result; available once the session has completed."""
    session = _get_session(session_id, manager)
    if session.result is None:
        raise HTTPException(status_code=404, detail="Session has not completed yet")
    return session.result


@router.delete("/{session_id}", status_code=204)
async def cancel_session(
    session_id: str, manager: SessionManager = Depends(get_session_manager)
) -> None:
    """Cancel a session (stopping its timer) and release it."""
    if not manager.cancel(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    logger.info(f"Session {session_id} released")
