"""
Services package for Exam Quiz Engine.
Contains pool assembly, timer, session state machine and scoring logic.
"""

# Consumers should import concrete services directly, e.g.:
#   from quiz_engine.services.session_engine import QuizSession
# rather than importing from the package root.

__all__ = [
    # This list is informational only; we avoid importing the symbols eagerly.
    "PoolAssembler",
    "TimerService",
    "TimerHandle",
    "QuizSession",
    "SessionManager",
    "build_result",
    "summarize_attempt",
    "normalize_records",
]
