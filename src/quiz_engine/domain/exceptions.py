"""
Error taxonomy for the quiz session engine.
Late timer events and intents against finished sessions are not errors and never raise.
"""


class QuizEngineError(Exception):
    """Base class for engine errors."""


class ConfigurationError(QuizEngineError):
    """Selection configuration is malformed; raised before any store call."""

    def __init__(self, issues: list[str]):
        self.issues = list(issues)
        super().__init__("; ".join(self.issues) or "Invalid selection configuration")


class PoolAssemblyError(QuizEngineError):
    """Question store unreachable or returned nothing usable. Retryable."""

    retryable = True


class EmptyPoolCondition(QuizEngineError):
    """Store was reachable but no valid question matched the selection."""

    retryable = False


class TimerInitializationError(QuizEngineError):
    """Exam duration could not be resolved; fatal for exam sessions."""

    retryable = True
