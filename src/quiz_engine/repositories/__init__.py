"""
Repositories package for Exam Quiz Engine.
Contains collaborator adapters for questions, exam durations and attempt persistence.
"""

# Import only when needed; the REST adapters pull in an HTTP client
# from .memory_repository import InMemoryQuestionStore
# from .rest_repository import RestQuestionStore

__all__ = []
