"""
Exam Quiz Engine Application Package.
Session engine for practice and timed exam sessions with layered architecture.
"""

__version__ = "1.0.0"
__app_name__ = "Exam Quiz Engine"

# Package metadata
__all__ = ["__version__", "__app_name__"]
