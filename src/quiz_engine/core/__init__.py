"""
Core package for Exam Quiz Engine.
Contains configuration, middleware, and core utilities.
"""

from .config import Settings, get_settings, validate_settings

__all__ = [
    "Settings",
    "get_settings",
    "validate_settings",
]
