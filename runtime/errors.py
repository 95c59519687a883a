"""
Runtime errors.

Re-exports the story engine's error family and adds configuration errors,
so hosts only need to import from one place.
"""

from __future__ import annotations

from story.errors import (
    DialogueError,
    CompileError,
    ValidationError,
    StateError,
    StorageError,
    ExecutionError,
)


class ConfigError(DialogueError):
    """A runtime option is missing or invalid."""


__all__ = [
    "DialogueError",
    "ConfigError",
    "CompileError",
    "ValidationError",
    "StateError",
    "StorageError",
    "ExecutionError",
]
