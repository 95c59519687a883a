"""
Dialogue engine errors.

Every failure raised by the story engine derives from DialogueError so a
host can catch the whole family in one place.
"""

from __future__ import annotations

from typing import Iterable


class DialogueError(Exception):
    """Base class for all dialogue engine errors."""


class CompileError(DialogueError):
    """Story source could not be compiled."""

    def __init__(self, message: str, path: str | None = None, line: int | None = None):
        self.path = path
        self.line = line
        if path is not None and line is not None:
            message = f"{path}:{line}: {message}"
        elif path is not None:
            message = f"{path}: {message}"
        super().__init__(message)


class ValidationError(DialogueError):
    """
    Compiled graph and bookmark do not form a runnable pair.

    Attributes:
        errors: Every structural problem found, in discovery order
    """

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        summary = "; ".join(self.errors) if self.errors else "unknown validation failure"
        super().__init__(f"Story validation failed: {summary}")


class StateError(DialogueError):
    """Persisted bookmark is absent or malformed."""


class StorageError(DialogueError):
    """Reading or writing a story artifact failed."""


class ExecutionError(DialogueError):
    """An operation cannot run against the current story state."""
