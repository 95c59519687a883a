"""
Bookmark - persisted story progression.

A bookmark records where a reader is in a story (passage and line), the
call stack of passages entered with a call, and the script variables. It
is independent of any particular compiled graph and is stored as JSON.
"""

from __future__ import annotations

import contextlib
import json
import logging
from pathlib import Path
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from story.errors import StateError, StorageError

logger = logging.getLogger(__name__)


class Frame(BaseModel):
    """A call-stack frame: where to resume once a called passage ends."""

    model_config = ConfigDict(extra='forbid')

    passage: str
    line: int = Field(default=0, ge=0)


class Bookmark(BaseModel):
    """
    Mutable progression state.

    Attributes:
        passage: Passage currently being read
        line: Index of the next line-node to run in that passage
        stack: Return frames for nested passage calls, innermost last
        state: Script variables
        pending: The line at `line` has been shown and waits for an answer
    """

    model_config = ConfigDict(extra='forbid', validate_assignment=True)

    passage: str
    line: int = Field(default=0, ge=0)
    stack: list[Frame] = Field(default_factory=list)
    state: dict[str, Any] = Field(default_factory=dict)
    pending: bool = False

    @classmethod
    def default(cls, passage: str, variables: dict[str, Any] | None = None) -> Bookmark:
        """Create a fresh bookmark at the start of a passage."""
        return cls(passage=passage, state=dict(variables or {}))

    @property
    def position(self) -> tuple[str, int, int]:
        """Passage, line and call depth, used to detect movement."""
        return (self.passage, self.line, len(self.stack))

    def move_to(self, passage: str, line: int = 0) -> None:
        self.passage = passage
        self.line = line
        self.pending = False

    def push_frame(self, passage: str, line: int) -> None:
        self.stack.append(Frame(passage=passage, line=line))

    def pop_frame(self) -> Frame:
        return self.stack.pop()


def load_bookmark(path: str | Path) -> Bookmark:
    """
    Load a bookmark from disk.

    Raises:
        StateError: If the file is missing or does not hold a valid bookmark
    """
    path = Path(path)
    if not path.exists():
        raise StateError(f"Bookmark not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return Bookmark.model_validate(data)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, pydantic.ValidationError) as e:
        raise StateError(f"Bookmark {path} is corrupt: {e}") from e


def save_bookmark(bookmark: Bookmark, path: str | Path) -> None:
    """
    Write a bookmark to disk.

    The file is written to a temporary sibling first and then renamed so
    an interrupted save never leaves a half-written bookmark behind.

    Raises:
        StorageError: If the file cannot be written
    """
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(bookmark.model_dump(mode="json"), f, indent=2)
        tmp_path.replace(path)
    except OSError as e:
        with contextlib.suppress(OSError):
            tmp_path.unlink(missing_ok=True)
        raise StorageError(f"Failed to save bookmark {path}: {e}") from e
    logger.debug(f"Saved bookmark {path} at {bookmark.passage}:{bookmark.line}")
