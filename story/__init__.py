"""
Story module - the dialogue engine.

Provides:
- Story script compilation to a CompiledGraph
- Compiled graph loading/saving with schema checks
- Structural validation of graphs and bookmarks
- Bookmark (progression state) persistence
- A cursor that steps through a graph and yields ExecutionResults
"""

from story.errors import (
    DialogueError,
    CompileError,
    ValidationError,
    StateError,
    StorageError,
    ExecutionError,
)
from story.graph import CompiledGraph, Passage, load_compiled, save_compiled
from story.bookmark import Bookmark, Frame, load_bookmark, save_bookmark
from story.lines import (
    Dialogue,
    Choices,
    Command,
    Input,
    InvalidChoice,
    End,
    ExecutionResult,
)
from story.parser import StoryParser, compile_story, compile_story_file
from story.validation import validate
from story.cursor import Cursor, build_cursor

__all__ = [
    # Errors
    "DialogueError",
    "CompileError",
    "ValidationError",
    "StateError",
    "StorageError",
    "ExecutionError",
    # Graph
    "CompiledGraph",
    "Passage",
    "load_compiled",
    "save_compiled",
    "StoryParser",
    "compile_story",
    "compile_story_file",
    "validate",
    # Bookmark
    "Bookmark",
    "Frame",
    "load_bookmark",
    "save_bookmark",
    # Execution
    "Cursor",
    "build_cursor",
    "Dialogue",
    "Choices",
    "Command",
    "Input",
    "InvalidChoice",
    "End",
    "ExecutionResult",
]
