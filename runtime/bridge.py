"""
Execution bridge - owns the story and drives it.

The bridge holds the compiled graph, the bookmark and the cursor built
over them as one session. Loading builds a complete new session before
installing it, so steps never see a half-built story; a failed load
leaves no session at all.

States:
- UNLOADED: nothing loaded yet, or released
- READY: a session is installed and steps may run
- FAULTED: the last load or operation failed; initialize() again to recover
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Optional, TypeVar

from story.bookmark import Bookmark, load_bookmark, save_bookmark
from story.cursor import Cursor, build_cursor
from story.graph import CompiledGraph, load_compiled, save_compiled
from story.lines import STABLE_RESULTS, ExecutionResult
from story.parser import compile_story
from story.validation import validate
from runtime.config import RuntimeConfig
from runtime.dispatcher import EventDispatcher
from runtime.errors import (
    DialogueError,
    ExecutionError,
    StateError,
    ValidationError,
)

T = TypeVar('T')


class BridgeState(Enum):
    """Lifecycle state of an ExecutionBridge."""
    UNLOADED = auto()
    READY = auto()
    FAULTED = auto()


@dataclass
class Session:
    """A loaded story: graph, bookmark and the cursor bound to both."""
    config: RuntimeConfig
    graph: CompiledGraph
    bookmark: Bookmark
    cursor: Cursor


class ExecutionBridge:
    """
    Loads a story and runs it step by step.

    All operations hold one re-entrant lock for their full duration, so a
    reload can never interleave with a step from another thread.

    Usage:
        bridge = ExecutionBridge(EventDispatcher(bus))
        bridge.initialize(config)
        result = bridge.step()
        bridge.jump_to("Tavern")
        result = bridge.run_until_stable("Tavern")
    """

    def __init__(self, events: Optional[EventDispatcher] = None):
        self.events = events
        self.logger = logging.getLogger(__name__)

        self._session: Optional[Session] = None
        self._state = BridgeState.UNLOADED
        self._lock = threading.RLock()

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == BridgeState.READY

    @property
    def graph(self) -> Optional[CompiledGraph]:
        session = self._session
        return session.graph if session else None

    @property
    def bookmark(self) -> Optional[Bookmark]:
        session = self._session
        return session.bookmark if session else None

    @property
    def config(self) -> Optional[RuntimeConfig]:
        session = self._session
        return session.config if session else None

    # -- Loading -----------------------------------------------------------

    def initialize(self, config: RuntimeConfig | dict[str, Any]) -> None:
        """
        Load the story described by config.

        Raises:
            DialogueError: Any load failure; the bridge is left FAULTED
        """
        self._load(config, reloading=False)

    def reload(self, config: RuntimeConfig | dict[str, Any]) -> None:
        """
        Rebuild the session from disk, replacing the current one.

        The previous graph, bookmark and cursor are discarded whether or
        not the reload succeeds.
        """
        self._load(config, reloading=True)

    def _load(self, config: RuntimeConfig | dict[str, Any], reloading: bool) -> None:
        with self._lock:
            # Drop the old session first so nothing can observe it mid-build
            self._session = None
            try:
                config = RuntimeConfig.coerce(config)
                session = self._build_session(config)
            except DialogueError as e:
                self._state = BridgeState.FAULTED
                self.logger.error(f"{'Reload' if reloading else 'Load'} failed: {e}")
                raise

            self._session = session
            self._state = BridgeState.READY
            self.logger.log(
                self._level(config),
                f"{'Reloaded' if reloading else 'Loaded'} story {config.compiled_path} "
                f"({len(session.graph.passages)} passages) at "
                f"{session.bookmark.passage}:{session.bookmark.line}",
            )

        if self.events:
            self.events.loaded()

    def _build_session(self, config: RuntimeConfig) -> Session:
        if config.source_path is not None:
            compiled = compile_story(config.source_path)
            validate(compiled)
            save_compiled(compiled, config.compiled_path)
            self.logger.log(self._level(config), f"Compiled {config.source_path} -> {config.compiled_path}")

        graph = load_compiled(config.compiled_path)
        if not graph.has_passage(config.default_passage):
            raise ValidationError([f"default passage {config.default_passage!r} does not exist"])

        bookmark = self._load_bookmark(config, graph)
        validate(graph, bookmark)
        cursor = build_cursor(graph, bookmark, step_budget=config.step_budget)
        return Session(config=config, graph=graph, bookmark=bookmark, cursor=cursor)

    def _load_bookmark(self, config: RuntimeConfig, graph: CompiledGraph) -> Bookmark:
        """Load the bookmark, or start a new one when it is missing or corrupt."""
        try:
            bookmark = load_bookmark(config.bookmark_path)
        except StateError as e:
            self.logger.warning(f"{e}; starting at {config.default_passage!r}")
            bookmark = Bookmark.default(config.default_passage, graph.variables)
            save_bookmark(bookmark, config.bookmark_path)
            return bookmark

        dirty = False
        if not graph.has_passage(bookmark.passage):
            self.logger.warning(
                f"Bookmark passage {bookmark.passage!r} no longer exists, "
                f"falling back to {config.default_passage!r}"
            )
            bookmark.move_to(config.default_passage, 0)
            bookmark.stack.clear()
            dirty = True
        elif any(not graph.has_passage(frame.passage) for frame in bookmark.stack):
            self.logger.warning("Bookmark call stack names removed passages, clearing it")
            bookmark.stack.clear()
            dirty = True

        # Variables declared since the bookmark was written
        for name, value in graph.variables.items():
            if name not in bookmark.state:
                bookmark.state[name] = value
                dirty = True

        if dirty:
            save_bookmark(bookmark, config.bookmark_path)
        return bookmark

    def release(self) -> None:
        """Drop the session and return to UNLOADED."""
        with self._lock:
            self._session = None
            self._state = BridgeState.UNLOADED

    # -- Execution ---------------------------------------------------------

    def step(self, answer: str = "") -> ExecutionResult:
        """
        Advance the story by one output line.

        Args:
            answer: Reply to a pending choice or input prompt

        Raises:
            ExecutionError: If the bridge is not READY or the step fails
            StorageError: If the bookmark cannot be saved
        """
        return self._run("step", lambda session: self._step(session, answer))

    def jump_to(self, passage: str) -> None:
        """
        Move to the start of a passage. Produces no result; call step() next.

        Raises:
            ExecutionError: If the bridge is not READY or the passage does not exist
        """
        self._run("jump", lambda session: self._jump(session, passage))

    def run_until_stable(self, passage: str) -> ExecutionResult:
        """
        Jump to a passage and step until a Choices or End result.

        Intermediate results are discarded. The number of steps is capped
        by the configured step budget.
        """
        return self._run("run", lambda session: self._run_until_stable(session, passage))

    def _step(self, session: Session, answer: str) -> ExecutionResult:
        before = (session.bookmark.position, session.bookmark.pending)
        result = session.cursor.step(answer)
        if (session.bookmark.position, session.bookmark.pending) != before:
            save_bookmark(session.bookmark, session.config.bookmark_path)
        if session.config.verbosity >= 2:
            self.logger.info(
                f"{type(result).__name__} -> bookmark {session.bookmark.model_dump(mode='json')}"
            )
        return result

    def _jump(self, session: Session, passage: str) -> None:
        session.cursor.jump(passage)
        if session.config.save_on_jump:
            save_bookmark(session.bookmark, session.config.bookmark_path)
        self.logger.log(self._level(session.config), f"Jumped to {passage!r}")

    def _run_until_stable(self, session: Session, passage: str) -> ExecutionResult:
        self._jump(session, passage)
        budget = session.config.step_budget
        steps = 0
        while True:
            result = self._step(session, "")
            if isinstance(result, STABLE_RESULTS):
                return result
            steps += 1
            if budget and steps >= budget:
                raise ExecutionError(
                    f"Passage {passage!r} ran {steps} steps without reaching choices or an end"
                )

    def _run(self, operation: str, action: Callable[[Session], T]) -> T:
        with self._lock:
            session = self._session
            if session is None or self._state != BridgeState.READY:
                raise ExecutionError(
                    f"Cannot {operation}: story is {self._state.name.lower()}"
                )
            try:
                return action(session)
            except DialogueError as e:
                self._session = None
                self._state = BridgeState.FAULTED
                self.logger.error(f"{operation.capitalize()} failed: {e}")
                raise

    @staticmethod
    def _level(config: RuntimeConfig) -> int:
        return logging.INFO if config.verbosity >= 1 else logging.DEBUG
