"""
Story cursor - steps through a compiled graph.

The cursor reads line-nodes from a CompiledGraph and moves a Bookmark
through them. Each call to step() runs silent control lines (goto, call,
return, set) until it reaches a line that produces output, and returns
that output as an ExecutionResult.

Choices and input lines are returned once; the cursor then waits for
the next step() to supply the answer.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Union

from story.bookmark import Bookmark
from story.errors import ExecutionError
from story.expressions import evaluate, interpolate, interpolate_value
from story.graph import (
    CallLine,
    ChoiceOption,
    ChoicesLine,
    CommandLine,
    CompiledGraph,
    GotoLine,
    InputLine,
    ReturnLine,
    SetLine,
    TextLine,
)
from story.lines import (
    Choices,
    Command,
    Dialogue,
    End,
    ExecutionResult,
    Input,
    InvalidChoice,
)

logger = logging.getLogger(__name__)

DEFAULT_STEP_BUDGET = 10000


class Cursor:
    """
    Executes a graph against a bookmark.

    The cursor is only valid for the graph/bookmark pair it was built
    with. Hosts replace all three together when a story is reloaded.

    Attributes:
        graph: Graph being read
        bookmark: Progression state being advanced
        step_budget: Max silent lines per step (0 disables the check)
    """

    def __init__(
        self,
        graph: CompiledGraph,
        bookmark: Bookmark,
        step_budget: int = DEFAULT_STEP_BUDGET,
    ):
        self.graph = graph
        self.bookmark = bookmark
        self.step_budget = step_budget

        # Line waiting for an answer, and the options it offered
        self._awaiting: Optional[Union[ChoicesLine, InputLine]] = None
        self._offered: list[ChoiceOption] = []
        if bookmark.pending:
            self._restore_pending()

    @property
    def awaiting_input(self) -> bool:
        """Check if the last result was a choice or input prompt."""
        return self._awaiting is not None

    def jump(self, passage: str) -> None:
        """
        Move to the start of a passage and clear the call stack.

        Raises:
            ExecutionError: If the passage does not exist
        """
        if not self.graph.has_passage(passage):
            raise ExecutionError(f"Cannot jump to missing passage {passage!r}")

        self.bookmark.move_to(passage, 0)
        self.bookmark.stack.clear()
        self._awaiting = None
        self._offered = []

    def step(self, answer: str = "") -> ExecutionResult:
        """
        Advance by one output line.

        Args:
            answer: Answer to a pending choice or input prompt, ignored otherwise

        Returns:
            The produced ExecutionResult
        """
        if self._awaiting is not None:
            if not self._resolve(answer):
                return InvalidChoice()

        transfers = 0
        while True:
            passage = self.graph.get_passage(self.bookmark.passage)
            if passage is None:
                raise ExecutionError(f"Bookmark names missing passage {self.bookmark.passage!r}")

            # End of passage: return to caller or finish
            if self.bookmark.line >= len(passage.lines):
                if not self.bookmark.stack:
                    return End()
                self._check_budget(transfers)
                frame = self.bookmark.pop_frame()
                self.bookmark.move_to(frame.passage, frame.line)
                transfers += 1
                continue

            node = passage.lines[self.bookmark.line]
            variables = self.bookmark.state

            if isinstance(node, TextLine):
                self.bookmark.line += 1
                return Dialogue(
                    speaker=node.speaker,
                    text=interpolate(node.text, variables),
                    attributes=interpolate_value(dict(node.attributes), variables),
                )

            if isinstance(node, CommandLine):
                self.bookmark.line += 1
                return Command(
                    name=node.name,
                    params=interpolate_value(dict(node.params), variables),
                )

            if isinstance(node, ChoicesLine):
                offered = self._offer(node)
                if not offered:
                    # Every option is hidden, nothing to ask
                    self._check_budget(transfers)
                    self.bookmark.line += 1
                    transfers += 1
                    continue
                self._awaiting = node
                self._offered = offered
                self.bookmark.pending = True
                return Choices(options=[option.text for option in offered], timeout=node.timeout)

            if isinstance(node, InputLine):
                self._awaiting = node
                self._offered = []
                self.bookmark.pending = True
                return Input(prompts=dict(node.prompts), timeout=node.timeout)

            self._check_budget(transfers)
            if isinstance(node, GotoLine):
                self.bookmark.move_to(node.target, 0)
            elif isinstance(node, CallLine):
                self.bookmark.push_frame(self.bookmark.passage, self.bookmark.line + 1)
                self.bookmark.move_to(node.target, 0)
            elif isinstance(node, ReturnLine):
                if self.bookmark.stack:
                    frame = self.bookmark.pop_frame()
                    self.bookmark.move_to(frame.passage, frame.line)
                else:
                    self.bookmark.line = len(passage.lines)
            elif isinstance(node, SetLine):
                self._assign(node)
                self.bookmark.line += 1
            else:
                raise ExecutionError(f"Unknown line kind {node.kind!r}")
            transfers += 1

    def _check_budget(self, transfers: int) -> None:
        """Refuse another silent line once the budget is used up."""
        if self.step_budget and transfers >= self.step_budget:
            raise ExecutionError(
                f"Step exceeded {self.step_budget} control lines without output "
                f"(at {self.bookmark.passage}:{self.bookmark.line})"
            )

    def _offer(self, node: ChoicesLine) -> list[ChoiceOption]:
        """Options whose condition currently holds."""
        return [
            option for option in node.options
            if not option.condition or evaluate(option.condition, self.bookmark.state)
        ]

    def _restore_pending(self) -> None:
        """Pick up a choice or input that was waiting when the bookmark was saved."""
        passage = self.graph.get_passage(self.bookmark.passage)
        node = None
        if passage is not None and self.bookmark.line < len(passage.lines):
            node = passage.lines[self.bookmark.line]

        if isinstance(node, ChoicesLine):
            offered = self._offer(node)
            if offered:
                self._awaiting = node
                self._offered = offered
                return
        elif isinstance(node, InputLine):
            self._awaiting = node
            return

        logger.debug(f"Pending line at {self.bookmark.passage}:{self.bookmark.line} is gone")
        self.bookmark.pending = False

    def _resolve(self, answer: str) -> bool:
        """Apply an answer to the pending line. Returns False if it was not accepted."""
        node = self._awaiting

        if isinstance(node, ChoicesLine):
            texts = [option.text for option in self._offered]
            if answer in texts:
                choice = answer
            elif answer == "" and node.default in texts:
                choice = node.default
            else:
                logger.debug(f"Invalid choice {answer!r}, expected one of {texts}")
                return False
            target = next(option.target for option in self._offered if option.text == choice)
            self.bookmark.move_to(target, 0)

        else:
            values = self._input_values(node, answer)
            if values is None:
                return False
            self.bookmark.state.update(values)
            self.bookmark.line += 1
            self.bookmark.pending = False

        self._awaiting = None
        self._offered = []
        return True

    def _input_values(self, node: InputLine, answer: str) -> Optional[dict[str, Any]]:
        """Map raw input text onto the prompt fields."""
        if answer == "":
            return dict(node.prompts)

        if len(node.prompts) == 1:
            (name,) = node.prompts
            return {name: answer}

        try:
            given = json.loads(answer)
        except json.JSONDecodeError:
            given = None
        if not isinstance(given, dict):
            logger.debug(f"Input {answer!r} is not a JSON object for fields {list(node.prompts)}")
            return None
        return {name: given.get(name, default) for name, default in node.prompts.items()}

    def _assign(self, node: SetLine) -> None:
        variables = self.bookmark.state
        if node.op == '=':
            variables[node.variable] = node.value
            return

        current = variables.get(node.variable, 0)
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            raise ExecutionError(
                f"Cannot apply {node.op!r} to {node.variable!r} holding {current!r}"
            )
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ExecutionError(f"Cannot apply {node.op!r} with non-number {node.value!r}")
        delta = node.value if node.op == '+=' else -node.value
        variables[node.variable] = current + delta


def build_cursor(
    graph: CompiledGraph,
    bookmark: Bookmark,
    step_budget: int = DEFAULT_STEP_BUDGET,
) -> Cursor:
    """Create a cursor for a graph/bookmark pair."""
    return Cursor(graph, bookmark, step_budget=step_budget)
