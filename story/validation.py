"""
Story validation.

Checks that a compiled graph is structurally sound and that a bookmark
can be read against it. All problems are collected and reported together.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from story.bookmark import Bookmark
from story.errors import ValidationError
from story.expressions import check_condition
from story.graph import (
    CallLine,
    ChoicesLine,
    CommandLine,
    CompiledGraph,
    GotoLine,
    InputLine,
    SetLine,
)

logger = logging.getLogger(__name__)

COMMAND_NAME_PATTERN = re.compile(r'^[A-Za-z_$][\w$]*(?:[:.][A-Za-z_$][\w$]*)*$')


def collect_errors(graph: CompiledGraph, bookmark: Optional[Bookmark] = None) -> list[str]:
    """Return every structural problem with the graph/bookmark pair."""
    errors: list[str] = []

    for name, passage in graph.passages.items():
        for index, node in enumerate(passage.lines):
            where = f"{name}:{index}"

            if isinstance(node, (GotoLine, CallLine)):
                if not graph.has_passage(node.target):
                    errors.append(f"{where}: {node.kind} to missing passage {node.target!r}")

            elif isinstance(node, ChoicesLine):
                if not node.options:
                    errors.append(f"{where}: choice block has no options")
                seen: set[str] = set()
                for option in node.options:
                    if option.text in seen:
                        errors.append(f"{where}: duplicate option {option.text!r}")
                    seen.add(option.text)
                    if not graph.has_passage(option.target):
                        errors.append(
                            f"{where}: option {option.text!r} targets missing passage {option.target!r}"
                        )
                    if option.condition:
                        problem = check_condition(option.condition)
                        if problem:
                            errors.append(f"{where}: {problem}")
                if node.timeout < 0:
                    errors.append(f"{where}: negative timeout {node.timeout}")
                if node.default is not None and node.default not in seen:
                    errors.append(f"{where}: default {node.default!r} is not an option")

            elif isinstance(node, CommandLine):
                if not COMMAND_NAME_PATTERN.match(node.name):
                    errors.append(f"{where}: malformed command name {node.name!r}")

            elif isinstance(node, InputLine):
                if not node.prompts:
                    errors.append(f"{where}: input has no fields")
                if node.timeout < 0:
                    errors.append(f"{where}: negative timeout {node.timeout}")

            elif isinstance(node, SetLine):
                if node.op != '=' and (isinstance(node.value, bool) or not isinstance(node.value, (int, float))):
                    errors.append(f"{where}: '{node.op}' needs a number, got {node.value!r}")

    if bookmark is not None:
        if not graph.has_passage(bookmark.passage):
            errors.append(f"bookmark: passage {bookmark.passage!r} does not exist")
        for depth, frame in enumerate(bookmark.stack):
            if not graph.has_passage(frame.passage):
                errors.append(f"bookmark: stack frame {depth} names missing passage {frame.passage!r}")

    return errors


def validate(graph: CompiledGraph, bookmark: Optional[Bookmark] = None) -> None:
    """
    Validate a graph, optionally together with a bookmark.

    Raises:
        ValidationError: Listing every problem found
    """
    errors = collect_errors(graph, bookmark)
    if errors:
        raise ValidationError(errors)
    logger.debug(f"Validated story ({len(graph.passages)} passages)")
