"""
Compiled dialogue graph.

A CompiledGraph is a set of named passages, each an ordered list of
line-nodes. Graphs are produced by the story compiler or loaded from a
compiled JSON artifact, and are never modified after construction; a
reload replaces the whole graph.

Line-node kinds:
- text: a line spoken by a speaker (empty speaker is narration)
- choices: a set of options the player picks from
- command: a host command invocation with parameters
- input: a prompt asking the host for one or more values
- goto / call / return: control transfers between passages
- set: assignment to a script variable
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union

import jsonschema
import pydantic
from pydantic import BaseModel, ConfigDict, Field

from story.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1"

LINE_KINDS = ("text", "choices", "command", "input", "goto", "call", "set", "return")


class LineNode(BaseModel):
    """Base for all line-nodes. Nodes are immutable once built."""

    model_config = ConfigDict(frozen=True, extra='forbid')


class TextLine(LineNode):
    kind: Literal["text"] = "text"
    speaker: str = ""
    text: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)


class ChoiceOption(BaseModel):
    """
    One option of a choice set.

    Attributes:
        text: Text shown to the player, also the value the player answers with
        target: Passage to continue in when picked
        condition: Optional expression; the option is hidden when it is false
    """

    model_config = ConfigDict(frozen=True, extra='forbid')

    text: str
    target: str
    condition: Optional[str] = None


class ChoicesLine(LineNode):
    kind: Literal["choices"] = "choices"
    options: list[ChoiceOption] = Field(default_factory=list)
    timeout: float = 0.0
    default: Optional[str] = None


class CommandLine(LineNode):
    kind: Literal["command"] = "command"
    name: str
    params: dict[str, Any] = Field(default_factory=dict)


class InputLine(LineNode):
    kind: Literal["input"] = "input"
    prompts: dict[str, Any] = Field(default_factory=dict)
    timeout: float = 0.0


class GotoLine(LineNode):
    kind: Literal["goto"] = "goto"
    target: str


class CallLine(LineNode):
    kind: Literal["call"] = "call"
    target: str


class SetLine(LineNode):
    kind: Literal["set"] = "set"
    variable: str
    value: Any = None
    op: Literal["=", "+=", "-="] = "="


class ReturnLine(LineNode):
    kind: Literal["return"] = "return"


Line = Annotated[
    Union[TextLine, ChoicesLine, CommandLine, InputLine, GotoLine, CallLine, SetLine, ReturnLine],
    Field(discriminator="kind"),
]


class Passage(BaseModel):
    """A named, ordered sequence of line-nodes."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    name: str
    lines: list[Line] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.lines)


# JSON Schema for the compiled artifact. Checked before the document is
# turned into models so malformed files report every problem at once.
GRAPH_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["version", "passages"],
    "properties": {
        "version": {"type": "string"},
        "variables": {"type": "object"},
        "passages": {
            "type": "object",
            "additionalProperties": {"$ref": "#/definitions/passage"},
        },
    },
    "definitions": {
        "passage": {
            "type": "object",
            "required": ["name", "lines"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "lines": {"type": "array", "items": {"$ref": "#/definitions/line"}},
            },
        },
        "line": {
            "type": "object",
            "required": ["kind"],
            "properties": {"kind": {"enum": list(LINE_KINDS)}},
            "allOf": [
                {
                    "if": {"properties": {"kind": {"const": "choices"}}},
                    "then": {
                        "required": ["options"],
                        "properties": {
                            "options": {
                                "type": "array",
                                "items": {
                                    "type": "object",
                                    "required": ["text", "target"],
                                },
                            },
                            "timeout": {"type": "number"},
                        },
                    },
                },
                {
                    "if": {"properties": {"kind": {"const": "command"}}},
                    "then": {"required": ["name"], "properties": {"params": {"type": "object"}}},
                },
                {
                    "if": {"properties": {"kind": {"const": "input"}}},
                    "then": {"required": ["prompts"], "properties": {"prompts": {"type": "object"}}},
                },
                {
                    "if": {"properties": {"kind": {"enum": ["goto", "call"]}}},
                    "then": {"required": ["target"]},
                },
                {
                    "if": {"properties": {"kind": {"const": "set"}}},
                    "then": {"required": ["variable"]},
                },
            ],
        },
    },
}


class CompiledGraph(BaseModel):
    """
    A complete, compiled dialogue script.

    Attributes:
        version: Compiled format version
        passages: Passages by name
        variables: Script-declared variables and their initial values
    """

    model_config = ConfigDict(frozen=True, extra='forbid')

    version: str = FORMAT_VERSION
    passages: dict[str, Passage] = Field(default_factory=dict)
    variables: dict[str, Any] = Field(default_factory=dict)

    def has_passage(self, name: str) -> bool:
        return name in self.passages

    def get_passage(self, name: str) -> Optional[Passage]:
        """Get a passage by name."""
        return self.passages.get(name)

    @property
    def passage_names(self) -> list[str]:
        return list(self.passages)

    def to_document(self) -> dict[str, Any]:
        """Convert to the JSON document stored in compiled artifacts."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, data: Any) -> CompiledGraph:
        """
        Build a graph from a compiled JSON document.

        Raises:
            ValidationError: If the document does not match the compiled format
        """
        validator = jsonschema.Draft7Validator(GRAPH_SCHEMA)
        problems = []
        for error in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
            location = "/".join(str(part) for part in error.absolute_path) or "<root>"
            problems.append(f"{location}: {error.message}")
        if problems:
            raise ValidationError(problems)

        if data["version"] != FORMAT_VERSION:
            raise ValidationError([
                f"unsupported compiled format version {data['version']!r} "
                f"(expected {FORMAT_VERSION!r})"
            ])

        for key, passage in data["passages"].items():
            if passage["name"] != key:
                problems.append(f"passages/{key}: name {passage['name']!r} does not match key")
        if problems:
            raise ValidationError(problems)

        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"{'/'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            ) from e


def load_compiled(path: str | Path) -> CompiledGraph:
    """
    Load a compiled graph artifact.

    Raises:
        StorageError: If the file cannot be read or is not JSON
        ValidationError: If the document is not a valid compiled graph
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StorageError(f"Failed to load compiled story {path}: {e}") from e

    graph = CompiledGraph.from_document(data)
    logger.debug(f"Loaded compiled story {path} ({len(graph.passages)} passages)")
    return graph


def save_compiled(graph: CompiledGraph, path: str | Path) -> None:
    """
    Write a compiled graph artifact.

    Raises:
        StorageError: If the file cannot be written
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(graph.to_document(), f, indent=2)
    except OSError as e:
        raise StorageError(f"Failed to save compiled story {path}: {e}") from e
