"""
Execution results.

Each cursor step produces exactly one of these six results. Hosts switch
on the type; nothing else is ever returned from a step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class Dialogue:
    """A spoken or narrated line."""
    speaker: str
    text: str
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Choices:
    """
    Options offered to the player.

    Attributes:
        options: Option texts in display order
        timeout: Seconds before the default option is taken, 0 for none
    """
    options: list[str]
    timeout: float = 0.0


@dataclass(frozen=True)
class Command:
    """A host command to run."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Input:
    """
    A request for values from the host.

    Attributes:
        prompts: Variable name -> default value
        timeout: Seconds before defaults are used, 0 for none
    """
    prompts: dict[str, Any]
    timeout: float = 0.0


@dataclass(frozen=True)
class InvalidChoice:
    """The last input did not match any offered option."""


@dataclass(frozen=True)
class End:
    """The story reached its natural end."""


ExecutionResult = Union[Dialogue, Choices, Command, Input, InvalidChoice, End]

# Results that stop run_until_stable
STABLE_RESULTS = (Choices, End)
