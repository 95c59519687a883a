"""
Event dispatcher - turns execution results into host notifications.

Every ExecutionResult maps to exactly one channel:

| Result        | Channel          | Payload                              |
|---------------|------------------|--------------------------------------|
| Dialogue      | dialogue         | speaker, text, attributes            |
| Choices       | choices          | options, timeout                     |
| Command       | command          | name, normalized_name, params        |
| Input         | input_command    | prompts, timeout                     |
| InvalidChoice | invalid_choice   | (none)                               |
| End           | end              | (none)                               |

Mapping values are converted to plain string-keyed documents so any
host can consume them without knowing the story engine's types.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from story.lines import (
    Choices,
    Command,
    Dialogue,
    End,
    ExecutionResult,
    Input,
    InvalidChoice,
)
from runtime.commands import normalize
from runtime.events import NotificationSink, RuntimeEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """A channel plus the payload published on it."""
    channel: RuntimeEvent
    payload: dict[str, Any] = field(default_factory=dict)


def to_document(value: Any) -> Any:
    """Convert a value to a JSON-style document with string keys, keeping order."""
    if isinstance(value, dict):
        return {str(key): to_document(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_document(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def dispatch(result: ExecutionResult) -> Notification:
    """Map an execution result to its notification."""
    if isinstance(result, Dialogue):
        return Notification(RuntimeEvent.DIALOGUE, {
            'speaker': result.speaker,
            'text': result.text,
            'attributes': to_document(result.attributes),
        })

    if isinstance(result, Choices):
        return Notification(RuntimeEvent.CHOICES, {
            'options': list(result.options),
            'timeout': float(result.timeout),
        })

    if isinstance(result, Command):
        return Notification(RuntimeEvent.COMMAND, {
            'name': result.name,
            'normalized_name': normalize(result.name),
            'params': to_document(result.params),
        })

    if isinstance(result, Input):
        return Notification(RuntimeEvent.INPUT_COMMAND, {
            'prompts': to_document(result.prompts),
            'timeout': float(result.timeout),
        })

    if isinstance(result, InvalidChoice):
        return Notification(RuntimeEvent.INVALID_CHOICE)

    if isinstance(result, End):
        return Notification(RuntimeEvent.END)

    raise TypeError(f"Not an execution result: {result!r}")


class EventDispatcher:
    """
    Sends notifications to a sink.

    Usage:
        events = EventDispatcher(bus)
        events.emit(bridge.step())
        events.fatal("Story validation failed: ...")
    """

    def __init__(self, sink: NotificationSink):
        self.sink = sink

    def emit(self, result: ExecutionResult) -> Notification:
        """Dispatch a result and publish it."""
        notification = dispatch(result)
        self.send(notification)
        return notification

    def send(self, notification: Notification) -> None:
        logger.debug(f"Notify {notification.channel.value}: {notification.payload}")
        self.sink.notify(notification.channel, dict(notification.payload))

    def loaded(self) -> None:
        self.send(Notification(RuntimeEvent.LOADED))

    def end(self) -> None:
        self.send(Notification(RuntimeEvent.END))

    def fatal(self, message: str) -> None:
        """Report an error the runtime could not recover from."""
        logger.error(message)
        self.send(Notification(RuntimeEvent.FATAL, {'message': message}))
