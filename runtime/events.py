"""
Notification channels and the event bus that carries them.

The runtime reports everything to the host through a NotificationSink:
any object with a `notify(channel, payload)` method. EventBus is the
built-in sink, a typed publish/subscribe bus keyed by RuntimeEvent.

Usage:
    bus = EventBus()
    bus.subscribe(RuntimeEvent.DIALOGUE, on_dialogue)

    runtime = DialogueRuntime(bus)
    runtime.init(config)
    runtime.step()          # on_dialogue(event) receives speaker/text/attributes
"""

from __future__ import annotations

import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol
from weakref import WeakMethod, ref

logger = logging.getLogger(__name__)


class RuntimeEvent(Enum):
    """Channels the runtime notifies the host on."""
    # One per execution result
    DIALOGUE = "dialogue"
    CHOICES = "choices"
    COMMAND = "command"
    INPUT_COMMAND = "input_command"
    INVALID_CHOICE = "invalid_choice"
    END = "end"

    # Lifecycle
    LOADED = "loaded"
    FATAL = "fatal"


class NotificationSink(Protocol):
    """Anything that can receive runtime notifications."""

    def notify(self, channel: RuntimeEvent, payload: dict[str, Any]) -> None:
        ...


@dataclass
class Event:
    """
    Event data container.

    Attributes:
        type: The channel the event was published on
        data: Notification payload
        consumed: Whether the event has been handled
    """
    type: RuntimeEvent
    data: dict[str, Any] = field(default_factory=dict)
    consumed: bool = False

    def consume(self) -> None:
        """Mark event as consumed (stops propagation)."""
        self.consumed = True

    def get(self, key: str, default: Any = None) -> Any:
        """Get event data by key."""
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


EventHandler = Callable[[Event], None]


@dataclass(eq=False)
class _Subscription:
    """A handler registered on one channel."""
    handler: Any  # the callable, or a weak reference to it
    priority: int = 0
    one_shot: bool = False

    def resolve(self) -> EventHandler | None:
        """Return the live handler, or None once a weak handler is collected."""
        if isinstance(self.handler, (ref, WeakMethod)):
            return self.handler()
        return self.handler


class EventBus:
    """
    Publish/subscribe bus for runtime notifications.

    Handlers run highest priority first, in subscription order for equal
    priorities. Weak handlers drop out once their owner is collected,
    one-shot handlers after their first call. A handler may consume()
    the event to stop later handlers seeing it. Events published while
    a dispatch is running are queued and delivered after it.
    """

    def __init__(self):
        self._handlers: dict[RuntimeEvent, list[_Subscription]] = {}
        self._pending: deque[Event] = deque()
        self._dispatching = False

    def subscribe(
        self,
        event_type: RuntimeEvent,
        handler: EventHandler,
        priority: int = 0,
        one_shot: bool = False,
        weak: bool = True,
    ) -> None:
        """
        Subscribe to a channel.

        Args:
            event_type: The channel to listen on
            handler: Callback function(event: Event)
            priority: Higher priority handlers are called first (default 0)
            one_shot: If True, handler is removed after first call
            weak: If True, hold the handler by weak reference
        """
        if weak:
            target = WeakMethod(handler) if inspect.ismethod(handler) else ref(handler)
        else:
            target = handler

        subscriptions = self._handlers.setdefault(event_type, [])
        position = next(
            (i for i, sub in enumerate(subscriptions) if priority > sub.priority),
            len(subscriptions),
        )
        subscriptions.insert(position, _Subscription(target, priority, one_shot))

    def unsubscribe(self, event_type: RuntimeEvent, handler: EventHandler) -> None:
        """Remove a handler from a channel."""
        subscriptions = self._handlers.get(event_type)
        if subscriptions:
            subscriptions[:] = [sub for sub in subscriptions if sub.resolve() != handler]

    def publish(self, event_type: RuntimeEvent, **data: Any) -> Event:
        """
        Publish an event.

        Returns:
            The Event object (check .consumed to see if it was handled)
        """
        event = Event(type=event_type, data=data)
        self._pending.append(event)
        if not self._dispatching:
            self._drain()
        return event

    def notify(self, channel: RuntimeEvent, payload: dict[str, Any]) -> None:
        """NotificationSink entry point."""
        self.publish(channel, **payload)

    def handler_count(self, event_type: RuntimeEvent) -> int:
        """Number of live handlers on a channel."""
        return sum(1 for sub in self._handlers.get(event_type, []) if sub.resolve() is not None)

    def clear(self, event_type: RuntimeEvent | None = None) -> None:
        """Clear handlers for one channel, or all channels."""
        if event_type is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event_type, None)

    def _drain(self) -> None:
        self._dispatching = True
        try:
            while self._pending:
                self._deliver(self._pending.popleft())
        finally:
            self._dispatching = False

    def _deliver(self, event: Event) -> None:
        subscriptions = self._handlers.get(event.type)
        if not subscriptions:
            return

        finished: list[_Subscription] = []
        for sub in list(subscriptions):
            handler = sub.resolve()
            if handler is None:
                finished.append(sub)
                continue

            try:
                handler(event)
            except Exception:
                # Host handler failures must not break the runtime
                logger.exception(f"Handler for {event.type.value} failed")

            if sub.one_shot:
                finished.append(sub)
            if event.consumed:
                break

        if finished:
            subscriptions[:] = [sub for sub in subscriptions if sub not in finished]
