"""
Dialogue runtime - embeds the story engine in a host application.

Exports:
- DialogueRuntime: lifecycle controller, the host's entry point
- ExecutionBridge, BridgeState: story ownership and stepping
- RuntimeConfig: validated runtime options
- EventBus, RuntimeEvent, NotificationSink: notification delivery
- EventDispatcher, Notification, dispatch: result classification
- ChangeDetector, WatchdogChangeDetector, WatchSet: hot reload
- normalize: command name to dispatch key
"""

from runtime.errors import (
    DialogueError,
    ConfigError,
    CompileError,
    ValidationError,
    StateError,
    StorageError,
    ExecutionError,
)
from runtime.commands import normalize
from runtime.config import RuntimeConfig
from runtime.events import EventBus, Event, RuntimeEvent, NotificationSink
from runtime.dispatcher import EventDispatcher, Notification, dispatch
from runtime.watcher import ChangeDetector, WatchdogChangeDetector, WatchSet, has_changed
from runtime.bridge import ExecutionBridge, BridgeState
from runtime.lifecycle import DialogueRuntime

__version__ = "0.1.0"

__all__ = [
    # Entry point
    "DialogueRuntime",
    "RuntimeConfig",
    # Bridge
    "ExecutionBridge",
    "BridgeState",
    # Events
    "EventBus",
    "Event",
    "RuntimeEvent",
    "NotificationSink",
    "EventDispatcher",
    "Notification",
    "dispatch",
    # Hot reload
    "ChangeDetector",
    "WatchdogChangeDetector",
    "WatchSet",
    "has_changed",
    # Commands
    "normalize",
    # Errors
    "DialogueError",
    "ConfigError",
    "CompileError",
    "ValidationError",
    "StateError",
    "StorageError",
    "ExecutionError",
]
