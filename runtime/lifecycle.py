"""
Dialogue runtime - the host-facing entry point.

DialogueRuntime wires the execution bridge, the event dispatcher and
the change detector together. Hosts call init() once, step()/jump_to()/
run_until_stable() as the story advances, tick() every frame, and
shutdown() when done. Errors never escape: they are published on the
`fatal` channel and the call returns None/False.

Usage:
    bus = EventBus()
    bus.subscribe(RuntimeEvent.DIALOGUE, show_line)
    bus.subscribe(RuntimeEvent.FATAL, show_error)

    runtime = DialogueRuntime(bus)
    runtime.init(RuntimeConfig.load("story.json"))

    while running:
        runtime.tick(dt)
        if player_pressed_confirm:
            runtime.step(player_answer)

    runtime.shutdown()
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from story.lines import ExecutionResult
from runtime.bridge import BridgeState, ExecutionBridge
from runtime.config import RuntimeConfig
from runtime.dispatcher import EventDispatcher
from runtime.errors import DialogueError
from runtime.events import EventBus, NotificationSink
from runtime.watcher import Detector, create_detector


class DialogueRuntime:
    """
    Lifecycle controller for one story.

    Attributes:
        sink: Where notifications go (an EventBus unless one is given)
        bridge: The execution bridge
        last_error: The most recent error reported on the fatal channel
    """

    def __init__(self, sink: Optional[NotificationSink] = None):
        self.sink = sink if sink is not None else EventBus()
        self.events = EventDispatcher(self.sink)
        self.bridge = ExecutionBridge(self.events)
        self.logger = logging.getLogger(__name__)

        self.last_error: Optional[DialogueError] = None

        # Hot reload
        self._config: Optional[RuntimeConfig] = None
        self._detector: Optional[Detector] = None
        self._elapsed = 0.0

    @property
    def state(self) -> BridgeState:
        return self.bridge.state

    @property
    def config(self) -> Optional[RuntimeConfig]:
        return self._config

    def init(self, config: RuntimeConfig | dict[str, Any]) -> bool:
        """
        Load the story and start watching it for changes.

        Returns:
            True if the story loaded
        """
        self._stop_detector()
        self._config = None
        try:
            self.bridge.initialize(config)
        except DialogueError as e:
            self._report(e)
            loaded = False
        else:
            loaded = True

        # Watch even after a failed load so a fixed source reloads
        try:
            self._config = RuntimeConfig.coerce(config)
        except DialogueError:
            # Already reported by the failed load
            return False
        self._detector = create_detector(self._config.watch_pattern, self._config.watch_mode)
        self._elapsed = 0.0
        return loaded

    def step(self, answer: str = "") -> Optional[ExecutionResult]:
        """Advance one line and publish the result."""
        try:
            result = self.bridge.step(answer)
        except DialogueError as e:
            self._report(e)
            return None
        self.events.emit(result)
        return result

    def jump_to(self, passage: str) -> bool:
        """Move to the start of a passage without producing output."""
        try:
            self.bridge.jump_to(passage)
        except DialogueError as e:
            self._report(e)
            return False
        return True

    def run_until_stable(self, passage: str) -> Optional[ExecutionResult]:
        """Jump to a passage, run to the next choice or end, and publish that result."""
        try:
            result = self.bridge.run_until_stable(passage)
        except DialogueError as e:
            self._report(e)
            return None
        self.events.emit(result)
        return result

    def tick(self, dt: float) -> bool:
        """
        Advance the hot-reload timer.

        Args:
            dt: Seconds since the previous tick

        Returns:
            True if the story was reloaded this tick
        """
        if self._config is None or self._detector is None:
            return False

        self._elapsed += dt
        if self._elapsed < self._config.poll_interval:
            return False
        self._elapsed = 0.0

        if not self._detector.has_changed():
            return False

        self.logger.info(f"Story changed, reloading {self._config.compiled_path}")
        try:
            self.bridge.reload(self._config)
        except DialogueError as e:
            self._report(e)
            return False
        return True

    def shutdown(self) -> None:
        """Publish `end`, stop watching and release the story."""
        self.events.end()
        self._stop_detector()
        self.bridge.release()
        self._config = None

    def _report(self, error: DialogueError) -> None:
        self.last_error = error
        self.events.fatal(str(error))

    def _stop_detector(self) -> None:
        if self._detector is not None:
            self._detector.stop()
            self._detector = None

    def __enter__(self) -> DialogueRuntime:
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()
