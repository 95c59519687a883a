"""
Story hot reload - change detection for story files.

ChangeDetector scans the files matching a glob pattern and reports
whether the newest modification time moved since the last check. The
scan costs one directory walk, so callers rate-limit it (the runtime
only checks once per poll interval).

WatchdogChangeDetector has the same has_changed() contract but is fed by
filesystem notifications from the watchdog library instead of scanning.
"""

from __future__ import annotations

import fnmatch
import glob
import logging
import os
import stat
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

GLOB_CHARS = set('*?[')


class Detector(Protocol):
    def has_changed(self) -> bool:
        ...

    def stop(self) -> None:
        ...


@dataclass
class WatchSet:
    """
    Files to watch and the newest modification time seen so far.

    Attributes:
        pattern: Glob pattern (`**` matches any depth)
        last_mtime: Newest mtime at the last check, None if no files matched
    """
    pattern: str
    last_mtime: Optional[float] = None

    def newest_mtime(self) -> Optional[float]:
        """Scan matching files. Directories and unreadable entries are skipped."""
        newest: Optional[float] = None
        for name in glob.iglob(self.pattern, recursive=True):
            try:
                st = os.stat(name)
            except OSError:
                # Vanished or unreadable
                continue
            if stat.S_ISDIR(st.st_mode):
                continue
            if newest is None or st.st_mtime > newest:
                newest = st.st_mtime
        return newest


def has_changed(watch_set: WatchSet) -> bool:
    """
    Check whether any watched file changed since the previous call.

    Updates watch_set.last_mtime on every call.
    """
    newest = watch_set.newest_mtime()
    changed = newest != watch_set.last_mtime
    watch_set.last_mtime = newest
    return changed


class ChangeDetector:
    """Polling detector over a WatchSet."""

    def __init__(self, pattern: str):
        self.watch_set = WatchSet(pattern)

    def has_changed(self) -> bool:
        changed = has_changed(self.watch_set)
        if changed:
            logger.debug(f"Change detected in {self.watch_set.pattern}")
        return changed

    def stop(self) -> None:
        pass


def static_root(pattern: str) -> Path:
    """Longest leading directory of a glob pattern that has no wildcards."""
    parts = Path(pattern).parts
    for i, part in enumerate(parts):
        if GLOB_CHARS & set(part):
            return Path(*parts[:i]) if i else Path('.')
    # No wildcards: the pattern is a single file
    return Path(pattern).parent


class _StoryEventHandler(FileSystemEventHandler):
    """Marks the detector dirty when a matching file changes."""

    def __init__(self, detector: WatchdogChangeDetector):
        super().__init__()
        self.detector = detector

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        paths = [event.src_path, getattr(event, 'dest_path', '')]
        if any(path and self.detector.matches(os.fsdecode(path)) for path in paths):
            self.detector.mark_changed()


class WatchdogChangeDetector:
    """
    Event-driven detector.

    Usage:
        detector = WatchdogChangeDetector("story/**/*.story")
        detector.start()
        ...
        if detector.has_changed():
            reload()
        ...
        detector.stop()
    """

    def __init__(self, pattern: str):
        self.pattern = pattern
        self.root = static_root(pattern)
        self._changed = False
        self._lock = threading.Lock()
        self._observer: Optional[Observer] = None

        # `root/**/*.story` should also match files directly in root
        self._patterns = {os.path.normpath(pattern)}
        if '**' + os.sep in pattern:
            self._patterns.add(os.path.normpath(pattern.replace('**' + os.sep, '')))

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def matches(self, path: str) -> bool:
        path = os.path.normpath(path)
        return any(fnmatch.fnmatch(path, p) for p in self._patterns)

    def mark_changed(self) -> None:
        with self._lock:
            self._changed = True

    def has_changed(self) -> bool:
        """Return True once per batch of filesystem events."""
        with self._lock:
            changed = self._changed
            self._changed = False
        return changed

    def start(self) -> bool:
        """
        Start watching.

        Returns:
            True if the observer is running
        """
        if self._observer is not None:
            return True

        if not self.root.is_dir():
            logger.warning(f"Cannot watch non-existent directory: {self.root}")
            return False

        self._observer = Observer()
        self._observer.schedule(_StoryEventHandler(self), str(self.root), recursive=True)
        self._observer.start()
        logger.info(f"Watching {self.pattern}")
        return True

    def stop(self) -> None:
        """Stop watching."""
        if self._observer is None:
            return

        self._observer.stop()
        self._observer.join(timeout=2.0)
        self._observer = None

    def __enter__(self) -> WatchdogChangeDetector:
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()


def create_detector(pattern: str, mode: str = "poll") -> Detector:
    """
    Build and prime a detector.

    The polling detector records the current state, so the first
    has_changed() after creation only reports real edits.
    """
    if mode == "watchdog":
        detector = WatchdogChangeDetector(pattern)
        detector.start()
        return detector

    detector = ChangeDetector(pattern)
    detector.has_changed()
    return detector
