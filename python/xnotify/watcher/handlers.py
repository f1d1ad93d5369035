"""
Internal event handlers for watchdog file system monitoring.

This module provides the low-level event handler that interfaces with
the watchdog library to dispatch file system events to the watcher.

watchdog has no attribute-change event: inotify IN_ATTRIB (chmod, touch)
arrives as "modified" and is reported as Operation.WRITE. Operation.ATTRIBUTE
is therefore never produced locally; it only reaches the engine in events
received by the HTTP listener.
"""

import asyncio
import logging
from pathlib import Path

from xnotify.watcher.types import Event, Operation, normalize_path

logger = logging.getLogger(__name__)

# watchdog event_type -> Operation
_OPERATIONS = {
    "created": Operation.CREATE,
    "modified": Operation.WRITE,
    "deleted": Operation.REMOVE,
    "moved": Operation.RENAME,
}


class WatchdogEventHandler:
    """
    Internal event handler for watchdog.

    This class receives raw file system events from watchdog on the observer
    thread, converts them to Events relative to the watch base, and hands them
    to the FileWatcher on its event loop.
    """

    def __init__(self, watcher: "FileWatcher") -> None:  # noqa: F821
        """
        Initialize event handler.

        Args:
        -----
        watcher: FileWatcher instance to route events to
        """
        self.watcher = watcher

    def dispatch(self, event) -> None:
        """Dispatch file system events to watcher."""
        operation = _OPERATIONS.get(event.event_type)
        if operation is None:
            # opened/closed notifications carry no change
            return

        # Renames are reported on the old name, like inotify does
        file_path = Path(_as_str(event.src_path))
        if not self.watcher.is_watched(file_path):
            return

        try:
            rel_path = file_path.relative_to(self.watcher.base_path)
        except ValueError:
            logger.warning(f"Ignoring event outside base path: {file_path}")
            return

        converted = Event(
            operation=operation,
            path=normalize_path(str(rel_path)),
            is_directory=event.is_directory,
        )

        asyncio.run_coroutine_threadsafe(
            self.watcher.handle_event(converted), self.watcher._loop
        )


def _as_str(path) -> str:
    # watchdog reports bytes paths when it was scheduled with bytes
    if isinstance(path, bytes):
        return path.decode(errors="surrogateescape")
    return path
