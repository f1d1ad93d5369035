"""
Core file watching implementation.

This module provides the FileWatcher class that watches an explicit list of
files and directories (already expanded by xnotify.paths) with the watchdog
library and routes every change to a callback on the asyncio event loop.

Directories are scheduled non-recursively: recursion is decided when the
watch list is built, so excluded sub-trees are never watched at all.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, Optional

from xnotify.watcher.types import Event

logger = logging.getLogger(__name__)


class FileWatcher:
    """
    File watcher over an explicit watch list.

    Constructor Args:
    -----------------
    base_path: Directory that event paths are made relative to
    paths: Files and directories to watch
    event_callback: Called on the event loop with each Event

    Example Usage:
    --------------
    >>> watcher = FileWatcher(
    ...     base_path=Path("/project"),
    ...     paths=find_paths(Path("/project"), ".", recursive=True, excludes=[]),
    ...     event_callback=dispatcher.on_event,
    ... )
    >>> watcher.start()
    >>> # ... watcher runs in background ...
    >>> watcher.stop()
    """

    def __init__(
        self,
        base_path: Path,
        paths: Iterable[Path],
        event_callback: Callable[[Event], None],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """
        Initialize file watcher (not started yet).

        Raises:
        -------
        FileNotFoundError: If base_path doesn't exist
        ValueError: If base_path is not a directory
        TypeError: If event_callback not callable
        """
        if not base_path.exists():
            raise FileNotFoundError(f"Base path does not exist: {base_path}")
        if not base_path.is_dir():
            raise ValueError(f"Base path is not a directory: {base_path}")
        if not callable(event_callback):
            raise TypeError("event_callback must be callable")

        self.base_path = base_path.resolve()
        self._event_callback = event_callback
        self._loop = loop

        self._watched_dirs: set[Path] = set()
        self._watched_files: set[Path] = set()
        for path in paths:
            path = Path(path)
            if not path.is_absolute():
                path = self.base_path / path
            path = path.resolve()
            if path.is_dir():
                self._watched_dirs.add(path)
            elif path.exists():
                self._watched_files.add(path)
            else:
                logger.warning(f"Path does not exist, not watching: {path}")

        self._observer = None
        self._event_handler = None

    @property
    def watch_count(self) -> int:
        """Number of files and directories in the watch list."""
        return len(self._watched_dirs) + len(self._watched_files)

    def is_watched(self, path: Path) -> bool:
        """True when a change at path belongs to the watch list."""
        return (
            path in self._watched_dirs
            or path in self._watched_files
            or path.parent in self._watched_dirs
        )

    def _directories_to_schedule(self) -> set[Path]:
        dirs = set(self._watched_dirs)
        for file_path in self._watched_files:
            dirs.add(file_path.parent)
        return dirs

    def start(self) -> None:
        """
        Start watching.

        Raises:
        -------
        RuntimeError: If already running, or no event loop is available
        """
        if self.is_running():
            raise RuntimeError("FileWatcher is already running")

        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                raise RuntimeError("FileWatcher.start() needs a running event loop") from None

        from watchdog.observers import Observer

        from xnotify.watcher.handlers import WatchdogEventHandler

        self._event_handler = WatchdogEventHandler(watcher=self)
        self._observer = Observer()
        for directory in sorted(self._directories_to_schedule()):
            self._observer.schedule(self._event_handler, str(directory), recursive=False)
            logger.debug(f"Watching: {directory}")

        self._observer.daemon = True
        self._observer.start()
        logger.info(f"Watching {self.watch_count} path(s) under {self.base_path}")

    async def handle_event(self, event: Event) -> None:
        """
        Handle event from watchdog.

        Called by WatchdogEventHandler (via the event loop) when a file system
        event occurs. Errors in the callback are logged, never raised back
        into the observer.
        """
        try:
            self._event_callback(event)
        except Exception as e:
            logger.error(f"Error handling event {event}: {e}", exc_info=True)

    def stop(self) -> None:
        """Stop watching and clean up resources."""
        if self._observer is not None:
            logger.info("Stopping file watcher")
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            self._event_handler = None

    def is_running(self) -> bool:
        """Check if watcher is currently active."""
        if self._observer is not None:
            return self._observer.is_alive()
        return False
