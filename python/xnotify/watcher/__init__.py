"""
File system watching and event batching.

Typical usage:
--------------
    from xnotify.watcher import DebounceQueue, FileWatcher

    queue = DebounceQueue(debounce_delay=0.1, release_callback=on_batch)

    watcher = FileWatcher(
        base_path=Path("/project"),
        paths=[Path("/project/src")],
        event_callback=queue.record,
    )
    watcher.start()
    # ... watcher runs in background ...
    watcher.stop()

EDGE CASES
==========

- Event for a path outside the base → Logged and ignored
- Directory changes caused by a file change → Reported with is_directory=True,
  the dispatcher decides (see DirectoryEventPolicy)
- Renames → Reported once, on the old name
- Callback raises → Logged, watching continues
- Release timer fires with an empty batch → No-op
- Paths use forward slashes internally (Unix style)
"""

from xnotify.watcher.core import FileWatcher
from xnotify.watcher.debouncer import DebounceQueue
from xnotify.watcher.handlers import WatchdogEventHandler
from xnotify.watcher.types import Event, Operation, Release

__all__ = [
    "Event",
    "Operation",
    "Release",
    "FileWatcher",
    "DebounceQueue",
    "WatchdogEventHandler",
]
