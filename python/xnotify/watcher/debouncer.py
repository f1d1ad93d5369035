"""
Event debouncing.

This module provides the DebounceQueue class that collects rapid file changes
and releases them as one batch once the watched files go quiet.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union

from xnotify.watcher.types import Event

logger = logging.getLogger(__name__)

ReleaseCallback = Callable[[list[Event]], Union[None, Awaitable[None]]]


class DebounceQueue:
    """
    Queue that collects rapid file changes and batches them.

    Behavior:
    ---------
    Every recorded event cancels the pending timer and arms a new one, so only
    the timer armed by the latest event can ever fire:
    1. Collect events until debounce_delay seconds pass with no new event
    2. Optionally deduplicate (same path, multiple events -> latest event)
    3. Release the batch to the callback and start a new, empty batch

    Example:
    --------
    a.txt written at t=0ms
    b.txt written at t=50ms       } Collected together
    → Released at t=150ms (100ms window) as [a.txt, b.txt]

    A delay of 0 disables batching: every event is released on its own,
    synchronously, inside record().
    """

    def __init__(
        self,
        debounce_delay: float = 0.2,
        release_callback: Optional[ReleaseCallback] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        dedupe_paths: bool = False,
    ) -> None:
        """
        Initialize debounce queue.

        Args:
        -----
        debounce_delay: Idle seconds before releasing (0 = release immediately)
        release_callback: Called with each released batch (sync or async)
        loop: Event loop that owns the timers
        dedupe_paths: Keep only the latest event per path in a batch

        Raises:
        -------
        ValueError: If debounce_delay is negative
        """
        if debounce_delay < 0:
            raise ValueError("debounce_delay must not be negative")

        self._debounce_delay = debounce_delay
        self._release_callback = release_callback
        self._dedupe_paths = dedupe_paths

        if loop:
            self._loop = loop
        else:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                self._loop = asyncio.new_event_loop()

        # Current batch in arrival order
        self._batch: list[Event] = []
        # path -> index into _batch, only used when deduplicating
        self._positions: dict[str, int] = {}

        self._timer_handle: Optional[asyncio.TimerHandle] = None
        self._release_count = 0

    @property
    def debounce_delay(self) -> float:
        return self._debounce_delay

    @property
    def pending(self) -> list[Event]:
        """Events waiting in the current batch."""
        return list(self._batch)

    @property
    def armed(self) -> bool:
        """True while a release timer is waiting to fire."""
        return self._timer_handle is not None

    @property
    def release_count(self) -> int:
        """Number of non-empty batches released so far."""
        return self._release_count

    def __len__(self) -> int:
        return len(self._batch)

    def record(self, event: Event) -> None:
        """
        Add event to the current batch and reset the debounce timer.

        Deduplication Rules (dedupe_paths=True):
        ----------------------------------------
        - Same path seen again → latest event replaces the earlier one,
          keeping the earlier one's position in the batch
        """
        if self._dedupe_paths and event.path in self._positions:
            self._batch[self._positions[event.path]] = event
        else:
            self._positions[event.path] = len(self._batch)
            self._batch.append(event)

        if self._timer_handle:
            self._timer_handle.cancel()
            self._timer_handle = None

        if self._debounce_delay == 0:
            self._fire()
            return

        self._timer_handle = self._loop.call_later(self._debounce_delay, self._fire)

    def _take(self) -> list[Event]:
        """Detach the current batch and start a new one."""
        batch = self._batch
        self._batch = []
        self._positions = {}
        return batch

    def _fire(self) -> None:
        """Timer callback: release the batch if there is one."""
        self._timer_handle = None
        batch = self._take()
        if not batch:
            return
        self._release(batch)

    def _release(self, batch: list[Event]) -> None:
        self._release_count += 1
        logger.debug(f"Releasing batch of {len(batch)} event(s)")

        if not self._release_callback:
            return

        try:
            result = self._release_callback(batch)
            if asyncio.iscoroutine(result):
                task = self._loop.create_task(result)
                task.add_done_callback(_log_task_error)
        except Exception as e:
            # Log error but don't raise (keep watching)
            logger.error(f"Error in release callback: {e}", exc_info=True)

    async def flush(self) -> None:
        """
        Release all pending events now.

        Behavior:
        ---------
        1. Cancel debounce timer
        2. Take the batch and clear it
        3. Call the release callback (skipped when the batch is empty)
        """
        if self._timer_handle:
            self._timer_handle.cancel()
            self._timer_handle = None

        batch = self._take()
        if not batch:
            return

        self._release_count += 1
        if self._release_callback:
            try:
                result = self._release_callback(batch)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error in release callback: {e}", exc_info=True)

    def cancel(self) -> None:
        """Drop the pending batch without releasing it."""
        if self._timer_handle:
            self._timer_handle.cancel()
            self._timer_handle = None
        self._take()


def _log_task_error(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Error in release callback: {exc}", exc_info=exc)
