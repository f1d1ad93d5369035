"""Print path: writes '<operation> <path>' lines to stdout, one batch at a time."""

import asyncio
import shlex
import sys
from typing import Optional, Sequence, TextIO

from xnotify.watcher.debouncer import DebounceQueue
from xnotify.watcher.types import Event


def format_event(event: Event) -> str:
    """One stdout line for an event, with the path quoted for a shell."""
    return f"{event.operation.value} {shlex.quote(event.path)}"


class BatchPrinter:
    """
    Prints events under the same debounce window as the task pipeline.

    With a window, each released batch is followed by the terminator so that
    a program reading stdout can tell where a batch ends. Without one, every
    event is printed as soon as it arrives and no terminator is written.
    """

    def __init__(
        self,
        batch_seconds: float = 0,
        terminator: str = "",
        stream: Optional[TextIO] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._terminator = terminator
        self._batched = batch_seconds > 0
        self._stream = stream
        self._queue = DebounceQueue(
            debounce_delay=batch_seconds,
            release_callback=self.print_batch,
            loop=loop,
        )

    def record(self, event: Event) -> None:
        self._queue.record(event)

    def print_batch(self, batch: Sequence[Event]) -> None:
        stream = self._stream or sys.stdout
        for event in batch:
            stream.write(format_event(event) + "\n")
        if self._batched and self._terminator:
            stream.write(self._terminator)
        stream.flush()

    async def flush(self) -> None:
        await self._queue.flush()
