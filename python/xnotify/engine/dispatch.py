"""
Dispatch fan-out.

Every raw event from the file watcher or the HTTP listener goes through
Dispatcher.on_event, which filters it and then hands it independently to the
print path, the forward path and the task pipeline.
"""

import asyncio
import logging
from typing import Callable, Optional

from xnotify.config import DirectoryEventPolicy, EngineConfig
from xnotify.engine.preemption import PreemptionController
from xnotify.engine.printer import BatchPrinter
from xnotify.forwarder import EventForwarder
from xnotify.watcher.debouncer import DebounceQueue
from xnotify.watcher.types import Event

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Fans one event out to the configured paths.

    The paths share nothing: the print path and the accumulator only append
    and re-arm a timer, and the forward path runs as its own task, so a slow
    or failing listener never delays printing or task execution.
    """

    def __init__(
        self,
        config: EngineConfig,
        printer: Optional[BatchPrinter] = None,
        forwarder: Optional[EventForwarder] = None,
        accumulator: Optional[DebounceQueue] = None,
        preemption: Optional[PreemptionController] = None,
        on_accept: Optional[Callable[[Event], None]] = None,
    ) -> None:
        self._config = config
        self._printer = printer
        self._forwarder = forwarder
        self._accumulator = accumulator
        self._preemption = preemption
        self._on_accept = on_accept
        self._forward_tasks: set[asyncio.Task] = set()
        self.accepted = 0
        self.dropped = 0

    def accepts(self, event: Event) -> bool:
        """True when the event passes the operation, directory and exclusion filters."""
        if event.operation not in self._config.trigger_operations:
            return False
        if event.is_directory and self._config.directory_events is DirectoryEventPolicy.DROP:
            return False
        if self._config.is_excluded(event.path):
            return False
        return True

    def on_event(self, event: Event) -> None:
        """Handle one raw event. Must be called on the engine's event loop."""
        if not self.accepts(event):
            self.dropped += 1
            logger.debug(f"Dropped: {event}")
            return

        self.accepted += 1
        if self._on_accept is not None:
            self._on_accept(event)

        if self._printer is not None:
            self._isolated("print", self._printer.record, event)

        if self._forwarder is not None:
            self._isolated("forward", self._schedule_forward, event)

        if self._accumulator is not None:
            self._isolated("tasks", self._accumulate, event)

    def _isolated(self, path_name: str, handler: Callable[[Event], None], event: Event) -> None:
        try:
            handler(event)
        except Exception as e:
            logger.error(f"Error in {path_name} path for '{event}': {e}", exc_info=True)

    def _accumulate(self, event: Event) -> None:
        if self._preemption is not None:
            self._preemption.preempt()
        self._accumulator.record(event)

    def _schedule_forward(self, event: Event) -> None:
        task = asyncio.get_running_loop().create_task(self._forwarder.forward(event))
        self._forward_tasks.add(task)
        task.add_done_callback(self._forward_tasks.discard)

    async def drain(self) -> None:
        """Wait for in-flight forwards (shutdown and tests)."""
        if self._forward_tasks:
            await asyncio.gather(*list(self._forward_tasks), return_exceptions=True)
