"""
The engine: coalesces events into batches and drives the task pipeline.

Data flow
---------
    FileWatcher ─┐                       ┌─> BatchPrinter (stdout)
                 ├─> Dispatcher.on_event ┼─> EventForwarder (HTTP)
    listener ────┘                       └─> DebounceQueue ──> release queue ──> consumer ──> TaskRunner

Every released batch is posted to one asyncio.Queue. A single consumer task
drains it and runs the pipeline for each release in turn, so at most one run
is ever active. New events kill the active run (PreemptionController) and the
consumer waits for it to finish before starting the next one. In preempt mode
releases that queued up behind a run are superseded by the newest; in queue
mode every release runs, oldest first.
"""

import asyncio
import logging
from pathlib import Path
from typing import BinaryIO, Iterable, Optional, TextIO

from xnotify.config import EngineConfig, split_address
from xnotify.engine.dispatch import Dispatcher
from xnotify.engine.preemption import PreemptionController
from xnotify.engine.printer import BatchPrinter
from xnotify.engine.runner import TaskRunner
from xnotify.engine.state import EngineState, EngineStatus
from xnotify.forwarder import EventForwarder
from xnotify.paths import find_paths
from xnotify.watcher.debouncer import DebounceQueue
from xnotify.watcher.types import Event, Release

logger = logging.getLogger(__name__)


class Engine:
    """
    One engine instance. Owns all mutable state; nothing is global.

    Lifecycle:
    ----------
    start() builds the paths and the consumer, serve() additionally starts the
    file watcher and listener and runs until stop() or cancellation.
    """

    def __init__(
        self,
        config: EngineConfig,
        stdout: Optional[TextIO] = None,
        task_output: Optional[BinaryIO] = None,
    ) -> None:
        """
        Args:
            config: Resolved configuration (EngineConfig.resolve())
            stdout: Stream for event lines (default: sys.stdout)
            task_output: Binary stream for task output (default: stderr)
        """
        self.config = config
        self.state = EngineState()
        self._stdout = stdout
        self._task_output = task_output

        self.printer: Optional[BatchPrinter] = None
        self.forwarder: Optional[EventForwarder] = None
        self.accumulator: Optional[DebounceQueue] = None
        self.runner: Optional[TaskRunner] = None
        self.preemption: Optional[PreemptionController] = None
        self.dispatcher: Optional[Dispatcher] = None
        self.watcher = None

        self._releases: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._server = None
        self._server_task: Optional[asyncio.Task] = None
        self._stopped: Optional[asyncio.Event] = None
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Build the dispatch paths and start the release consumer.

        Raises:
        -------
        RuntimeError: If already started
        """
        if self._started:
            raise RuntimeError("Engine is already started")
        self._started = True

        loop = asyncio.get_running_loop()
        config = self.config
        self._stopped = asyncio.Event()
        self._releases = asyncio.Queue()

        self.printer = BatchPrinter(
            batch_seconds=config.batch_seconds,
            terminator=config.terminator,
            stream=self._stdout,
            loop=loop,
        )

        if config.forward_address:
            self.forwarder = EventForwarder(config.forward_address)
            logger.info(f"Sending events to client at {config.forward_address}")

        if config.has_tasks:
            self.runner = TaskRunner(
                tasks=config.tasks,
                base_path=Path(config.base_path),
                state=self.state,
                suppress_output=config.suppress_output,
                stream=self._task_output,
            )
            self.preemption = PreemptionController(self.state, enabled=config.preempt)
            self.accumulator = DebounceQueue(
                debounce_delay=config.batch_seconds,
                release_callback=self._post_release,
                loop=loop,
                dedupe_paths=config.dedupe_paths,
            )
            self._consumer = loop.create_task(self._consume())

            if config.trigger_immediately:
                self._releases.put_nowait(Release(triggered=True))

        self.dispatcher = Dispatcher(
            config,
            printer=self.printer,
            forwarder=self.forwarder,
            accumulator=self.accumulator,
            preemption=self.preemption,
        )

    async def serve(self, watch_paths: Iterable[Path] = ()) -> None:
        """
        Start everything and run until stop() is called.

        Args:
            watch_paths: Files and directories for the file watcher
        """
        if not self._started:
            await self.start()

        watch_paths = list(watch_paths)
        if watch_paths:
            from xnotify.watcher.core import FileWatcher

            self.watcher = FileWatcher(
                base_path=Path(self.config.base_path),
                paths=watch_paths,
                event_callback=self.on_event,
            )
            self.watcher.start()

        if self.config.listen_address:
            from xnotify.listener import create_app, create_server

            host, port = split_address(self.config.listen_address)
            self._server = create_server(create_app(self.on_event), host, port)
            self._server_task = asyncio.get_running_loop().create_task(self._server.serve())
            logger.info(f"Listening on {host}:{port}")

        try:
            waiters = [asyncio.ensure_future(self._stopped.wait())]
            if self._server_task is not None:
                waiters.append(self._server_task)
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            if self._server_task is not None and self._server_task.done() and not self._stopped.is_set():
                logger.error("Listener stopped unexpectedly")
        finally:
            for waiter in waiters:
                if waiter is not self._server_task:
                    waiter.cancel()
            await self.stop()

    async def stop(self) -> None:
        """Stop sources, kill any active run and release resources."""
        if self._stopped is not None:
            self._stopped.set()

        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None

        if self._server is not None:
            self._server.should_exit = True
            if self._server_task is not None:
                await asyncio.gather(self._server_task, return_exceptions=True)
            self._server = None

        if self.accumulator is not None:
            self.accumulator.cancel()

        if self.preemption is not None:
            self.preemption.abort()

        if self._consumer is not None:
            self._consumer.cancel()
            await asyncio.gather(self._consumer, return_exceptions=True)
            self._consumer = None

        if self.dispatcher is not None:
            await self.dispatcher.drain()

        if self.forwarder is not None:
            await self.forwarder.aclose()

    # ------------------------------------------------------------------
    # Events and releases
    # ------------------------------------------------------------------

    def on_event(self, event: Event) -> None:
        """Entry point for every raw event (file watcher and listener)."""
        if self.dispatcher is None:
            raise RuntimeError("Engine is not started")
        self.dispatcher.on_event(event)

    def _post_release(self, batch: list[Event]) -> None:
        self._releases.put_nowait(Release(events=tuple(batch)))

    async def _consume(self) -> None:
        """Run the pipeline for each release, one at a time, forever."""
        while True:
            release = await self._releases.get()
            taken = 1
            if self.preemption.enabled:
                # Releases still waiting are superseded by the newest one
                while not self._releases.empty():
                    release = self._releases.get_nowait()
                    taken += 1
                if taken > 1:
                    logger.debug(f"Skipping {taken - 1} superseded release(s)")
            try:
                if not release:
                    continue
                await self.preemption.wait_for_exit()
                await self.runner.run(release.events)
            except Exception as e:
                logger.error(f"Pipeline run failed: {e}", exc_info=True)
            finally:
                for _ in range(taken):
                    self._releases.task_done()

    async def join(self) -> None:
        """Wait until every posted release has been processed."""
        if self._releases is not None:
            await self._releases.join()

    @property
    def status(self) -> EngineStatus:
        if self.state.active_run is not None:
            return EngineStatus.RUNNING
        if self.accumulator is not None and (self.accumulator.armed or len(self.accumulator)):
            return EngineStatus.ACCUMULATING
        return EngineStatus.IDLE


def collect_watch_paths(config: EngineConfig, extra: Iterable[Path] = ()) -> list[Path]:
    """Expand config.includes under the base path and append extra paths."""
    base = Path(config.base_path)
    excludes = config.compiled_excludes
    paths: list[Path] = []
    for pattern in config.includes:
        paths.extend(find_paths(base, pattern, recursive=config.recursive, excludes=excludes))
    paths.extend(extra)
    return paths


def run_engine(config: EngineConfig, watch_paths: Optional[Iterable[Path]] = None) -> None:
    """
    Run an engine until the process is killed.

    Args:
        config: Engine configuration (resolved here)
        watch_paths: Explicit watch list; defaults to expanding config.includes

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    config = config.resolve()
    if watch_paths is None:
        watch_paths = collect_watch_paths(config)
    engine = Engine(config)
    asyncio.run(engine.serve(list(watch_paths)))
