"""
Task pipeline runner.

Runs the configured commands one after another in the base directory,
stopping at the first command that does not exit successfully. Output of each
command is copied to stderr as it arrives.
"""

import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import BinaryIO, Optional, Sequence

from xnotify.config import TaskSpec
from xnotify.engine.state import EngineState, PipelineRun
from xnotify.watcher.types import Event

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 4096
_DRAIN_TIMEOUT = 1.0  # seconds to finish copying output after a command exits


class TaskRunner:
    """
    Sequential runner for the task pipeline.

    The process of the command being executed is published on the engine
    state before the runner waits for it, so PreemptionController can kill it
    from another task.
    """

    def __init__(
        self,
        tasks: Sequence[TaskSpec],
        base_path: Path,
        state: EngineState,
        suppress_output: bool = False,
        stream: Optional[BinaryIO] = None,
    ) -> None:
        """
        Args:
            tasks: Commands to run, in order
            base_path: Working directory of every command
            state: Engine state the current run is published on
            suppress_output: Discard command output instead of streaming it
            stream: Binary stream for command output (default: stderr)
        """
        self._tasks = list(tasks)
        self._base_path = Path(base_path)
        self._state = state
        self._suppress_output = suppress_output
        self._stream = stream

    @property
    def tasks(self) -> list[TaskSpec]:
        return list(self._tasks)

    def _output_stream(self) -> BinaryIO:
        if self._stream is not None:
            return self._stream
        return sys.stderr.buffer

    async def run(self, batch: Sequence[Event] = ()) -> bool:
        """
        Run every task in order.

        Returns:
            True if all tasks exited with status 0; False on the first
            failure, spawn error or kill (remaining tasks are skipped)
        """
        run = self._state.begin_run(event_count=len(batch))
        logger.info(f"Executing {len(self._tasks)} task(s) for {len(batch)} event(s)")
        start = time.monotonic()

        ok = True
        try:
            for task in self._tasks:
                if run.cancelled:
                    logger.info(f"Run {run.run_id} preempted before {task.name}")
                    ok = False
                    break
                ok = await self._exec(run, task)
                if not ok:
                    break
        finally:
            self._state.end_run(run, ok)

        elapsed = time.monotonic() - start
        if ok:
            logger.info(f"Completed in {elapsed:.3f}s")
        else:
            logger.warning(f"Run {run.run_id} did not complete ({elapsed:.3f}s)")
        return ok

    async def _exec(self, run: PipelineRun, task: TaskSpec) -> bool:
        output = asyncio.subprocess.DEVNULL if self._suppress_output else asyncio.subprocess.PIPE
        try:
            process = await asyncio.create_subprocess_exec(
                task.name,
                *task.args,
                cwd=str(self._base_path),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=output,
                stderr=output,
            )
        except OSError as e:
            logger.error(f"Cannot start {task.name}: {e}")
            return False

        run.process = process
        logger.debug(f"Started {task} (pid {process.pid})")
        if run.cancelled:
            # Preempted while the process was being spawned
            logger.info(f"Killing program (pid {process.pid})")
            process.kill()

        copiers = []
        if not self._suppress_output:
            copiers = [
                asyncio.create_task(self._copy_output(process.stdout)),
                asyncio.create_task(self._copy_output(process.stderr)),
            ]

        returncode = await process.wait()
        # A killed command's children may still hold the pipes open
        await _finish_copiers(copiers, drain=returncode >= 0)

        if returncode == 0:
            return True
        if returncode < 0:
            logger.error(f"{task.name}: terminated by signal {-returncode}")
        else:
            logger.error(f"{task.name}: exit status {returncode}")
        return False

    async def _copy_output(self, reader: Optional[asyncio.StreamReader]) -> None:
        if reader is None:
            return
        stream = self._output_stream()
        while True:
            chunk = await reader.read(_CHUNK_SIZE)
            if not chunk:
                break
            stream.write(chunk)
            stream.flush()


async def _finish_copiers(copiers: list[asyncio.Task], drain: bool) -> None:
    pending = set(copiers)
    if drain and pending:
        _, pending = await asyncio.wait(pending, timeout=_DRAIN_TIMEOUT)
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
