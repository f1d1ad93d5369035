"""
Preemption of in-flight pipeline runs.

When a newer batch supersedes the one being processed, the running command is
killed and the rest of its pipeline is skipped. Superseded work is discarded,
never resumed: the next run acts on the new batch only.
"""

import logging

from xnotify.engine.state import EngineState

logger = logging.getLogger(__name__)


class PreemptionController:
    """
    Kills the active run's process on request.

    preempt() is fire-and-forget; the debounce window gives the killed
    process time to exit, and the consumer calls wait_for_exit() before it
    starts the next run.
    """

    def __init__(self, state: EngineState, enabled: bool = True) -> None:
        """
        Args:
            state: Engine state holding the active run
            enabled: False keeps runs alive and queues new batches behind them
        """
        self._state = state
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def preempt(self) -> bool:
        """
        Cancel the active run and kill its process.

        Returns:
            True if a kill signal was sent
        """
        if not self._enabled:
            return False
        return self._cancel_active(count=True)

    def abort(self) -> bool:
        """Kill the active run on shutdown, whatever the preempt policy."""
        return self._cancel_active(count=False)

    def _cancel_active(self, count: bool) -> bool:
        run = self._state.active_run
        if run is None:
            return False

        if not run.cancelled:
            run.cancelled = True
            if count:
                self._state.runs_preempted += 1

        process = run.process
        if process is None or process.returncode is not None:
            # Already exited, or between two commands
            return False

        logger.info(f"Killing program (pid {process.pid})")
        try:
            process.kill()
        except ProcessLookupError:
            return False
        return True

    async def wait_for_exit(self) -> None:
        """Wait until no run is active. Returns immediately when idle."""
        run = self._state.active_run
        if run is not None:
            await run.finished.wait()
