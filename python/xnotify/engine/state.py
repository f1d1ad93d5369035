"""Engine state shared by the task runner and the preemption controller."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class EngineStatus(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    RUNNING = "running"


@dataclass
class PipelineRun:
    """
    One execution attempt of the task list.

    Owns at most one live process at a time. cancelled is set by preemption;
    the runner checks it before starting each command.
    """

    run_id: int
    event_count: int = 0
    process: Optional[asyncio.subprocess.Process] = None
    cancelled: bool = False
    finished: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def process_alive(self) -> bool:
        return self.process is not None and self.process.returncode is None


@dataclass
class EngineState:
    """
    Mutable state of one engine instance.

    Only touched from the engine's event loop, so plain attribute assignment
    is atomic with respect to every reader.
    """

    active_run: Optional[PipelineRun] = None
    runs_started: int = 0
    runs_failed: int = 0
    runs_preempted: int = 0

    def begin_run(self, event_count: int = 0) -> PipelineRun:
        self.runs_started += 1
        run = PipelineRun(run_id=self.runs_started, event_count=event_count)
        self.active_run = run
        return run

    def end_run(self, run: PipelineRun, success: bool) -> None:
        if not success:
            self.runs_failed += 1
        run.process = None
        run.finished.set()
        if self.active_run is run:
            self.active_run = None
