"""
Event coalescing and task execution.

See xnotify.engine.core for how the pieces fit together.
"""

from xnotify.engine.core import Engine, collect_watch_paths, run_engine
from xnotify.engine.dispatch import Dispatcher
from xnotify.engine.preemption import PreemptionController
from xnotify.engine.printer import BatchPrinter, format_event
from xnotify.engine.runner import TaskRunner
from xnotify.engine.state import EngineState, EngineStatus, PipelineRun

__all__ = [
    "Engine",
    "EngineState",
    "EngineStatus",
    "PipelineRun",
    "Dispatcher",
    "PreemptionController",
    "BatchPrinter",
    "TaskRunner",
    "collect_watch_paths",
    "format_event",
    "run_engine",
]
