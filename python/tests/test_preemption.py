"""
Tests for PreemptionController: killing the active run and waiting for it to exit.
"""

import asyncio
import io

import pytest

from xnotify.config import TaskSpec
from xnotify.engine import EngineState, PreemptionController, TaskRunner


def make_runner(tasks, base, state):
    return TaskRunner(
        tasks=[TaskSpec(tuple(t)) for t in tasks],
        base_path=base,
        state=state,
        stream=io.BytesIO(),
    )


def test_preempt_without_active_run_is_noop():
    """Test: Nothing running → no signal, no error."""
    state = EngineState()
    controller = PreemptionController(state)

    assert controller.preempt() is False
    assert state.runs_preempted == 0


@pytest.mark.asyncio
async def test_preempt_kills_running_process(temp_workspace):
    """Test: preempt() kills the active process and the run fails promptly."""
    state = EngineState()
    runner = make_runner([("sleep", "5")], temp_workspace, state)
    controller = PreemptionController(state)

    run_task = asyncio.create_task(runner.run())
    await asyncio.sleep(0.2)

    assert controller.preempt() is True
    assert await asyncio.wait_for(run_task, timeout=2) is False
    assert state.runs_preempted == 1


@pytest.mark.asyncio
async def test_preempt_does_not_wait_for_exit(temp_workspace):
    """Test: preempt() returns before the killed process has been reaped."""
    state = EngineState()
    runner = make_runner([("sleep", "5")], temp_workspace, state)
    controller = PreemptionController(state)

    run_task = asyncio.create_task(runner.run())
    await asyncio.sleep(0.2)
    run = state.active_run

    controller.preempt()
    assert state.active_run is run  # Still owned until the runner sees the exit

    await controller.wait_for_exit()
    assert state.active_run is None
    assert run_task.done()


@pytest.mark.asyncio
async def test_preempt_after_exit_is_noop(temp_workspace):
    """Test: Killing a process that already exited is safe."""
    state = EngineState()
    runner = make_runner([("true",)], temp_workspace, state)
    controller = PreemptionController(state)

    await runner.run()

    assert controller.preempt() is False


@pytest.mark.asyncio
async def test_preempt_skips_remaining_tasks(temp_workspace):
    """Test: A preempted run does not start its next command."""
    state = EngineState()
    runner = make_runner(
        [("sleep", "5"), ("sh", "-c", "echo never > never.txt")],
        temp_workspace,
        state,
    )
    controller = PreemptionController(state)

    run_task = asyncio.create_task(runner.run())
    await asyncio.sleep(0.2)
    controller.preempt()

    assert await asyncio.wait_for(run_task, timeout=2) is False
    assert not (temp_workspace / "never.txt").exists()


@pytest.mark.asyncio
async def test_preempt_while_process_is_starting(temp_workspace):
    """Test: A preempt that lands during spawn kills the process once it exists."""
    state = EngineState()
    runner = make_runner([("sleep", "1.5")], temp_workspace, state)
    controller = PreemptionController(state)

    run_task = asyncio.create_task(runner.run())
    await asyncio.sleep(0)  # Runner is now awaiting the spawn
    assert state.active_run is not None
    assert controller.preempt() is False  # No process to signal yet

    started = asyncio.get_running_loop().time()
    await asyncio.wait_for(controller.wait_for_exit(), timeout=1)

    assert asyncio.get_running_loop().time() - started < 0.5
    assert await run_task is False
    assert state.runs_preempted == 1


@pytest.mark.asyncio
async def test_cancelled_between_commands_stops_pipeline(temp_workspace):
    """Test: Cancelling while no process is live still stops the pipeline."""
    state = EngineState()
    controller = PreemptionController(state)
    runner = make_runner([("sh", "-c", "echo never > never.txt")], temp_workspace, state)

    # Preempt as soon as the run is registered, before any process starts
    original_begin = state.begin_run

    def begin_and_preempt(*args, **kwargs):
        run = original_begin(*args, **kwargs)
        assert controller.preempt() is False  # No process to signal yet
        return run

    state.begin_run = begin_and_preempt

    assert await runner.run() is False
    assert not (temp_workspace / "never.txt").exists()


@pytest.mark.asyncio
async def test_disabled_preemption_lets_run_finish(temp_workspace):
    """Test: Queue policy (enabled=False) never kills."""
    state = EngineState()
    runner = make_runner([("sleep", "0.3")], temp_workspace, state)
    controller = PreemptionController(state, enabled=False)

    run_task = asyncio.create_task(runner.run())
    await asyncio.sleep(0.1)

    assert controller.preempt() is False
    assert await run_task is True


@pytest.mark.asyncio
async def test_abort_kills_even_when_disabled(temp_workspace):
    """Test: abort() (shutdown) kills in queue mode too, without counting a preemption."""
    state = EngineState()
    runner = make_runner([("sleep", "5")], temp_workspace, state)
    controller = PreemptionController(state, enabled=False)

    run_task = asyncio.create_task(runner.run())
    await asyncio.sleep(0.2)

    assert controller.abort() is True
    assert await asyncio.wait_for(run_task, timeout=2) is False
    assert state.runs_preempted == 0


@pytest.mark.asyncio
async def test_wait_for_exit_when_idle_returns_immediately():
    """Test: wait_for_exit() with no active run returns at once."""
    controller = PreemptionController(EngineState())

    await asyncio.wait_for(controller.wait_for_exit(), timeout=0.1)
