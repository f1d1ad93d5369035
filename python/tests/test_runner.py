"""
Tests for TaskRunner: sequential execution, halting, output streaming, and process publication.
"""

import asyncio
import io
import logging

import pytest

from xnotify.config import TaskSpec
from xnotify.engine import EngineState, TaskRunner


def make_runner(tasks, base, state=None, **kwargs):
    kwargs.setdefault("stream", io.BytesIO())
    return TaskRunner(
        tasks=[TaskSpec(tuple(t)) for t in tasks],
        base_path=base,
        state=state or EngineState(),
        **kwargs,
    )


# ============================================================================
# SEQUENCING TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_all_tasks_succeed(temp_workspace, shell_task):
    """Test: Every task runs, in order, and the run reports success."""
    runner = make_runner(
        [shell_task("echo one >> log.txt"), shell_task("echo two >> log.txt")],
        temp_workspace,
    )

    assert await runner.run() is True
    assert (temp_workspace / "log.txt").read_text().split() == ["one", "two"]


@pytest.mark.asyncio
async def test_halts_at_first_failure(temp_workspace, shell_task):
    """Test: tasks [echo, false, echo] → failure, third echo never runs."""
    runner = make_runner(
        [shell_task("echo one >> log.txt"), ("false",), shell_task("echo three >> log.txt")],
        temp_workspace,
    )

    assert await runner.run() is False
    assert (temp_workspace / "log.txt").read_text().split() == ["one"]


@pytest.mark.asyncio
async def test_failure_is_logged_with_exit_status(temp_workspace, shell_task, caplog):
    """Test: A non-zero exit is logged with its status."""
    runner = make_runner([shell_task("exit 3")], temp_workspace)

    assert await runner.run() is False
    assert "exit status 3" in caplog.text


@pytest.mark.asyncio
async def test_tasks_run_in_base_path(temp_workspace):
    """Test: The working directory of each task is the base path."""
    stream = io.BytesIO()
    runner = make_runner([("pwd",)], temp_workspace, stream=stream)

    assert await runner.run() is True
    assert stream.getvalue().decode().strip() == str(temp_workspace.resolve())


@pytest.mark.asyncio
async def test_spawn_failure_is_failure(temp_workspace, shell_task, caplog):
    """Test: A missing executable fails the run and skips the rest."""
    runner = make_runner(
        [("xnotify-no-such-command",), shell_task("echo never > never.txt")],
        temp_workspace,
    )

    assert await runner.run() is False
    assert not (temp_workspace / "never.txt").exists()
    assert "Cannot start xnotify-no-such-command" in caplog.text


# ============================================================================
# OUTPUT TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_stdout_and_stderr_are_streamed(temp_workspace, shell_task):
    """Test: Both output streams of a task end up in the output stream."""
    stream = io.BytesIO()
    runner = make_runner([shell_task("echo out; echo err >&2")], temp_workspace, stream=stream)

    await runner.run()

    output = stream.getvalue().decode()
    assert "out" in output
    assert "err" in output


@pytest.mark.asyncio
async def test_output_suppressed(temp_workspace, shell_task):
    """Test: suppress_output discards task output."""
    stream = io.BytesIO()
    runner = make_runner(
        [shell_task("echo out; echo err >&2")], temp_workspace, stream=stream, suppress_output=True
    )

    assert await runner.run() is True
    assert stream.getvalue() == b""


# ============================================================================
# STATE TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_process_published_while_running(temp_workspace):
    """Test: The running process is visible on the engine state, and cleared after."""
    state = EngineState()
    runner = make_runner([("sleep", "0.3")], temp_workspace, state=state)

    run_task = asyncio.create_task(runner.run())
    await asyncio.sleep(0.1)

    assert state.active_run is not None
    assert state.active_run.process is not None
    assert state.active_run.process.returncode is None

    assert await run_task is True
    assert state.active_run is None
    assert state.runs_started == 1
    assert state.runs_failed == 0


@pytest.mark.asyncio
async def test_killed_task_reports_terminated(temp_workspace, shell_task, caplog):
    """Test: A task killed from outside fails the run, logged as terminated."""
    state = EngineState()
    runner = make_runner([("sleep", "5"), shell_task("echo never > never.txt")], temp_workspace, state=state)

    run_task = asyncio.create_task(runner.run())
    await asyncio.sleep(0.2)
    state.active_run.process.kill()

    assert await asyncio.wait_for(run_task, timeout=2) is False
    assert "terminated by signal" in caplog.text
    assert not (temp_workspace / "never.txt").exists()
    assert state.runs_failed == 1


@pytest.mark.asyncio
async def test_run_logs_completion(temp_workspace, caplog):
    """Test: Start and completion of a run are logged at INFO."""
    caplog.set_level(logging.INFO, logger="xnotify")
    runner = make_runner([("true",)], temp_workspace)

    await runner.run()

    assert "Executing 1 task(s) for 0 event(s)" in caplog.text
    assert "Completed in" in caplog.text
