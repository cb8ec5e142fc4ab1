# tests/test_task_facade.py

from __future__ import annotations

import asyncio

import pytest

from lifecycle_tasks.core.errors import AbortError, ExecutionError, ModuleLoadError, PreconditionError
from lifecycle_tasks.core.state import TaskEvent, TaskState
from lifecycle_tasks.task import Task

from .fakes import RecordingAdapter


async def _started(task: Task) -> tuple[RecordingAdapter, asyncio.Future]:
    adapter = task.adapter
    assert isinstance(adapter, RecordingAdapter)
    await task.init()
    run_future = task.run("payload")
    await asyncio.sleep(0)
    assert adapter.run_result is not None
    return adapter, run_future


@pytest.mark.asyncio
async def test_init_failure_propagates_unchanged() -> None:
    adapter = RecordingAdapter()
    adapter.init_error = ModuleLoadError("x.py", "not_found")
    task = Task(adapter)

    with pytest.raises(ModuleLoadError) as info:
        await task.init()

    assert info.value is adapter.init_error
    assert task.get_status() == TaskState.ERROR


@pytest.mark.asyncio
async def test_run_success_after_abort_request_does_not_complete() -> None:
    task = Task(RecordingAdapter())
    adapter, run_future = await _started(task)

    abort_future = task.abort()
    await asyncio.sleep(0)
    adapter.run_result.set_result("finished anyway")
    assert await run_future == "finished anyway"
    assert task.get_status() == TaskState.STOPPING

    adapter.abort_result.set_result(None)
    await abort_future
    assert task.get_status() == TaskState.STOPPED


@pytest.mark.asyncio
async def test_abort_failure_after_run_success_still_ends_in_error() -> None:
    task = Task(RecordingAdapter())
    adapter, run_future = await _started(task)

    abort_future = task.abort()
    await asyncio.sleep(0)
    adapter.run_result.set_result("done")
    await run_future
    adapter.abort_result.set_exception(AbortError(RuntimeError("stop hook")))

    with pytest.raises(AbortError):
        await abort_future
    assert task.get_status() == TaskState.ERROR


@pytest.mark.asyncio
async def test_each_terminal_transition_happens_once() -> None:
    task = Task(RecordingAdapter())
    adapter, run_future = await _started(task)

    adapter.run_result.set_exception(ExecutionError(ValueError("x")))
    with pytest.raises(ExecutionError):
        await run_future

    assert [r.event for r in task.history] == [
        TaskEvent.INIT_SUCCEEDED,
        TaskEvent.RUN_STARTED,
        TaskEvent.RUN_FAILED,
    ]


@pytest.mark.asyncio
async def test_cancelling_the_run_future_is_a_run_failure() -> None:
    task = Task(RecordingAdapter())
    _, run_future = await _started(task)

    run_future.cancel()
    with pytest.raises(asyncio.CancelledError):
        await run_future

    assert task.get_status() == TaskState.ERROR


@pytest.mark.asyncio
async def test_destroy_swallows_adapter_errors() -> None:
    adapter = RecordingAdapter()
    adapter.destroy_error = RuntimeError("cleanup exploded")
    task = Task(adapter)
    await task.init()

    task.destroy()
    task.destroy()

    assert adapter.calls.count("destroy") == 1
    assert task.get_status() == TaskState.READY


@pytest.mark.asyncio
async def test_run_after_destroy_is_rejected() -> None:
    task = Task(RecordingAdapter())
    await task.init()
    task.destroy()

    with pytest.raises(PreconditionError):
        task.run()
    assert task.get_status() == TaskState.READY


def test_repr_mentions_status() -> None:
    task = Task(RecordingAdapter(), name="demo")
    assert "demo" in repr(task)
    assert "created" in repr(task)
