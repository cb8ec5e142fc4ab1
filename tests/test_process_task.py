# tests/test_process_task.py

"""ProcessTask end to end: real worker processes running the modules in tests/fixtures/."""

from __future__ import annotations

import asyncio
import contextlib

import pytest

from lifecycle_tasks.core.errors import (
    AbortError,
    ExecutionError,
    LoadFailure,
    ModuleLoadError,
    WorkerCrashed,
)
from lifecycle_tasks.core.state import TaskState

pytestmark = pytest.mark.asyncio


async def _settle(future: asyncio.Future) -> None:
    with contextlib.suppress(Exception):
        await future


# ---- init ----

async def test_init_module_does_not_exist(make_process_task) -> None:
    task = make_process_task("not-exist.py")

    with pytest.raises(ModuleLoadError) as info:
        await task.init()

    assert info.value.kind == LoadFailure.NOT_FOUND
    assert task.get_status() == TaskState.ERROR


async def test_init_bad_module(make_process_task) -> None:
    task = make_process_task("bad.py")

    with pytest.raises(ModuleLoadError) as info:
        await task.init()

    assert info.value.kind == LoadFailure.IMPORT_FAILED
    assert "refuses to load" in str(info.value)
    assert task.get_status() == TaskState.ERROR


async def test_init_module_without_run(make_process_task) -> None:
    task = make_process_task("no_run.py")

    with pytest.raises(ModuleLoadError) as info:
        await task.init()

    assert info.value.kind == LoadFailure.INVALID_MODULE


async def test_created(make_process_task) -> None:
    task = make_process_task("stopable.py")
    assert task.get_status() == TaskState.CREATED


async def test_ready(make_process_task) -> None:
    task = make_process_task("stopable.py")
    await task.init()

    assert task.get_status() == TaskState.READY
    assert task.adapter.pid is not None


# ---- run ----

async def test_running(make_process_task) -> None:
    task = make_process_task("stopable.py")
    await task.init()

    run_future = task.run(None)
    await asyncio.sleep(0.2)
    try:
        assert task.get_status() == TaskState.RUNNING
    finally:
        await task.abort()
        await _settle(run_future)


async def test_completed(make_process_task) -> None:
    task = make_process_task("completed.py")
    await task.init()

    result = await task.run(None)

    assert task.get_status() == TaskState.COMPLETED
    assert result == "result"


async def test_error(make_process_task) -> None:
    task = make_process_task("error.py")
    await task.init()

    with pytest.raises(ExecutionError) as info:
        await task.run(None)

    assert info.value.original.type_name == "RuntimeError"
    assert "task logic failed" in str(info.value)
    assert task.get_status() == TaskState.ERROR


async def test_arguments_cross_the_process_boundary(make_process_task) -> None:
    task = make_process_task("echo.py")
    await task.init()

    result = await task.run(1, "two", [3], {"four": 4.0}, None)

    # echo.py also prints to stdout; the control channel must not see it.
    assert result == {"args": [1, "two", [3], {"four": 4.0}, None]}


async def test_plain_function_module(make_process_task) -> None:
    task = make_process_task("sync_add.py")
    await task.init()

    assert await task.run(2, 40) == 42


async def test_unserializable_result_is_an_error(make_process_task) -> None:
    task = make_process_task("unserializable.py")
    await task.init()

    with pytest.raises(ExecutionError) as info:
        await task.run()

    assert info.value.original.type_name == "TypeError"
    assert task.get_status() == TaskState.ERROR


async def test_worker_crash_during_run(make_process_task) -> None:
    task = make_process_task("crash.py")
    await task.init()

    with pytest.raises(WorkerCrashed) as info:
        await task.run()

    assert info.value.returncode == 3
    assert task.get_status() == TaskState.ERROR


# ---- abort ----

async def test_stopping(make_process_task) -> None:
    task = make_process_task("stopable.py")
    await task.init()
    run_future = task.run(None)
    await asyncio.sleep(0.2)

    abort_future = task.abort()

    assert task.get_status() == TaskState.STOPPING
    await abort_future
    await _settle(run_future)


async def test_stopped(make_process_task) -> None:
    task = make_process_task("stopable.py")
    await task.init()
    run_future = task.run(None)
    await asyncio.sleep(0.2)

    await task.abort()

    assert task.get_status() == TaskState.STOPPED
    assert await run_future == "stopped cleanly"
    assert task.get_status() == TaskState.STOPPED


async def test_error_while_stopping(make_process_task) -> None:
    task = make_process_task("error_while_stopping.py")
    await task.init()
    run_future = task.run(None)
    await asyncio.sleep(0.2)

    with pytest.raises(AbortError) as info:
        await task.abort()

    assert "cleanup failed while stopping" in str(info.value)
    # A failed abort is terminal Error, even though the worker did stop.
    assert task.get_status() == TaskState.ERROR
    await _settle(run_future)


async def test_stop_cancels_a_run_that_ignores_the_signal(make_process_task) -> None:
    task = make_process_task("stubborn.py", stop_timeout_seconds=0.2)
    await task.init()
    run_future = task.run()
    await asyncio.sleep(0.2)

    await task.abort()

    assert task.get_status() == TaskState.STOPPED
    with pytest.raises(ExecutionError) as info:
        await run_future
    assert info.value.original.type_name == "CancelledError"


# ---- destroy ----

async def test_destroy_during_run_fails_the_run(make_process_task) -> None:
    task = make_process_task("stopable.py")
    await task.init()
    run_future = task.run()
    await asyncio.sleep(0.2)

    task.destroy()
    task.destroy()

    with pytest.raises(WorkerCrashed):
        await run_future
    # The interrupted run moved the task to Error; destroy itself changes nothing.
    assert task.get_status() == TaskState.ERROR


async def test_destroy_before_init(make_process_task) -> None:
    task = make_process_task("completed.py")

    task.destroy()
    task.destroy()

    assert task.get_status() == TaskState.CREATED


async def test_oversized_result_is_an_error_not_a_hang(make_process_task) -> None:
    task = make_process_task("huge.py")
    await task.init()

    with pytest.raises(ExecutionError) as info:
        await asyncio.wait_for(task.run(), timeout=30)

    assert info.value.original.type_name == "ValueError"
    assert "byte limit" in str(info.value)
    assert task.get_status() == TaskState.ERROR


async def test_worker_crash_during_abort(make_process_task) -> None:
    task = make_process_task("crash_on_abort.py")
    await task.init()
    run_future = task.run()
    await asyncio.sleep(0.2)

    with pytest.raises(WorkerCrashed) as info:
        await task.abort()

    assert info.value.returncode == 9
    assert task.get_status() == TaskState.ERROR
    with pytest.raises(WorkerCrashed):
        await run_future
