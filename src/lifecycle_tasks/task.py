# src/lifecycle_tasks/task.py

from __future__ import annotations

"""
Task facade.

A Task owns one adapter and one state machine and is the only thing callers touch:

    task = ProcessTask("jobs/resize.py")
    await task.init()
    result = await task.run(payload)
    task.destroy()

run() and abort() are plain methods returning futures: the state change (Running /
Stopping) happens synchronously when they are called, the outcome arrives when the
future settles. This lets callers start a run, look at get_status(), abort, and only
then await both.
"""

import asyncio
import logging
import os
from typing import Any, Generic, TypeVar

from .adapters.async_adapter import AsyncAdapter
from .adapters.process_adapter import ProcessAdapter
from .config import Settings
from .core.errors import PreconditionError
from .core.ports import Adapter, ProcessSpawner, TaskFunction
from .core.state import TaskEvent, TaskState, TaskStateMachine, TransitionRecord

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")


class Task(Generic[ResultT]):
    def __init__(self, adapter: Adapter, *, name: str | None = None) -> None:
        self._adapter = adapter
        self._name = name or type(adapter).__name__
        self._machine = TaskStateMachine()
        self._run_future: asyncio.Future[ResultT] | None = None
        self._abort_future: asyncio.Future[None] | None = None
        self._destroyed = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._name!r} status={self._machine.state.value}>"

    @property
    def name(self) -> str:
        return self._name

    @property
    def adapter(self) -> Adapter:
        return self._adapter

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def history(self) -> list[TransitionRecord]:
        return self._machine.history

    def get_status(self) -> TaskState:
        return self._machine.state

    # ---- lifecycle ----

    async def init(self) -> None:
        self._require_usable("init")
        self._require_state("init", TaskState.CREATED)

        try:
            await self._adapter.init()
        except BaseException:
            self._apply(TaskEvent.INIT_FAILED)
            raise
        self._apply(TaskEvent.INIT_SUCCEEDED)

    def run(self, *args: Any) -> asyncio.Future[ResultT]:
        """
        Start the task and return a future with its result.

        Raises PreconditionError right away unless the task is Ready.
        """
        self._require_usable("run")
        self._require_state("run", TaskState.READY)

        self._apply(TaskEvent.RUN_STARTED)
        self._run_future = asyncio.ensure_future(self._drive_run(args))
        return self._run_future

    def abort(self) -> asyncio.Future[None]:
        """
        Request cancellation of the current run.

        Only meaningful while Running; in Stopping the in-flight abort is returned again,
        in any other state (or after destroy) this is a no-op that resolves immediately.
        """
        state = self._machine.state
        if state == TaskState.STOPPING and self._abort_future is not None:
            return self._abort_future

        if state != TaskState.RUNNING or self._destroyed:
            done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            done.set_result(None)
            return done

        self._apply(TaskEvent.ABORT_REQUESTED)
        self._abort_future = asyncio.ensure_future(self._drive_abort())
        return self._abort_future

    def destroy(self) -> None:
        """Release the adapter's resources. Safe from any state, any number of times."""
        if self._destroyed:
            return
        self._destroyed = True

        try:
            self._adapter.destroy()
        except Exception:
            logger.debug("Adapter destroy failed for %s.", self._name, exc_info=True)
        self._apply(TaskEvent.DESTROYED)

    # ---- drivers ----

    async def _drive_run(self, args: tuple[Any, ...]) -> ResultT:
        try:
            result = await self._adapter.run(*args)
        except BaseException as exc:
            # Once an abort has been requested, the abort decides the terminal state.
            if self._machine.state == TaskState.RUNNING:
                logger.info("Task %s failed: %r", self._name, exc)
                self._apply(TaskEvent.RUN_FAILED)
            raise

        if self._machine.state == TaskState.RUNNING:
            self._apply(TaskEvent.RUN_SUCCEEDED)
        return result

    async def _drive_abort(self) -> None:
        try:
            await self._adapter.abort()
        except BaseException as exc:
            if self._machine.state == TaskState.STOPPING:
                logger.info("Task %s failed while stopping: %r", self._name, exc)
                self._apply(TaskEvent.ABORT_FAILED)
            raise

        if self._machine.state == TaskState.STOPPING:
            self._apply(TaskEvent.ABORT_SUCCEEDED)

    # ---- helpers ----

    def _apply(self, event: TaskEvent) -> None:
        prev = self._machine.state
        nxt = self._machine.apply(event)
        logger.debug("Task %s: %s --%s--> %s", self._name, prev.value, event.value, nxt.value)

    def _require_usable(self, op: str) -> None:
        if self._destroyed:
            raise PreconditionError(f"{op}() called on a destroyed task")

    def _require_state(self, op: str, expected: TaskState) -> None:
        state = self._machine.state
        if state != expected:
            raise PreconditionError(f"{op}() requires state {expected.value}, task is {state.value}")


class AsyncTask(Task[ResultT]):
    """Runs `task_fn(signal, *args)` in-process."""

    def __init__(self, task_fn: TaskFunction, *, name: str | None = None) -> None:
        super().__init__(
            AsyncAdapter(task_fn),
            name=name or getattr(task_fn, "__qualname__", None) or repr(task_fn),
        )


class ProcessTask(Task[ResultT]):
    """Runs a module's `run(signal, *args)` in a worker process."""

    def __init__(
            self,
            target: str | os.PathLike[str],
            *,
            settings: Settings | None = None,
            spawner: ProcessSpawner | None = None,
            name: str | None = None,
    ) -> None:
        super().__init__(
            ProcessAdapter(target, settings=settings, spawner=spawner),
            name=name or os.fspath(target),
        )
