# src/lifecycle_tasks/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the task facade and the adapters.

The facade only talks to an Adapter; the process adapter only talks to a ProcessSpawner
and the WorkerChannel it returns; the worker only talks to a ModuleLoader.
Concrete implementations live in adapters/ and worker/, tests plug in fakes.
"""

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

Message = dict[str, Any]
# JSON-object control message: {"type": "...", "id": 1, ...}.

TaskFunction = Callable[..., Awaitable[Any]]
# async def task_fn(signal: AbortSignal, *args) -> Any


class Adapter(Protocol):
    """Execution strategy behind a Task. The facade never checks which one it holds."""

    async def init(self) -> None: ...
    async def run(self, *args: Any) -> Any: ...
    async def abort(self) -> None: ...
    def destroy(self) -> None: ...


@dataclass(slots=True, frozen=True)
class TaskUnit:
    """What a loaded module contributes: a run callable and an optional abort hook."""

    name: str
    run: Callable[..., Any]
    abort: Callable[[], Any] | None = None


class ModuleLoader(Protocol):
    def load(self, target: str) -> TaskUnit: ...


class WorkerChannel(Protocol):
    """Bidirectional message channel to one spawned worker process."""

    @property
    def pid(self) -> int | None: ...

    @property
    def returncode(self) -> int | None: ...

    def on_message(self, handler: Callable[[Message], None]) -> None: ...
    def on_exit(self, handler: Callable[[int | None], None]) -> None: ...
    async def send(self, message: Message) -> None: ...
    def terminate(self) -> None: ...


class ProcessSpawner(Protocol):
    async def spawn(
            self,
            argv: Sequence[str],
            *,
            env: Mapping[str, str] | None = None,
    ) -> WorkerChannel: ...
