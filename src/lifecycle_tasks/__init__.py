"""
lifecycle_tasks: one task, one lifecycle.

Components:
- core/: state machine, error taxonomy, cancellation signal, ports
- adapters/: in-process (AsyncAdapter) and worker-process (ProcessAdapter) strategies
- worker/: child-side entrypoint, module loader, control protocol, process spawner
- task.py: the Task facade (AsyncTask, ProcessTask)
"""

from .core.errors import (
    AbortError,
    ExecutionError,
    InvalidTransition,
    LifecycleTaskError,
    LoadFailure,
    ModuleLoadError,
    PreconditionError,
    ProtocolError,
    RemoteError,
    WorkerCrashed,
)
from .core.signal import AbortController, AbortSignal, TaskAborted
from .core.state import TaskEvent, TaskState
from .task import AsyncTask, ProcessTask, Task

__all__ = [
    "AbortController",
    "AbortError",
    "AbortSignal",
    "AsyncTask",
    "ExecutionError",
    "InvalidTransition",
    "LifecycleTaskError",
    "LoadFailure",
    "ModuleLoadError",
    "PreconditionError",
    "ProcessTask",
    "ProtocolError",
    "RemoteError",
    "Task",
    "TaskAborted",
    "TaskEvent",
    "TaskState",
    "WorkerCrashed",
]
