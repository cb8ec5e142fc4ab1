# src/lifecycle_tasks/core/errors.py

from __future__ import annotations

"""
Error taxonomy.

Everything a caller is expected to handle derives from LifecycleTaskError.
InvalidTransition sits outside that hierarchy: it signals a defect in how the state
machine is driven and is not meant to be caught and retried.
"""

from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .state import TaskEvent, TaskState


class LifecycleTaskError(Exception):
    """Base class for task lifecycle failures."""


class LoadFailure(StrEnum):
    NOT_FOUND = "not_found"
    IMPORT_FAILED = "import_failed"
    INVALID_MODULE = "invalid_module"
    HANDSHAKE_FAILED = "handshake_failed"


class ModuleLoadError(LifecycleTaskError):
    def __init__(self, target: str, kind: LoadFailure | str, reason: str = "") -> None:
        self.target = target
        self.kind = LoadFailure(kind)
        self.reason = reason
        msg = f"cannot load task module {target!r} ({self.kind.value})"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class PreconditionError(LifecycleTaskError):
    """Operation invoked while the task is in an incompatible state."""


class ExecutionError(LifecycleTaskError):
    """The task's own logic raised during run()."""

    def __init__(self, original: BaseException) -> None:
        self.original = original
        super().__init__(f"task failed: {original!r}")


class AbortError(LifecycleTaskError):
    """The task's cancellation handling raised during abort()."""

    def __init__(self, original: BaseException) -> None:
        self.original = original
        super().__init__(f"task failed while stopping: {original!r}")


class WorkerCrashed(LifecycleTaskError):
    def __init__(self, returncode: int | None, detail: str = "") -> None:
        self.returncode = returncode
        msg = f"worker exited unexpectedly (returncode={returncode})"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class RemoteError(Exception):
    """
    An exception raised inside a worker process, rebuilt on the parent side.

    Only the class name, message and formatted traceback cross the process boundary.
    """

    def __init__(self, type_name: str, message: str, remote_traceback: str = "") -> None:
        self.type_name = type_name
        self.message = message
        self.remote_traceback = remote_traceback
        super().__init__(f"{type_name}: {message}" if message else type_name)

    @classmethod
    def from_reason(cls, reason: Any) -> RemoteError:
        if not isinstance(reason, dict):
            return cls("Exception", str(reason))
        return cls(
            type_name=str(reason.get("type") or "Exception"),
            message=str(reason.get("message") or ""),
            remote_traceback=str(reason.get("traceback") or ""),
        )


class ProtocolError(LifecycleTaskError, ValueError):
    """The worker sent something that is not a valid control message or reply."""


class InvalidTransition(RuntimeError):
    def __init__(self, state: TaskState, event: TaskEvent) -> None:
        self.state = state
        self.event = event
        super().__init__(f"illegal transition: {state.value} --{event.value}--> ?")
