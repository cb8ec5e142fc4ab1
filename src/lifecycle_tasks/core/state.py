# src/lifecycle_tasks/core/state.py

from __future__ import annotations

"""
Task lifecycle state machine.

Pure logic: no I/O, no asyncio. The facade feeds events in and reads the state back.

    Created -> Ready -> Running -> Completed | Error | Stopping
    Stopping -> Stopped | Error
"""

from dataclasses import dataclass
from enum import StrEnum

from .errors import InvalidTransition


class TaskState(StrEnum):
    CREATED = "created"
    READY = "ready"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    COMPLETED = "completed"
    ERROR = "error"


class TaskEvent(StrEnum):
    INIT_SUCCEEDED = "init_succeeded"
    INIT_FAILED = "init_failed"
    RUN_STARTED = "run_started"
    RUN_SUCCEEDED = "run_succeeded"
    RUN_FAILED = "run_failed"
    ABORT_REQUESTED = "abort_requested"
    ABORT_SUCCEEDED = "abort_succeeded"
    ABORT_FAILED = "abort_failed"
    DESTROYED = "destroyed"


# (current_state, event) -> next_state. Anything not listed is illegal.
_ALLOWED: dict[tuple[TaskState, TaskEvent], TaskState] = {
    (TaskState.CREATED, TaskEvent.INIT_SUCCEEDED): TaskState.READY,
    (TaskState.CREATED, TaskEvent.INIT_FAILED): TaskState.ERROR,
    (TaskState.READY, TaskEvent.RUN_STARTED): TaskState.RUNNING,
    (TaskState.RUNNING, TaskEvent.RUN_SUCCEEDED): TaskState.COMPLETED,
    (TaskState.RUNNING, TaskEvent.RUN_FAILED): TaskState.ERROR,
    (TaskState.RUNNING, TaskEvent.ABORT_REQUESTED): TaskState.STOPPING,
    (TaskState.STOPPING, TaskEvent.ABORT_SUCCEEDED): TaskState.STOPPED,
    (TaskState.STOPPING, TaskEvent.ABORT_FAILED): TaskState.ERROR,
}

TERMINAL_STATES: frozenset[TaskState] = frozenset(
    {TaskState.STOPPED, TaskState.COMPLETED, TaskState.ERROR}
)


def transition(current: TaskState, event: TaskEvent) -> TaskState:
    """Return the state reached from `current` on `event`, or raise InvalidTransition."""
    if event == TaskEvent.DESTROYED:
        # Destroy releases resources but keeps the last state inspectable.
        return current

    nxt = _ALLOWED.get((current, event))
    if nxt is None:
        raise InvalidTransition(current, event)
    return nxt


def is_terminal(state: TaskState) -> bool:
    return state in TERMINAL_STATES


def transition_table() -> list[tuple[TaskState, TaskEvent, TaskState]]:
    """All legal (from, event, to) triples, in declaration order."""
    return [(src, ev, dst) for (src, ev), dst in _ALLOWED.items()]


@dataclass(slots=True, frozen=True)
class TransitionRecord:
    prev: TaskState
    event: TaskEvent
    next: TaskState


class TaskStateMachine:
    """
    Current state plus an append-only history of applied transitions.

    A rejected event leaves both the state and the history untouched.
    """

    def __init__(self, initial: TaskState = TaskState.CREATED) -> None:
        self._state = initial
        self._history: list[TransitionRecord] = []

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def history(self) -> list[TransitionRecord]:
        return list(self._history)

    def apply(self, event: TaskEvent) -> TaskState:
        nxt = transition(self._state, event)
        self._history.append(TransitionRecord(prev=self._state, event=event, next=nxt))
        self._state = nxt
        return nxt

    def can_apply(self, event: TaskEvent) -> bool:
        return event == TaskEvent.DESTROYED or (self._state, event) in _ALLOWED
