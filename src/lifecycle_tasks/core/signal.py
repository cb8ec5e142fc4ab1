# src/lifecycle_tasks/core/signal.py

from __future__ import annotations

"""
Cooperative cancellation: AbortController owns the trigger, AbortSignal is handed to the
running task function.

The "aborted" bit is one-shot. Once set it is never cleared, and a controller cannot be
reused for another run.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

AbortListener = Callable[[Any], Any]


class TaskAborted(Exception):
    """Raised by AbortSignal.throw_if_aborted() once the signal is triggered."""

    def __init__(self, reason: Any = None) -> None:
        self.reason = reason
        super().__init__("task aborted" if reason is None else f"task aborted: {reason}")


class AbortSignal:
    def __init__(self) -> None:
        self._aborted = False
        self._reason: Any = None
        self._event = asyncio.Event()
        self._listeners: list[AbortListener] = []

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Any:
        return self._reason

    def add_listener(self, listener: AbortListener) -> None:
        """
        Register a callback invoked with the abort reason.

        Registering on an already-aborted signal does not replay the abort.
        """
        self._listeners.append(listener)

    def remove_listener(self, listener: AbortListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def throw_if_aborted(self) -> None:
        if self._aborted:
            raise TaskAborted(self._reason)

    async def wait(self) -> Any:
        """Suspend until the signal is triggered; returns the abort reason."""
        await self._event.wait()
        return self._reason

    def _trigger(self, reason: Any) -> None:
        if self._aborted:
            return
        self._aborted = True
        self._reason = reason
        self._event.set()

        errors: list[BaseException] = []
        for listener in list(self._listeners):
            try:
                listener(reason)
            except Exception as exc:
                logger.debug("abort listener %r raised", listener, exc_info=True)
                errors.append(exc)
        if errors:
            raise errors[0]


class AbortController:
    def __init__(self) -> None:
        self._signal = AbortSignal()

    @property
    def signal(self) -> AbortSignal:
        return self._signal

    def abort(self, reason: Any = None) -> None:
        """
        Trigger the signal. A second call is a no-op.

        Every listener runs even if an earlier one raised; the first listener error is
        re-raised afterwards.
        """
        self._signal._trigger(reason)
