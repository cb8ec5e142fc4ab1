# src/lifecycle_tasks/adapters/async_adapter.py

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..core.errors import AbortError, ExecutionError, PreconditionError
from ..core.ports import TaskFunction
from ..core.signal import AbortController

logger = logging.getLogger(__name__)


class AsyncAdapter:
    """
    In-process strategy: awaits `task_fn(signal, *args)` on the caller's event loop.

    Cancellation is cooperative. abort() only triggers the signal; whether run() then
    returns, raises or keeps going is up to task_fn.
    """

    def __init__(self, task_fn: TaskFunction | None) -> None:
        self._task_fn = task_fn
        self._controller: AbortController | None = None

    async def init(self) -> None:
        return None

    async def run(self, *args: Any) -> Any:
        controller = AbortController()
        self._controller = controller

        if self._task_fn is None:
            raise PreconditionError("task function is not set")

        try:
            return await self._task_fn(controller.signal, *args)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise ExecutionError(exc) from exc

    async def abort(self) -> None:
        if self._controller is None:
            raise PreconditionError("abort() called with no run in flight")

        try:
            self._controller.abort()
        except Exception as exc:
            raise AbortError(exc) from exc
        logger.debug("Abort signal delivered to %r", self._task_fn)

    def destroy(self) -> None:
        self._controller = None
