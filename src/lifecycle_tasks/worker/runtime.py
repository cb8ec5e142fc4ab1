# src/lifecycle_tasks/worker/runtime.py

from __future__ import annotations

"""
Worker-side request handling.

WorkerRuntime holds one loaded TaskUnit and answers start/stop messages. It knows nothing
about pipes: replies go through the injected `send` coroutine, which makes it usable
in-process from tests.
"""

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..core.errors import PreconditionError
from ..core.ports import Message, TaskUnit
from ..core.signal import AbortController
from . import messages
from .messages import MessageType

logger = logging.getLogger(__name__)

Sender = Callable[[Message], Awaitable[None]]


class WorkerRuntime:
    def __init__(self, unit: TaskUnit, send: Sender, *, stop_timeout: float = 5.0) -> None:
        self._unit = unit
        self._send = send
        self._stop_timeout = max(0.0, float(stop_timeout))
        self._controller: AbortController | None = None
        self._run_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._run_task is not None and not self._run_task.done()

    async def handle(self, message: Message) -> None:
        kind = message.get("type")
        request_id = message.get("id")
        if not isinstance(request_id, int):
            logger.warning("Dropping %s message without an integer id", kind)
            return

        if kind == MessageType.START:
            await self._start(request_id, message.get("args") or [])
        elif kind == MessageType.STOP:
            await self._stop(request_id)
        else:
            logger.warning("Unknown control message type=%r id=%s", kind, request_id)

    async def shutdown(self) -> None:
        """Parent went away: cancel whatever is still running."""
        task = self._run_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    # ---- start ----

    async def _start(self, request_id: int, args: list[Any]) -> None:
        if self.running:
            await self._send(messages.error(request_id, PreconditionError("a run is already in flight")))
            return

        self._controller = AbortController()
        self._run_task = asyncio.create_task(self._execute(request_id, self._controller, args))

    async def _execute(self, request_id: int, controller: AbortController, args: list[Any]) -> None:
        try:
            value = await self._call_run(controller, args)
        except asyncio.CancelledError as exc:
            # The parent may already be gone; the cancellation must still propagate.
            with contextlib.suppress(OSError):
                await self._send(messages.error(request_id, exc))
            raise
        except Exception as exc:
            logger.debug("run() raised", exc_info=True)
            await self._send(messages.error(request_id, exc))
            return

        reply = messages.result(request_id, value)
        try:
            messages.check_size(messages.encode(reply))
        except (TypeError, ValueError) as exc:
            await self._send(messages.error(request_id, exc))
            return
        await self._send(reply)

    async def _call_run(self, controller: AbortController, args: list[Any]) -> Any:
        run = self._unit.run
        if inspect.iscoroutinefunction(run):
            return await run(controller.signal, *args)

        # Plain functions run in a thread so stop messages are still handled meanwhile.
        value = await asyncio.to_thread(run, controller.signal, *args)
        if inspect.isawaitable(value):
            value = await value
        return value

    # ---- stop ----

    async def _stop(self, request_id: int) -> None:
        task = self._run_task
        controller = self._controller
        if task is None or controller is None or task.done():
            await self._send(messages.stopped(request_id))
            return

        failure: BaseException | None = None
        try:
            controller.abort()
        except Exception as exc:
            failure = exc

        if self._unit.abort is not None:
            try:
                ret = self._unit.abort()
                if inspect.isawaitable(ret):
                    await ret
            except Exception as exc:
                logger.debug("abort() hook raised", exc_info=True)
                failure = failure or exc

        done, _ = await asyncio.wait({task}, timeout=self._stop_timeout or None)
        if not done:
            logger.warning("run() ignored the abort signal for %.1fs; cancelling it", self._stop_timeout)
            task.cancel()
            await asyncio.wait({task})

        if failure is not None:
            await self._send(messages.stop_error(request_id, failure))
        else:
            await self._send(messages.stopped(request_id))
