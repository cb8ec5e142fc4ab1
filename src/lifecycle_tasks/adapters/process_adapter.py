# src/lifecycle_tasks/adapters/process_adapter.py

from __future__ import annotations

"""
Out-of-process strategy.

init()    spawn `python -m lifecycle_tasks.worker TARGET`, wait for ready / load-error
run()     send start(id, args), wait for result(id) / error(id)
abort()   send stop(id), wait for stopped(id) / stop-error(id)
destroy() fail whatever is pending, kill the worker

Every request gets a fresh integer id; replies are matched through the pending table.
If the worker exits, every pending call fails with WorkerCrashed instead of hanging.
"""

import asyncio
import itertools
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from ..config import Settings, get_settings
from ..core.errors import (
    AbortError,
    ExecutionError,
    LoadFailure,
    ModuleLoadError,
    PreconditionError,
    ProtocolError,
    RemoteError,
    WorkerCrashed,
)
from ..core.ports import Message, ProcessSpawner, WorkerChannel
from ..worker import messages
from ..worker.loader import looks_like_path
from ..worker.messages import MessageType
from ..worker.spawner import SubprocessSpawner

logger = logging.getLogger(__name__)

# src/ directory that holds the lifecycle_tasks package; the worker must be able to import it.
_PACKAGE_ROOT = Path(__file__).resolve().parents[2]


@dataclass(slots=True)
class _PendingCall:
    kind: Literal["run", "stop"]
    future: asyncio.Future[Any]


class ProcessAdapter:
    def __init__(
            self,
            target: str | os.PathLike[str],
            *,
            settings: Settings | None = None,
            spawner: ProcessSpawner | None = None,
    ) -> None:
        self._target = os.fspath(target)
        self._settings = settings if settings is not None else get_settings()
        self._spawner: ProcessSpawner = spawner or SubprocessSpawner(
            forward_stderr=self._settings.forward_worker_stderr,
        )
        self._channel: WorkerChannel | None = None
        self._handshake: asyncio.Future[Message] | None = None
        self._pending: dict[int, _PendingCall] = {}
        self._ids = itertools.count(1)
        self._destroyed = False

    @property
    def target(self) -> str:
        return self._target

    @property
    def pid(self) -> int | None:
        return None if self._channel is None else self._channel.pid

    # ---- init ----

    def _worker_argv(self) -> list[str]:
        target = self._target
        if looks_like_path(target):
            target = str(Path(target).expanduser().resolve())
        return [
            self._settings.python_executable,
            "-m",
            "lifecycle_tasks.worker",
            target,
            "--stop-timeout",
            str(self._settings.stop_timeout_seconds),
            "--log-level",
            self._settings.log_level,
        ]

    @staticmethod
    def _worker_env() -> dict[str, str]:
        existing = os.environ.get("PYTHONPATH", "")
        parts = [str(_PACKAGE_ROOT)] + ([existing] if existing else [])
        return {"PYTHONPATH": os.pathsep.join(parts)}

    async def init(self) -> None:
        if self._destroyed:
            raise PreconditionError("adapter has been destroyed")
        if self._channel is not None:
            raise PreconditionError("worker already spawned")

        loop = asyncio.get_running_loop()
        self._handshake = loop.create_future()

        try:
            channel = await self._spawner.spawn(self._worker_argv(), env=self._worker_env())
        except OSError as exc:
            raise ModuleLoadError(self._target, LoadFailure.HANDSHAKE_FAILED, f"cannot spawn worker: {exc}") from exc

        self._channel = channel
        channel.on_message(self._on_message)
        channel.on_exit(self._on_exit)

        timeout = self._settings.handshake_timeout_seconds
        try:
            reply = await asyncio.wait_for(self._handshake, timeout=timeout)
        except asyncio.TimeoutError:
            self._release_channel()
            raise ModuleLoadError(
                self._target, LoadFailure.HANDSHAKE_FAILED, f"no handshake within {timeout:.1f}s"
            ) from None
        except WorkerCrashed as exc:
            self._release_channel()
            raise ModuleLoadError(self._target, LoadFailure.HANDSHAKE_FAILED, str(exc)) from exc

        if reply.get("type") == MessageType.LOAD_ERROR:
            self._release_channel()
            remote = RemoteError.from_reason(reply.get("reason"))
            try:
                kind = LoadFailure(str(reply.get("kind")))
            except ValueError:
                kind = LoadFailure.IMPORT_FAILED
            raise ModuleLoadError(self._target, kind, remote.message) from remote

        logger.info("Worker pid=%s ready for %s", channel.pid, self._target)

    # ---- run / abort ----

    async def run(self, *args: Any) -> Any:
        return await self._call("run", lambda rid: messages.start(rid, list(args)))

    async def abort(self) -> None:
        await self._call("stop", messages.stop)

    async def _call(self, kind: Literal["run", "stop"], build: Callable[[int], Message]) -> Any:
        channel = self._channel
        if self._destroyed or channel is None:
            raise PreconditionError("worker is not running; call init() first")
        if channel.returncode is not None:
            raise WorkerCrashed(channel.returncode, "worker is gone")

        request_id = next(self._ids)
        message = build(request_id)
        # Fails fast (TypeError/ValueError) on payloads that cannot cross the process boundary.
        messages.check_size(messages.encode(message))

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = _PendingCall(kind=kind, future=future)
        try:
            await channel.send(message)
        except (BrokenPipeError, ConnectionError) as exc:
            self._pending.pop(request_id, None)
            raise WorkerCrashed(channel.returncode, f"cannot send {kind}: {exc}") from exc
        except BaseException:
            self._pending.pop(request_id, None)
            raise

        return await future

    # ---- channel callbacks ----

    def _on_message(self, msg: Message) -> None:
        mtype = msg.get("type")

        if mtype in (MessageType.READY, MessageType.LOAD_ERROR):
            if self._handshake is not None and not self._handshake.done():
                self._handshake.set_result(msg)
            else:
                logger.warning("Unexpected %s message from worker pid=%s", mtype, self.pid)
            return

        pending = self._pending.pop(msg.get("id"), None)  # type: ignore[arg-type]
        if pending is None:
            logger.warning("Dropping uncorrelated %s message id=%r", mtype, msg.get("id"))
            return
        if pending.future.done():
            return

        if pending.kind == "run" and mtype == MessageType.RESULT:
            pending.future.set_result(msg.get("value"))
        elif pending.kind == "run" and mtype == MessageType.ERROR:
            pending.future.set_exception(_chained(ExecutionError, RemoteError.from_reason(msg.get("reason"))))
        elif pending.kind == "stop" and mtype == MessageType.STOPPED:
            pending.future.set_result(None)
        elif pending.kind == "stop" and mtype == MessageType.STOP_ERROR:
            pending.future.set_exception(_chained(AbortError, RemoteError.from_reason(msg.get("reason"))))
        else:
            pending.future.set_exception(ProtocolError(f"{mtype!r} is not a valid reply to {pending.kind}"))

    def _on_exit(self, returncode: int | None) -> None:
        if self._handshake is not None and not self._handshake.done():
            self._handshake.set_exception(WorkerCrashed(returncode, "exited before handshake"))
        self._fail_pending(returncode, "exited with calls outstanding")

    def _fail_pending(self, returncode: int | None, detail: str) -> None:
        pending, self._pending = self._pending, {}
        for call in pending.values():
            if not call.future.done():
                call.future.set_exception(WorkerCrashed(returncode, f"{detail} ({call.kind})"))

    # ---- teardown ----

    def _release_channel(self) -> None:
        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            channel.terminate()
        except Exception:
            logger.debug("Worker terminate failed.", exc_info=True)

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True

        returncode = None if self._channel is None else self._channel.returncode
        if self._handshake is not None and not self._handshake.done():
            self._handshake.set_exception(WorkerCrashed(returncode, "destroyed during init"))
        self._fail_pending(returncode, "destroyed")
        self._release_channel()


def _chained(wrapper: type[ExecutionError] | type[AbortError], remote: RemoteError) -> Exception:
    exc = wrapper(remote)
    exc.__cause__ = remote
    return exc
