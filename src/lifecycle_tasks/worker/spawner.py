# src/lifecycle_tasks/worker/spawner.py

from __future__ import annotations

"""
Parent-side process spawning.

SubprocessSpawner starts a worker with asyncio.create_subprocess_exec and wraps it in a
SubprocessChannel:
- stdout is the control channel (one JSON message per line),
- stdin carries control messages to the worker,
- stderr is forwarded line by line to a per-worker logger.

Messages that arrive before a handler is attached are queued and replayed on attach.
"""

import asyncio
import contextlib
import logging
import os
from collections import deque
from collections.abc import Callable, Mapping, Sequence

from ..core.ports import Message
from . import messages
from .messages import ProtocolError

logger = logging.getLogger(__name__)


class SubprocessChannel:
    def __init__(self, proc: asyncio.subprocess.Process, *, forward_stderr: bool = True) -> None:
        self._proc = proc
        self._forward_stderr = forward_stderr
        self._message_handler: Callable[[Message], None] | None = None
        self._exit_handler: Callable[[int | None], None] | None = None
        self._backlog: deque[Message] = deque()
        self._exited = False
        self._worker_log = logging.getLogger(f"lifecycle_tasks.worker.{proc.pid}")

        self._readers = [asyncio.create_task(self._read_stdout())]
        if proc.stderr is not None:
            self._readers.append(asyncio.create_task(self._read_stderr()))

    @property
    def pid(self) -> int | None:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    def on_message(self, handler: Callable[[Message], None]) -> None:
        self._message_handler = handler
        while self._backlog:
            handler(self._backlog.popleft())

    def on_exit(self, handler: Callable[[int | None], None]) -> None:
        self._exit_handler = handler
        if self._exited:
            handler(self._proc.returncode)

    async def send(self, message: Message) -> None:
        data = messages.encode(message)
        stdin = self._proc.stdin
        if stdin is None or stdin.is_closing() or self._proc.returncode is not None:
            raise BrokenPipeError(f"worker pid={self.pid} is not accepting messages")
        stdin.write(data)
        await stdin.drain()

    def terminate(self) -> None:
        if self._proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self._proc.kill()
        if self._proc.stdin is not None:
            with contextlib.suppress(Exception):
                self._proc.stdin.close()

    # ---- readers ----

    async def _read_stdout(self) -> None:
        stdout = self._proc.stdout
        try:
            while stdout is not None:
                line = await stdout.readline()
                if not line:
                    break
                if not line.strip():
                    continue
                try:
                    msg = messages.decode(line)
                except ProtocolError:
                    logger.warning("Worker pid=%s wrote a malformed control line", self.pid, exc_info=True)
                    continue
                self._dispatch(msg)
        except (ValueError, ConnectionError):
            # The worker is still alive but can no longer be heard; kill it so the exit
            # handler fails whatever is pending.
            logger.exception("Control channel of worker pid=%s broke; killing it", self.pid)
            with contextlib.suppress(ProcessLookupError):
                self._proc.kill()

        returncode = await self._proc.wait()
        self._exited = True
        logger.info("Worker pid=%s exited returncode=%s", self.pid, returncode)
        if self._exit_handler is not None:
            self._exit_handler(returncode)

    async def _read_stderr(self) -> None:
        stderr = self._proc.stderr
        assert stderr is not None
        while True:
            line = await stderr.readline()
            if not line:
                return
            if self._forward_stderr:
                self._worker_log.info("%s", line.decode("utf-8", errors="replace").rstrip())

    def _dispatch(self, msg: Message) -> None:
        if self._message_handler is None:
            self._backlog.append(msg)
            return
        self._message_handler(msg)


class SubprocessSpawner:
    def __init__(self, *, forward_stderr: bool = True, line_limit: int = messages.MAX_LINE_BYTES) -> None:
        self._forward_stderr = forward_stderr
        self._line_limit = line_limit

    async def spawn(
            self,
            argv: Sequence[str],
            *,
            env: Mapping[str, str] | None = None,
    ) -> SubprocessChannel:
        full_env = dict(os.environ)
        if env:
            full_env.update(env)

        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=full_env,
            limit=self._line_limit,
        )
        logger.info("Spawned worker pid=%s argv=%s", proc.pid, list(argv))
        return SubprocessChannel(proc, forward_stderr=self._forward_stderr)
