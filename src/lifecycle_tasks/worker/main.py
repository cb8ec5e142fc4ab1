# src/lifecycle_tasks/worker/main.py

"""
Worker process entrypoint: `python -m lifecycle_tasks.worker TARGET`.

- moves the real stdout aside for the control channel and points fd 1 / sys.stdout at
  stderr, so prints inside task modules cannot corrupt the protocol,
- loads TARGET and answers with `ready` or `load-error` (the handshake),
- then feeds every control line from stdin into WorkerRuntime until stdin closes.

POSIX only (stdin is read through loop.connect_read_pipe).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import BinaryIO

from ..core.errors import ModuleLoadError
from ..core.ports import Message
from ..logging_setup import setup_logging
from . import messages
from .loader import ImportlibModuleLoader
from .messages import ProtocolError
from .runtime import WorkerRuntime

logger = logging.getLogger(__name__)


class _ChannelWriter:
    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    async def send(self, message: Message) -> None:
        self._stream.write(messages.encode(message))
        self._stream.flush()


def _detach_stdout() -> BinaryIO:
    sys.stdout.flush()
    channel_fd = os.dup(1)
    os.dup2(2, 1)
    sys.stdout = sys.stderr
    return os.fdopen(channel_fd, "wb", buffering=0)


async def _stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=messages.MAX_LINE_BYTES)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


async def serve(target: str, channel: BinaryIO, *, stop_timeout: float) -> int:
    writer = _ChannelWriter(channel)

    try:
        unit = ImportlibModuleLoader().load(target)
    except ModuleLoadError as exc:
        logger.error("%s", exc)
        await writer.send(messages.load_error(exc.kind.value, messages.describe_exception(exc)))
        return 2

    await writer.send(messages.ready(os.getpid()))
    logger.debug("Worker ready pid=%s target=%s", os.getpid(), target)

    runtime = WorkerRuntime(unit, writer.send, stop_timeout=stop_timeout)
    reader = await _stdin_reader()

    while True:
        line = await reader.readline()
        if not line:
            break
        if not line.strip():
            continue
        try:
            msg = messages.decode(line)
        except ProtocolError:
            logger.warning("Ignoring malformed control line", exc_info=True)
            continue
        await runtime.handle(msg)

    logger.debug("Control channel closed; worker exiting")
    await runtime.shutdown()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="lifecycle_tasks.worker")
    parser.add_argument("target", help="task module: file path or dotted module name")
    parser.add_argument("--stop-timeout", type=float, default=5.0)
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args(argv)

    channel = _detach_stdout()
    level = getattr(logging, str(args.log_level).upper(), logging.WARNING)
    setup_logging(console_level=level)

    try:
        return asyncio.run(serve(args.target, channel, stop_timeout=args.stop_timeout))
    except KeyboardInterrupt:
        return 130
    finally:
        channel.close()
