# src/lifecycle_tasks/cli/main.py

"""
CLI entrypoint.

    lifecycle-tasks run MODULE [ARG_JSON ...] [--timeout S]
    lifecycle-tasks transitions

`run` spawns one ProcessTask, prints its JSON result on stdout and always destroys the
worker. SIGINT/SIGTERM or --timeout abort the run.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from dataclasses import replace
from typing import Any

from ..config import Settings, get_settings
from ..core.errors import LifecycleTaskError
from ..core.state import TaskState, transition_table
from ..logging_setup import setup_logging
from ..task import ProcessTask

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_TIMEOUT = 124
EXIT_INTERRUPTED = 130


def _parse_args_json(raw: list[str]) -> list[Any]:
    out: list[Any] = []
    for item in raw:
        try:
            out.append(json.loads(item))
        except json.JSONDecodeError:
            # Bare words are passed through as strings.
            out.append(item)
    return out


async def run_module(
        target: str,
        args: list[Any],
        *,
        settings: Settings,
        timeout: float | None = None,
) -> int:
    task: ProcessTask[Any] = ProcessTask(target, settings=settings)
    interrupted = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signum, interrupted.set)

    try:
        try:
            await task.init()
        except LifecycleTaskError as exc:
            logger.error("%s", exc)
            return EXIT_FAILED

        run_future = task.run(*args)
        waiter = asyncio.ensure_future(interrupted.wait())
        done, _ = await asyncio.wait({run_future, waiter}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        waiter.cancel()

        if run_future not in done:
            reason = "interrupted" if interrupted.is_set() else f"timed out after {timeout}s"
            logger.warning("Task %s %s; aborting", task.name, reason)
            try:
                await task.abort()
            except LifecycleTaskError as exc:
                logger.error("Abort failed: %s", exc)
            with contextlib.suppress(Exception):
                await run_future
            logger.info("Task %s ended in state %s", task.name, task.get_status().value)
            return EXIT_INTERRUPTED if interrupted.is_set() else EXIT_TIMEOUT

        try:
            result = run_future.result()
        except LifecycleTaskError as exc:
            logger.error("%s", exc)
            cause = getattr(exc, "original", None)
            if cause is not None and getattr(cause, "remote_traceback", ""):
                logger.debug("Worker traceback:\n%s", cause.remote_traceback)
            return EXIT_FAILED

        print(json.dumps(result, ensure_ascii=False))
        return EXIT_OK if task.get_status() == TaskState.COMPLETED else EXIT_FAILED
    finally:
        task.destroy()
        for signum in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(signum)


def print_transitions() -> int:
    for src, event, dst in transition_table():
        print(f"{src.value:<10} --{event.value}--> {dst.value}")
    print("(any)      --destroyed--> (unchanged)")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lifecycle-tasks")
    parser.add_argument("--log-level", default=None, help="override LIFECYCLE_TASKS_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run", help="run a task module in a worker process")
    p_run.add_argument("module", help="file path or dotted module name defining run(signal, *args)")
    p_run.add_argument("args", nargs="*", help="JSON-encoded positional arguments")
    p_run.add_argument("--timeout", type=float, default=None, help="abort after this many seconds")

    sub.add_parser("transitions", help="print the task state transition table")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)

    settings = get_settings()
    if ns.log_level:
        settings = replace(settings, log_level=str(ns.log_level).upper())

    console_level = getattr(logging, settings.log_level, logging.INFO)
    setup_logging(console_level=console_level, log_dir=settings.log_dir)

    if ns.command == "transitions":
        return print_transitions()

    return asyncio.run(
        run_module(ns.module, _parse_args_json(ns.args), settings=settings, timeout=ns.timeout)
    )


if __name__ == "__main__":
    sys.exit(main())
