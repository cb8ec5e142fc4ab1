# tests/conftest.py

from __future__ import annotations

import asyncio
import sys
from collections.abc import AsyncIterator
from dataclasses import replace
from pathlib import Path

import pytest
import pytest_asyncio

from lifecycle_tasks.config import Settings
from lifecycle_tasks.task import ProcessTask

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture()
def settings() -> Settings:
    """
    Explicit settings for worker-process tests.

    Built directly instead of via get_settings() so a developer's .env or shell
    environment cannot change test behaviour.
    """
    return Settings(
        log_level="WARNING",
        log_dir=None,
        python_executable=sys.executable,
        handshake_timeout_seconds=30.0,
        stop_timeout_seconds=2.0,
        forward_worker_stderr=True,
    )


@pytest.fixture()
def fixture_path():
    def _path(name: str) -> str:
        return str(FIXTURES_DIR / name)

    return _path


@pytest_asyncio.fixture()
async def make_process_task(settings: Settings, fixture_path) -> AsyncIterator:
    """Factory for ProcessTask over a fixture module; every task is destroyed on teardown."""
    created: list[ProcessTask] = []

    def _make(name: str, **overrides) -> ProcessTask:
        task_settings = settings
        if overrides:
            task_settings = replace(settings, **overrides)
        task: ProcessTask = ProcessTask(fixture_path(name), settings=task_settings)
        created.append(task)
        return task

    yield _make

    for task in created:
        task.destroy()
    # Let the channel readers reap the killed workers while the loop is still alive.
    await asyncio.sleep(0.05)
