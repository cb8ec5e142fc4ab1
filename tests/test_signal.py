# tests/test_signal.py

from __future__ import annotations

import asyncio

import pytest

from lifecycle_tasks.core.signal import AbortController, TaskAborted


@pytest.mark.asyncio
async def test_abort_wakes_waiters_with_reason() -> None:
    controller = AbortController()
    waiter = asyncio.ensure_future(controller.signal.wait())
    await asyncio.sleep(0)
    assert not waiter.done()

    controller.abort("shutdown")

    assert await waiter == "shutdown"
    assert controller.signal.aborted
    with pytest.raises(TaskAborted):
        controller.signal.throw_if_aborted()


def test_abort_is_one_shot() -> None:
    controller = AbortController()
    seen: list[object] = []
    controller.signal.add_listener(seen.append)

    controller.abort("first")
    controller.abort("second")

    assert seen == ["first"]
    assert controller.signal.reason == "first"


def test_listener_error_is_raised_after_all_listeners_ran() -> None:
    controller = AbortController()
    seen: list[str] = []

    def broken(_reason) -> None:
        raise RuntimeError("listener failed")

    controller.signal.add_listener(broken)
    controller.signal.add_listener(lambda _r: seen.append("after"))

    with pytest.raises(RuntimeError, match="listener failed"):
        controller.abort()

    assert seen == ["after"]
    assert controller.signal.aborted


def test_removed_listener_is_not_called() -> None:
    controller = AbortController()
    seen: list[object] = []
    controller.signal.add_listener(seen.append)
    controller.signal.remove_listener(seen.append)
    controller.signal.remove_listener(seen.append)

    controller.abort()

    assert seen == []
