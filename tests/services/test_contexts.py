from __future__ import annotations

import threading

import pytest

from hubframe.app.services.contexts import LoopContext


@pytest.fixture()
def context():
    ctx = LoopContext("test").start()
    try:
        yield ctx
    finally:
        ctx.stop()


def test_call_soon_runs_in_order_on_context_thread(context: LoopContext) -> None:
    seen: list[tuple[int, bool]] = []
    done = threading.Event()

    for index in range(3):
        context.call_soon(lambda i=index: seen.append((i, context.in_context())))
    context.call_soon(done.set)

    assert done.wait(2)
    assert seen == [(0, True), (1, True), (2, True)]
    assert not context.in_context()


def test_call_later_can_be_cancelled(context: LoopContext) -> None:
    fired: list[str] = []
    done = threading.Event()

    handle = context.call_later(0.05, fired.append, "cancelled")
    handle.cancel()
    context.call_later(0.1, fired.append, "kept")
    context.call_later(0.15, done.set)

    assert done.wait(2)
    assert fired == ["kept"]


def test_failing_callback_does_not_stop_loop(context: LoopContext) -> None:
    done = threading.Event()

    def _boom() -> None:
        raise RuntimeError("handler bug")

    context.call_soon(_boom)
    context.call_soon(done.set)

    assert done.wait(2)
