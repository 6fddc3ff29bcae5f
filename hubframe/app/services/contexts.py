"""Single-threaded execution contexts for the guest and host sides."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Protocol

LOGGER = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Minimal surface the observer and controller need from a context."""

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Cancellable: ...


class ScheduledCall:
    """Handle for a delayed callback that may be cancelled from any thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _arm(self, handle: asyncio.TimerHandle) -> None:
        with self._lock:
            self._handle = handle

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            handle = self._handle
        if handle is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(handle.cancel)


class LoopContext:
    """Cooperative context backed by an asyncio loop on a dedicated thread.

    Work posted from other threads is queued in FIFO order and every callback
    runs to completion before the next one starts.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=f"{name}-context", daemon=True)
        self._started = threading.Event()

    def start(self, *, timeout: float = 5.0) -> "LoopContext":
        if not self._thread.is_alive():
            self._thread.start()
            if not self._started.wait(timeout):
                raise RuntimeError(f"{self.name} context failed to start")
        return self

    def stop(self, *, timeout: float = 5.0) -> None:
        if not self._thread.is_alive():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=timeout)

    def in_context(self) -> bool:
        return threading.get_ident() == self._thread.ident

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        self._loop.call_soon_threadsafe(self._invoke, callback, args)

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ScheduledCall:
        scheduled = ScheduledCall(self._loop)

        def _arm() -> None:
            if scheduled.cancelled:
                return
            scheduled._arm(
                self._loop.call_later(max(0.0, float(delay)), self._fire, scheduled, callback, args)
            )

        if self.in_context():
            _arm()
        else:
            self._loop.call_soon_threadsafe(_arm)
        return scheduled

    def _fire(self, scheduled: ScheduledCall, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        if scheduled.cancelled:
            return
        self._invoke(callback, args)

    def _invoke(self, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        try:
            callback(*args)
        except Exception:  # noqa: BLE001 - a failing handler must not stop the loop
            LOGGER.exception("context.callback_failed", extra={"meta": {"context": self.name}})

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._started.set)
        try:
            self._loop.run_forever()
        finally:
            self._loop.close()


__all__ = ["Cancellable", "LoopContext", "ScheduledCall", "Scheduler"]
