"""In-process publish/subscribe bus for host-wide events."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Iterable

LOGGER = logging.getLogger(__name__)

Handler = Callable[..., Any]


class Topic:
    """Names of the host-wide events published by the frame bridge."""

    TOGGLE_NOTIFICATIONS = "toggle-notifications"
    ISSUE_CHANGED = "issue/changed"
    URL_CHANGED = "frame/url-changed"
    GOTO = "frame/goto"
    MENU = "menu"
    DOCUMENT_CLICKED = "document/clicked"
    LINK_CLICKED = "frame/link-clicked"
    EXTERNAL_LINK = "frame/external-link"
    PREVIEW = "preview"
    CONTEXT_MENU = "contextmenu/show"
    SWIPE_ALLOWED = "swipe/allowed"
    CSS_READY = "frame/css-ready"


class EventBus:
    """Thread-safe fan-out of positional payloads keyed by topic name.

    Handlers run synchronously on the publishing thread, in subscription
    order. A failing handler is logged and does not stop delivery to the
    remaining subscribers.
    """

    def __init__(self, *, history_size: int = 256) -> None:
        self._subscribers: dict[str, list[Handler]] = {}
        self._recent: deque[dict[str, Any]] = deque(maxlen=max(1, history_size))
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Subscription management
    # ------------------------------------------------------------------
    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``topic`` and return an unsubscribe callback."""

        if not topic:
            raise ValueError("topic is required")
        with self._lock:
            self._subscribers.setdefault(topic, []).append(handler)

        def _unsubscribe() -> None:
            self.unsubscribe(topic, handler)

        return _unsubscribe

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._subscribers.get(topic)
            if not handlers:
                return
            try:
                handlers.remove(handler)
            except ValueError:
                return
            if not handlers:
                self._subscribers.pop(topic, None)

    # ------------------------------------------------------------------
    # Event delivery
    # ------------------------------------------------------------------
    def publish(self, topic: str, *args: Any) -> int:
        """Deliver ``args`` to every subscriber of ``topic``; return the count."""

        with self._lock:
            handlers: Iterable[Handler] = tuple(self._subscribers.get(topic, ()))
            self._recent.append({"topic": topic, "args": [_describe(arg) for arg in args], "timestamp": time.time()})
        delivered = 0
        for handler in handlers:
            try:
                handler(*args)
            except Exception:  # noqa: BLE001 - one subscriber must not break the others
                LOGGER.exception("event_bus.handler_failed", extra={"meta": {"topic": topic}})
                continue
            delivered += 1
        return delivered

    def recent(self, limit: int = 50) -> list[dict[str, Any]]:
        with self._lock:
            items = list(self._recent)
        if limit <= 0:
            return []
        return items[-limit:]


def _describe(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    to_wire = getattr(value, "to_wire", None)
    if callable(to_wire):
        return to_wire()
    if isinstance(value, (list, tuple)):
        return [_describe(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _describe(item) for key, item in value.items()}
    return repr(value)


__all__ = ["EventBus", "Topic"]
