"""Ordered, one-directional message transport between execution contexts."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel

from .contexts import Scheduler

LOGGER = logging.getLogger(__name__)


def _encode(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return value


@dataclass(frozen=True, slots=True)
class Message:
    """Named message with a variadic positional payload."""

    name: str
    args: tuple[Any, ...] = ()

    def to_wire(self) -> str:
        return json.dumps(
            {"name": self.name, "args": [_encode(arg) for arg in self.args]},
            ensure_ascii=False,
            default=_encode,
        )

    @classmethod
    def from_wire(cls, payload: str | bytes) -> "Message":
        document = json.loads(payload)
        if not isinstance(document, dict) or not isinstance(document.get("name"), str):
            raise ValueError("message must be an object with a string name")
        args = document.get("args") or []
        if not isinstance(args, list):
            raise ValueError("message args must be a list")
        return cls(name=document["name"], args=tuple(args))


MessageHandler = Callable[[Message], None]


class MessageChannel:
    """Carries messages into ``receiver`` in the order they were sent.

    ``send`` serializes immediately on the sender's side and never blocks;
    delivery happens later on the receiving context, which decodes a fresh
    copy so the two sides never share objects.
    """

    def __init__(self, name: str, receiver: Scheduler) -> None:
        self.name = name
        self._receiver = receiver
        self._handler: MessageHandler | None = None

    def connect(self, handler: MessageHandler | None) -> None:
        self._handler = handler

    def send(self, name: str, *args: Any) -> None:
        wire = Message(name=name, args=args).to_wire()
        self._receiver.call_soon(self._deliver, wire)

    def _deliver(self, wire: str) -> None:
        handler = self._handler
        if handler is None:
            LOGGER.debug("channel.undelivered", extra={"meta": {"channel": self.name}})
            return
        try:
            message = Message.from_wire(wire)
        except ValueError:
            LOGGER.warning("channel.malformed_message", extra={"meta": {"channel": self.name}})
            return
        handler(message)


__all__ = ["Message", "MessageChannel", "MessageHandler"]
