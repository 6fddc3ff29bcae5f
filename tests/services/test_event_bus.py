from __future__ import annotations

import pytest

from hubframe.app.io.models import PageDescriptor
from hubframe.app.services.event_bus import EventBus


def test_publish_fans_out_in_subscription_order() -> None:
    bus = EventBus()
    calls: list[tuple[str, tuple]] = []
    bus.subscribe("topic", lambda *args: calls.append(("first", args)))
    bus.subscribe("topic", lambda *args: calls.append(("second", args)))

    delivered = bus.publish("topic", 1, "two")

    assert delivered == 2
    assert calls == [("first", (1, "two")), ("second", (1, "two"))]


def test_unsubscribe_callback() -> None:
    bus = EventBus()
    calls: list[int] = []
    unsubscribe = bus.subscribe("topic", calls.append)

    bus.publish("topic", 1)
    unsubscribe()
    unsubscribe()
    bus.publish("topic", 2)

    assert calls == [1]


def test_failing_subscriber_is_isolated() -> None:
    bus = EventBus()
    calls: list[int] = []

    def _boom(_value: int) -> None:
        raise RuntimeError("subscriber bug")

    bus.subscribe("topic", _boom)
    bus.subscribe("topic", calls.append)

    assert bus.publish("topic", 7) == 1
    assert calls == [7]


def test_recent_events_are_bounded_and_serialisable() -> None:
    bus = EventBus(history_size=2)
    descriptor = PageDescriptor(url="https://github.com/x", name="x")

    bus.publish("a", 1)
    bus.publish("b", descriptor)
    bus.publish("c", object)

    recent = bus.recent(10)
    assert [item["topic"] for item in recent] == ["b", "c"]
    assert recent[0]["args"] == [descriptor.to_wire()]
    assert isinstance(recent[1]["args"][0], str)
    assert bus.recent(0) == []


def test_subscribe_requires_topic() -> None:
    with pytest.raises(ValueError):
        EventBus().subscribe("", print)
