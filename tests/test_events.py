"""Unit tests for :mod:`tfcompliance.ui.events`."""

from __future__ import annotations

import gc
import logging
from dataclasses import dataclass

import pytest

from tfcompliance.ui.events import Event, EventBus


@dataclass(slots=True)
class SampleEvent(Event):
    """A sample event for testing."""

    message: str
    value: int = 0


@dataclass(slots=True)
class AnotherEvent(Event):
    """Another event type for testing isolation."""

    data: str


class _Subscriber:
    def __init__(self) -> None:
        self.received: list[SampleEvent] = []

    def on_event(self, event: SampleEvent) -> None:
        self.received.append(event)


class TestEventBusSubscription:
    def test_subscribe_and_publish(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[SampleEvent] = []

        bus.subscribe(SampleEvent, received.append)
        bus.publish(SampleEvent(message="hello", value=1))

        assert received == [SampleEvent(message="hello", value=1)]
        assert bus.handler_count(SampleEvent) == 1

    def test_events_are_routed_by_type(self) -> None:
        bus: EventBus[Event] = EventBus()
        samples: list[Event] = []
        others: list[Event] = []
        bus.subscribe(SampleEvent, samples.append)
        bus.subscribe(AnotherEvent, others.append)

        bus.publish(AnotherEvent(data="x"))

        assert samples == []
        assert others == [AnotherEvent(data="x")]

    def test_unsubscribe_removes_first_registration(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[SampleEvent] = []

        def handler(event: SampleEvent) -> None:
            received.append(event)

        bus.subscribe(SampleEvent, handler)
        bus.subscribe(SampleEvent, handler)
        bus.unsubscribe(SampleEvent, handler)
        bus.publish(SampleEvent(message="once"))

        assert len(received) == 1

    def test_unsubscribe_unknown_handler_is_ignored(self) -> None:
        bus: EventBus[Event] = EventBus()
        bus.unsubscribe(SampleEvent, lambda event: None)
        assert bus.handler_count() == 0

    def test_bound_methods_are_held_weakly(self) -> None:
        bus: EventBus[Event] = EventBus()
        subscriber = _Subscriber()
        bus.subscribe(SampleEvent, subscriber.on_event)

        bus.publish(SampleEvent(message="alive"))
        assert len(subscriber.received) == 1

        del subscriber
        gc.collect()
        bus.publish(SampleEvent(message="gone"))

        assert bus.handler_count(SampleEvent) == 0

    def test_bound_method_unsubscribe(self) -> None:
        bus: EventBus[Event] = EventBus()
        subscriber = _Subscriber()
        bus.subscribe(SampleEvent, subscriber.on_event)
        bus.unsubscribe(SampleEvent, subscriber.on_event)

        bus.publish(SampleEvent(message="ignored"))

        assert subscriber.received == []


class TestEventBusErrors:
    def test_failing_handler_does_not_block_others(self, caplog: pytest.LogCaptureFixture) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[SampleEvent] = []

        def boom(event: SampleEvent) -> None:
            raise RuntimeError("handler failed")

        bus.subscribe(SampleEvent, boom)
        bus.subscribe(SampleEvent, received.append)

        with caplog.at_level(logging.ERROR):
            bus.publish(SampleEvent(message="still delivered"))

        assert len(received) == 1
        assert "raised exception" in caplog.text

    def test_handler_may_unsubscribe_while_publishing(self) -> None:
        bus: EventBus[Event] = EventBus()
        calls: list[str] = []

        def once(event: SampleEvent) -> None:
            calls.append("once")
            bus.unsubscribe(SampleEvent, once)

        bus.subscribe(SampleEvent, once)
        bus.subscribe(SampleEvent, lambda event: calls.append("always"))

        bus.publish(SampleEvent(message="first"))
        bus.publish(SampleEvent(message="second"))

        assert calls == ["once", "always", "always"]

    def test_clear_removes_everything(self) -> None:
        bus: EventBus[Event] = EventBus()
        bus.subscribe(SampleEvent, lambda event: None)
        bus.subscribe(AnotherEvent, lambda event: None)

        bus.clear()

        assert bus.handler_count() == 0
