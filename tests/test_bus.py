from __future__ import annotations

from dataclasses import dataclass

from papertrader.bus import EventBus


@dataclass(frozen=True)
class E:
    x: int


@dataclass(frozen=True)
class Other:
    y: str


def test_bus_publish_subscribe() -> None:
    bus = EventBus()
    seen: list[int] = []

    def h(e: E) -> None:
        seen.append(e.x)

    bus.subscribe(E, h)
    bus.publish(E(1))
    bus.publish(Other("ignored"))
    bus.publish(E(2))

    assert seen == [1, 2]


def test_bus_unsubscribe() -> None:
    bus = EventBus()
    seen: list[int] = []
    unsubscribe = bus.subscribe(E, lambda e: seen.append(e.x))
    assert bus.handler_count(E) == 1

    bus.publish(E(1))
    unsubscribe()
    unsubscribe()
    bus.publish(E(2))

    assert seen == [1]
    assert bus.handler_count(E) == 0


def test_bus_handler_failure_does_not_stop_others(caplog) -> None:
    bus = EventBus()
    seen: list[int] = []

    def bad(_: E) -> None:
        raise RuntimeError("boom")

    bus.subscribe(E, bad)
    bus.subscribe(E, lambda e: seen.append(e.x))
    bus.publish(E(7))

    assert seen == [7]
    assert "observer_failed" in caplog.messages
