"""Unit tests for the plugin event bus."""

from __future__ import annotations

import logging

import pytest

from host.events import EventBus


def test_subscribe_and_emit() -> None:
    """Subscribed handlers should receive emitted data."""
    bus = EventBus()
    received: list[object] = []
    bus.subscribe("weather.updated", received.append)

    bus.emit("weather.updated", {"temp": 12})

    assert received == [{"temp": 12}]


def test_unsubscribe_callable_removes_handler() -> None:
    """The callable returned by subscribe should remove the handler."""
    bus = EventBus()
    received: list[object] = []
    unsubscribe = bus.subscribe("tick", received.append)

    unsubscribe()
    bus.emit("tick", 1)

    assert received == []
    assert bus.handler_count("tick") == 0


def test_priority_orders_handlers() -> None:
    """Higher priority handlers should run first."""
    bus = EventBus()
    order: list[str] = []
    bus.subscribe("tick", lambda _: order.append("low"), priority=0)
    bus.subscribe("tick", lambda _: order.append("high"), priority=10)

    bus.emit("tick")

    assert order == ["high", "low"]


def test_failing_handler_is_isolated(caplog: pytest.LogCaptureFixture) -> None:
    """One failing handler should not stop the others."""
    bus = EventBus()
    received: list[object] = []

    def broken(_: object) -> None:
        raise RuntimeError("boom")

    bus.subscribe("tick", broken, priority=5)
    bus.subscribe("tick", received.append)

    with caplog.at_level(logging.ERROR, logger="host.events"):
        bus.emit("tick", 1)

    assert received == [1]
    assert bus.get_stats()["error_count"] == 1
    assert "Handler error for event tick" in caplog.text


def test_non_callable_handler_rejected() -> None:
    """subscribe should reject non-callable handlers."""
    with pytest.raises(ValueError):
        EventBus().subscribe("tick", "not-callable")  # type: ignore[arg-type]
