"""Tests for hivemind.events."""

from hivemind.events import EventBus, HivemindEvent, HivemindEventKind


def test_ids_are_per_bus():
    """Listener ids count from 1 on each bus."""
    first, second = EventBus(), EventBus()
    assert first.subscribe(lambda e: None) == 1
    assert second.subscribe(lambda e: None) == 1
    assert first.subscribe(lambda e: None) == 2


def test_delivery_in_subscription_order():
    """Listeners run in the order they subscribed."""
    bus = EventBus()
    calls = []
    bus.subscribe(lambda e: calls.append("a"))
    bus.subscribe(lambda e: calls.append("b"))
    bus.publish(HivemindEvent(HivemindEventKind.NEW_ENTITY, "h1"))
    assert calls == ["a", "b"]


def test_unsubscribe():
    """An unsubscribed listener gets nothing; a second unsubscribe is False."""
    bus = EventBus()
    calls = []
    listener_id = bus.subscribe(calls.append)
    assert bus.unsubscribe(listener_id)
    assert not bus.unsubscribe(listener_id)
    bus.publish(HivemindEvent(HivemindEventKind.ENTITIES_CLEARED))
    assert calls == []
    assert len(bus) == 0


def test_failing_listener_skipped(caplog):
    """A raising listener is logged and the next one still runs."""
    bus = EventBus()
    calls = []

    def boom(event):
        raise RuntimeError("listener failed")

    bus.subscribe(boom)
    bus.subscribe(calls.append)
    event = HivemindEvent(HivemindEventKind.ENTITY_REMOVED, "h1")
    bus.publish(event)
    assert calls == [event]
    assert "listener 1 failed" in caplog.text
