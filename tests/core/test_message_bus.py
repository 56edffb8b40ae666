"""Tests for InMemoryMessageBus: ordering, one-shot delivery, fault isolation."""

from session_timer.core.events.memory import InMemoryMessageBus


class TestSubscribePublish:
    def test_delivers_payload(self):
        bus = InMemoryMessageBus()
        received = []
        bus.subscribe("timer:start", received.append)
        bus.publish("timer:start", True)
        assert received == [True]

    def test_delivery_in_subscription_order(self):
        bus = InMemoryMessageBus()
        order = []
        bus.subscribe("e", lambda _: order.append("first"))
        bus.subscribe("e", lambda _: order.append("second"))
        bus.subscribe("e", lambda _: order.append("third"))
        bus.publish("e")
        assert order == ["first", "second", "third"]

    def test_publish_returns_handler_count(self):
        bus = InMemoryMessageBus()
        bus.subscribe("e", lambda _: None)
        bus.subscribe("e", lambda _: None)
        assert bus.publish("e") == 2
        assert bus.publish("other") == 0

    def test_payload_defaults_to_none(self):
        bus = InMemoryMessageBus()
        received = []
        bus.subscribe("timer:stop", received.append)
        bus.publish("timer:stop")
        assert received == [None]


class TestFaultIsolation:
    def test_failing_handler_does_not_stop_siblings(self):
        bus = InMemoryMessageBus()
        received = []

        def broken(_):
            raise RuntimeError("boom")

        bus.subscribe("e", broken)
        bus.subscribe("e", received.append)
        delivered = bus.publish("e", 42)

        assert received == [42]
        assert delivered == 2

    def test_failure_not_propagated_to_publisher(self):
        bus = InMemoryMessageBus()
        bus.subscribe("e", lambda _: 1 / 0)
        bus.publish("e")  # must not raise


class TestOnce:
    def test_once_handler_fires_once(self):
        bus = InMemoryMessageBus()
        received = []
        bus.subscribe_once("e", received.append)
        bus.publish("e", 1)
        bus.publish("e", 2)
        assert received == [1]
        assert bus.listener_count("e") == 0

    def test_once_consumed_even_if_handler_fails(self):
        bus = InMemoryMessageBus()
        calls = []

        def broken(payload):
            calls.append(payload)
            raise ValueError("bad")

        bus.subscribe_once("e", broken)
        bus.publish("e", 1)
        bus.publish("e", 2)
        assert calls == [1]

    def test_nested_publish_does_not_redeliver_once(self):
        bus = InMemoryMessageBus()
        calls = []

        def handler(payload):
            calls.append(payload)
            if payload == 1:
                bus.publish("e", 2)

        bus.subscribe_once("e", handler)
        bus.publish("e", 1)
        assert calls == [1]


class TestUnsubscribe:
    def test_unsubscribe_removes_handler(self):
        bus = InMemoryMessageBus()
        received = []
        bus.subscribe("e", received.append)
        assert bus.unsubscribe("e", received.append) is True
        bus.publish("e", 1)
        assert received == []

    def test_unsubscribe_unknown_returns_false(self):
        bus = InMemoryMessageBus()
        assert bus.unsubscribe("e", print) is False

    def test_unsubscribe_bound_method(self):
        class Listener:
            def __init__(self):
                self.calls = 0

            def on_event(self, _):
                self.calls += 1

        bus = InMemoryMessageBus()
        listener = Listener()
        bus.subscribe("e", listener.on_event)
        assert bus.unsubscribe("e", listener.on_event) is True
        bus.publish("e")
        assert listener.calls == 0

    def test_handler_removed_mid_publish_is_skipped(self):
        bus = InMemoryMessageBus()
        received = []

        def second(payload):
            received.append(("second", payload))

        def first(payload):
            received.append(("first", payload))
            bus.unsubscribe("e", second)

        bus.subscribe("e", first)
        bus.subscribe("e", second)
        bus.publish("e", 1)
        assert received == [("first", 1)]

    def test_handler_added_mid_publish_waits_for_next_publish(self):
        bus = InMemoryMessageBus()
        received = []

        def late(payload):
            received.append(("late", payload))

        def first(payload):
            received.append(("first", payload))
            bus.subscribe("e", late)

        bus.subscribe_once("e", first)
        bus.publish("e", 1)
        bus.publish("e", 2)
        assert received == [("first", 1), ("late", 2)]


class TestIntrospection:
    def test_listener_counts(self):
        bus = InMemoryMessageBus()
        bus.subscribe("a", print)
        bus.subscribe("a", repr)
        bus.subscribe("b", print)
        assert bus.listener_count("a") == 2
        assert bus.listener_count() == 3
        assert bus.subscription_count == 3
        assert {"event": "b", "listener_count": 1} in bus.listeners()

    def test_clear(self):
        bus = InMemoryMessageBus()
        received = []
        bus.subscribe("a", received.append)
        bus.clear()
        bus.publish("a", 1)
        assert received == []
        assert bus.listener_count() == 0
